"""Gitee webhook events handled by the robot."""

from dataclasses import dataclass

from defect_manager.gitee.models import IssueData, Note, User


@dataclass
class Project:
    namespace: str
    name: str

    @property
    def path_with_namespace(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_dict(cls, data: dict | None) -> "Project":
        data = data or {}
        namespace = data.get("namespace") or ""
        name = data.get("path") or data.get("name") or ""
        if (not namespace or not name) and data.get("path_with_namespace"):
            namespace, _, name = data["path_with_namespace"].partition("/")
        return cls(namespace=namespace, name=name)


@dataclass
class IssueEvent:
    """Issue created, changed state or got reassigned."""

    action: str
    issue: IssueData
    project: Project
    sender: User | None = None
    assignee: User | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "IssueEvent":
        issue = IssueData.from_dict(payload.get("issue") or {})
        return cls(
            action=payload.get("action") or "",
            issue=issue,
            project=Project.from_dict(payload.get("project") or payload.get("repository")),
            sender=User.from_dict(payload.get("sender")),
            assignee=User.from_dict(payload.get("assignee")) or issue.assignee,
        )

    @property
    def sender_name(self) -> str:
        return self.sender.login if self.sender else ""


@dataclass
class NoteEvent:
    """A comment was added to an issue."""

    action: str
    noteable_type: str
    comment: Note
    issue: IssueData
    project: Project

    @classmethod
    def from_payload(cls, payload: dict) -> "NoteEvent":
        return cls(
            action=payload.get("action") or "",
            noteable_type=payload.get("noteable_type") or "",
            comment=Note.from_dict(payload.get("comment") or {}),
            issue=IssueData.from_dict(payload.get("issue") or {}),
            project=Project.from_dict(payload.get("project") or payload.get("repository")),
        )

    @property
    def is_issue(self) -> bool:
        return self.noteable_type == "Issue"
