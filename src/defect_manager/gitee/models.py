"""Data models for Gitee entities."""

from dataclasses import dataclass, field
from datetime import datetime


PR_STATE_MERGED = "merged"


def parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass
class User:
    """Gitee user as it appears in API responses and hooks."""

    login: str
    name: str = ""

    @property
    def user_name(self) -> str:
        return self.login

    @classmethod
    def from_dict(cls, data: dict | None) -> "User | None":
        if not data:
            return None
        login = data.get("login") or data.get("username") or data.get("user_name") or ""
        return cls(login=login, name=data.get("name") or login)


@dataclass
class Note:
    """An issue comment."""

    id: int
    body: str
    user: User | None = None
    created_at: datetime | None = None

    @property
    def author(self) -> str:
        return self.user.login if self.user else ""

    @classmethod
    def from_dict(cls, data: dict) -> "Note":
        return cls(
            id=data.get("id", 0),
            body=data.get("body") or "",
            user=User.from_dict(data.get("user")),
            created_at=parse_time(data.get("created_at")),
        )


@dataclass
class IssueData:
    """Gitee issue data."""

    number: str
    title: str
    body: str
    id: int = 0
    state: str = ""
    state_name: str = ""
    type_name: str = ""
    labels: list[str] = field(default_factory=list)
    assignee: User | None = None
    user: User | None = None
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "IssueData":
        issue_state = data.get("issue_state") or data.get("state_name") or ""
        issue_type = data.get("issue_type") or data.get("type_name") or ""
        return cls(
            number=data.get("number", ""),
            title=data.get("title") or "",
            body=data.get("body") or "",
            id=data.get("id", 0),
            state=data.get("state") or "",
            state_name=issue_state,
            type_name=issue_type,
            labels=[label.get("name", "") for label in data.get("labels") or []],
            assignee=User.from_dict(data.get("assignee")),
            user=User.from_dict(data.get("user")),
            created_at=parse_time(data.get("created_at")),
        )


@dataclass
class PRData:
    """Pull request linked to an issue."""

    number: int
    state: str
    base_ref: str
    base_namespace: str
    url: str = ""

    @property
    def merged(self) -> bool:
        return self.state == PR_STATE_MERGED

    @classmethod
    def from_dict(cls, data: dict) -> "PRData":
        base = data.get("base") or {}
        repo = base.get("repo") or {}
        namespace = repo.get("namespace") or {}
        return cls(
            number=data.get("number", 0),
            state=data.get("state") or "",
            base_ref=base.get("ref") or "",
            base_namespace=namespace.get("path") or "",
            url=data.get("html_url") or "",
        )


@dataclass
class ContentEntry:
    """Entry of a repository directory listing."""

    name: str
    type: str
    path: str = ""
