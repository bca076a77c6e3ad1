"""Issue event state machine driving the defect analysis workflow."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from defect_manager.defect.dp import (
    IssueStatus,
    SystemVersion,
    optional_severity,
    optional_system_version,
    optional_url,
)
from defect_manager.defect.models import Defect, Issue
from defect_manager.defect.service import DefectService
from defect_manager.gitee.client import GiteeClient, GiteeClientError
from defect_manager.gitee.models import IssueData, Note, User
from defect_manager.issue import templates
from defect_manager.issue.committer import CommitterCache
from defect_manager.issue.events import IssueEvent, NoteEvent, Project
from defect_manager.issue.parse import (
    INFLUENCE,
    ParseCommentResult,
    ParseError,
    ParseIssueResult,
    Parser,
    extract_os,
)
from defect_manager.utils import add_months, format_time


logger = logging.getLogger(__name__)

CMD_CHECK = "/check-issue"
CMD_REASON = "/reason"
ACTION_ASSIGN = "assign"


@dataclass
class HandlerConfig:
    """Settings the state machine depends on."""

    issue_type: str
    maintain_version: list[str]
    develop_version: list[str] = field(default_factory=list)
    source_namespace: str = "src-openeuler"
    enterprise_id: str = ""
    enterprise_token: str = ""
    pkg_policy: list[dict[str, int]] = field(default_factory=list)
    check_committer_authority: bool = False


class EventHandler:
    """Handles Gitee issue and note events for defect issues."""

    def __init__(
        self,
        config: HandlerConfig,
        gitee: GiteeClient,
        service: DefectService,
        committers: CommitterCache,
        bot_name: str,
    ):
        self.config = config
        self.gitee = gitee
        self.service = service
        self.committers = committers
        self.bot_name = bot_name
        self.parser = Parser(config.maintain_version)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _is_develop_version(self, body: str) -> bool:
        os_version = extract_os(body)
        if not os_version:
            return False
        return any(v in os_version for v in self.config.develop_version)

    def _comment(self, project: Project, number: str, body: str) -> None:
        self.gitee.create_issue_comment(project.namespace, project.name, number, body)

    def _reopen(self, project: Project, number: str) -> None:
        self.gitee.reopen_issue(project.namespace, project.name, number)
        logger.info(f"reopen issue {project.path_with_namespace} {number}")

    def _update_labels(self, project: Project, issue: IssueData, label: str = "") -> None:
        self.gitee.update_issue(
            project.namespace, issue.number, project.name,
            labels=templates.deal_labels(issue.labels, label),
        )

    # ------------------------------------------------------------------
    # Issue events
    # ------------------------------------------------------------------

    def handle_issue_event(self, e: IssueEvent) -> None:
        if e.issue.type_name != self.config.issue_type:
            return

        if self._is_develop_version(e.issue.body):
            logger.info(f"skip issue {e.project.path_with_namespace} {e.issue.number} of develop version")
            return

        state = e.issue.state_name
        if state in (IssueStatus.FINISHED, IssueStatus.ACCEPTED):
            self.handle_issue_closed(e)
        elif state == IssueStatus.TODO:
            self.handle_issue_open(e)
        elif state in (IssueStatus.CANCELLED, IssueStatus.SUSPENDED):
            self.handle_issue_reject(e)

    def handle_issue_open(self, e: IssueEvent) -> None:
        if e.action == ACTION_ASSIGN:
            return

        issue_info = self._parse_issue_tolerant(e.project, e.issue)
        defect = self.to_defect(e.issue, e.project, None, issue_info, ParseCommentResult())

        existing, exists = self.service.is_defect_exist(defect.issue)
        if exists:
            _carry_analysis(defect, existing)

        self.service.save_defect(defect)

        self.check_issue(e.project, e.issue, e.assignee)

    def handle_issue_reject(self, e: IssueEvent) -> None:
        comments = self.gitee.list_issue_comments(e.project.namespace, e.project.name, e.issue.number)

        for note in reversed(comments):
            if note.author == self.bot_name or not note.body.strip().startswith(CMD_REASON):
                continue

            self._update_labels(e.project, e.issue)

            reason = note.body.replace(CMD_REASON, "", 1).strip()
            self._comment(e.project, e.issue.number, templates.REJECT_TABLE.format(
                state=e.issue.state_name, user=e.sender_name, reason=reason,
            ))
            self._comment(e.project, e.issue.number, templates.REJECT_COMMENT.format(
                mention=f"@{e.sender_name}", state=e.issue.state_name,
            ))
            return

        self._reopen(e.project, e.issue.number)
        self._comment(e.project, e.issue.number, templates.SUSPEND_TIP.format(mention=f"@{e.sender_name}"))

    def handle_issue_closed(self, e: IssueEvent) -> None:
        issue_info = self._parse_issue_tolerant(e.project, e.issue)

        note = self.get_analysis_comment(e.project, e.issue.number)
        if note is None:
            self._reopen(e.project, e.issue.number)
            self._comment(e.project, e.issue.number,
                          templates.MISSING_ANALYSIS_COMMENT.format(user=e.sender_name))
            return

        try:
            comment_info = self.parser.parse_comment(note.body, e.sender_name)
        except ParseError as err:
            self._reopen(e.project, e.issue.number)
            self._comment(e.project, e.issue.number, str(err).replace(". ", "\n\n"))
            return

        if not comment_info.affected_version:
            self._update_labels(e.project, e.issue, templates.UNAFFECTED_LABEL)
            return

        not_merged, merged = self.check_related_pr(e.project, e.issue.number, comment_info.affected_version)

        if not_merged:
            self._reopen(e.project, e.issue.number)
            self._comment(e.project, e.issue.number, templates.REOPEN_COMMENT.format(
                user=e.sender_name,
                number=e.issue.number,
                branches="/".join(not_merged),
                link=templates.PR_ISSUE_LINK,
            ))

        defect = self.to_defect(e.issue, e.project, merged, issue_info, comment_info)
        existing, exists = self.service.is_defect_exist(defect.issue)
        if exists:
            # Collected but not yet announced versions stay a subset of the fixed ones.
            defect.unpublished_version = [v for v in existing.unpublished_version if v in merged]

        self.service.save_defect(defect)

        if not not_merged:
            self._update_labels(e.project, e.issue, templates.FIXED_LABEL)

    # ------------------------------------------------------------------
    # Note events
    # ------------------------------------------------------------------

    def handle_note_event(self, e: NoteEvent) -> None:
        if (
            not e.is_issue
            or e.issue.type_name != self.config.issue_type
            or e.issue.state_name in (IssueStatus.FINISHED, IssueStatus.CANCELLED, IssueStatus.SUSPENDED)
            or e.comment.author == self.bot_name
        ):
            return

        if self._is_develop_version(e.issue.body):
            return

        body = e.comment.body
        if body.strip() == CMD_CHECK:
            self.check_issue(e.project, e.issue, e.issue.assignee)
            return

        if INFLUENCE in body:
            self.handle_analysis_comment(e)

    def handle_analysis_comment(self, e: NoteEvent) -> None:
        author = e.comment.author
        if self.config.check_committer_authority and not self.committers.is_committer(
            e.project.path_with_namespace, author,
        ):
            self._comment(e.project, e.issue.number, templates.NOT_COMMITTER_COMMENT.format(user=author))
            return

        issue_info = self._parse_issue_tolerant(e.project, e.issue)

        try:
            comment_info = self.parser.parse_comment(e.comment.body, author)
        except ParseError as err:
            self._comment(e.project, e.issue.number, str(err))
            return

        defect = self.to_defect(e.issue, e.project, None, issue_info, comment_info)
        existing, exists = self.service.is_defect_exist(defect.issue)
        if exists:
            # Fixed versions only come from merged pull requests.
            defect.fixed_version = existing.fixed_version
            defect.unpublished_version = existing.unpublished_version

        self.service.save_defect(defect)

        self.gitee.update_issue(
            e.project.namespace, e.issue.number, e.project.name,
            body=templates.analysis_comment_feedback(e.issue.body, comment_info),
        )

        mention = e.issue.assignee.login if e.issue.assignee else author
        self._comment(e.project, e.issue.number, templates.analysis_complete(mention, comment_info))

    def get_analysis_comment(self, project: Project, number: str) -> Note | None:
        """Return the newest analysis comment not written by the robot."""
        comments = self.gitee.list_issue_comments(project.namespace, project.name, number)
        for note in reversed(comments):
            if INFLUENCE in note.body and note.author != self.bot_name:
                return note
        return None

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    def check_related_pr(self, project: Project, number: str, versions: list[str]) -> tuple[list[str], list[str]]:
        """Split declared versions by the state of the linked pull requests.

        Returns the maintained versions that still lack a merged pull request
        and the branches with a merged one.
        """
        maintained = set(self.config.maintain_version)
        merged: list[str] = []
        for pr in self.gitee.list_issue_pull_requests(project.namespace, project.name, number):
            if pr.base_namespace != self.config.source_namespace:
                continue
            if pr.base_ref not in maintained:
                continue
            if pr.merged and pr.base_ref not in merged:
                merged.append(pr.base_ref)

        not_merged = [v for v in versions if v in maintained and v not in merged]
        return not_merged, merged

    # ------------------------------------------------------------------
    # check-issue
    # ------------------------------------------------------------------

    def check_issue(self, project: Project, issue: IssueData, assignee: User | None) -> None:
        if assignee is None:
            try:
                self.set_issue_assignee(project, issue.number)
            except (GiteeClientError, ValueError) as e:
                logger.error(f"{project.path_with_namespace} issue number is {issue.number}, set issue assignee error: {e}")

        self.deal_issue(project, issue)

        self._update_labels(project, issue, templates.UNFIXED_LABEL)

        self.update_issue_deadline(project.name, issue)

    def set_issue_assignee(self, project: Project, number: str) -> None:
        assigner = self.committers.get_assigner(project.path_with_namespace)
        if not assigner:
            raise ValueError(f"{project.path_with_namespace} get assigner error")

        self.gitee.update_issue(project.namespace, number, project.name, assignee=assigner)

    def deal_issue(self, project: Project, issue: IssueData) -> str:
        """Add section two to the body and post the first notice comment once.

        Returns the (possibly updated) issue body.
        """
        body = issue.body
        if templates.ANALYSIS_FEEDBACK_MARKER not in body:
            body = templates.add_analysis_feedback(body, self.config.maintain_version)
            self.gitee.update_issue(project.namespace, issue.number, project.name, body=body)

        comments = self.gitee.list_issue_comments(project.namespace, project.name, issue.number)
        if any(templates.NOTICE_MARKER in note.body for note in comments):
            return body

        committers = self.committers.list_committer(project.path_with_namespace)
        if not committers:
            raise ValueError(templates.NO_COMMITTER_ERROR)

        self._comment(project, issue.number, templates.first_comment(self.config.maintain_version, committers))
        return body

    def deadline(self, component: str, created_at: datetime) -> dict[str, str]:
        """Plan start and deadline of an issue, overridable per component."""
        due = add_months(created_at, 1)
        for policy in self.config.pkg_policy:
            if component in policy:
                due = created_at + timedelta(days=policy[component])
                break

        return {
            "access_token": self.config.enterprise_token,
            "plan_started_at": format_time(created_at),
            "deadline": format_time(due),
        }

    def update_issue_deadline(self, component: str, issue: IssueData) -> None:
        if not self.config.enterprise_id:
            logger.debug("enterprise id not configured, skipping deadline update")
            return

        created_at = issue.created_at or datetime.now(timezone.utc)
        self.gitee.update_enterprise_issue(
            self.config.enterprise_id, issue.id, self.deadline(component, created_at),
        )

    # ------------------------------------------------------------------
    # Parsing helpers
    # ------------------------------------------------------------------

    def _parse_issue_tolerant(self, project: Project, issue: IssueData) -> ParseIssueResult:
        try:
            return self.parser.parse_issue(issue.body)
        except ParseError as e:
            logger.error(f"{project.path_with_namespace} issue number is {issue.number}, parse issue error: {e}")
            return ParseIssueResult()

    def to_defect(
        self,
        issue: IssueData,
        project: Project,
        merged_version: list[str] | None,
        issue_info: ParseIssueResult,
        comment_info: ParseCommentResult,
    ) -> Defect:
        try:
            status = IssueStatus.new(issue.state_name)
        except ValueError:
            logger.warning(f"invalid state name: {issue.state_name}")
            status = None

        system_version = optional_system_version(issue_info.os)
        severity = optional_severity(comment_info.severity_level)
        reference_url = optional_url(issue_info.reference_url)
        guidance_url = optional_url(issue_info.guidance_url)

        return Defect(
            issue=Issue(
                number=issue.number,
                org=project.namespace,
                repo=project.name,
                title=issue.title,
                status=status,
            ),
            component=project.name,
            component_version=issue_info.component_version,
            kernel=issue_info.kernel,
            system_version=system_version or "",
            description=issue_info.description,
            influence=comment_info.influence,
            root_cause=comment_info.root_cause,
            severity_level=severity,
            reference_url=reference_url or "",
            guidance_url=guidance_url or "",
            affected_version=[SystemVersion.new(v) for v in comment_info.affected_version],
            fixed_version=[SystemVersion.new(v) for v in merged_version or []],
            abi=",".join(comment_info.abi),
            created_at=issue.created_at,
        )


def _carry_analysis(defect: Defect, existing: Defect) -> None:
    """Keep analysis already stored for an issue when re-saving its skeleton."""
    defect.affected_version = existing.affected_version
    defect.fixed_version = existing.fixed_version
    defect.unpublished_version = existing.unpublished_version
    defect.influence = existing.influence
    defect.root_cause = existing.root_cause
    defect.severity_level = existing.severity_level
    defect.abi = existing.abi
    for attr in ("component_version", "kernel", "system_version", "description", "reference_url", "guidance_url"):
        if not getattr(defect, attr):
            setattr(defect, attr, getattr(existing, attr))
