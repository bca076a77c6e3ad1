"""Gitee issue workflow for defect issues."""

from defect_manager.issue.committer import CommitterCache
from defect_manager.issue.events import IssueEvent, NoteEvent, Project
from defect_manager.issue.handler import EventHandler, HandlerConfig
from defect_manager.issue.parse import ParseCommentResult, ParseError, ParseIssueResult, Parser

__all__ = [
    "CommitterCache",
    "IssueEvent",
    "NoteEvent",
    "Project",
    "EventHandler",
    "HandlerConfig",
    "ParseCommentResult",
    "ParseError",
    "ParseIssueResult",
    "Parser",
]
