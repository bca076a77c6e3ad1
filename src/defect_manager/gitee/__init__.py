"""Gitee integration module for defect-manager."""

from defect_manager.gitee.client import GiteeClient, GiteeClientError
from defect_manager.gitee.models import ContentEntry, IssueData, Note, PRData, User

__all__ = [
    "GiteeClient",
    "GiteeClientError",
    "ContentEntry",
    "IssueData",
    "Note",
    "PRData",
    "User",
]
