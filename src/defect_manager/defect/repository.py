"""Repository port for defect records."""

from dataclasses import dataclass, field
from typing import Protocol

from defect_manager.defect.dp import IssueStatus
from defect_manager.defect.models import Defect, Defects, Issue


class RepositoryError(Exception):
    """Raised when the defect store cannot be read or written."""


@dataclass
class FindDefectsOptions:
    """Filter for ``DefectRepository.find``; empty fields match everything."""

    org: str = ""
    numbers: list[str] = field(default_factory=list)
    status: IssueStatus | None = None


class DefectRepository(Protocol):
    def has(self, issue: Issue) -> tuple[Defect | None, bool]:
        """Return the stored defect of an issue and whether it exists."""
        ...

    def add(self, defect: Defect) -> None:
        ...

    def save(self, defect: Defect) -> None:
        ...

    def find(self, options: FindDefectsOptions) -> Defects:
        ...
