"""SQLAlchemy implementation of the defect repository."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from defect_manager.defect.db import DefectRow
from defect_manager.defect.dp import IssueStatus, SeverityLevel
from defect_manager.defect.models import Defect, Defects, Issue
from defect_manager.defect.repository import FindDefectsOptions, RepositoryError


logger = logging.getLogger(__name__)

# Fields that are fixed once they hold a value.
_IMMUTABLE_FIELDS = ("component", "system_version")


def _to_defect(row: DefectRow) -> Defect:
    return Defect(
        issue=Issue(
            number=row.number,
            org=row.org,
            repo=row.repo,
            title=row.title,
            status=IssueStatus(row.status) if row.status else None,
        ),
        component=row.component,
        component_version=row.component_version,
        kernel=row.kernel,
        system_version=row.system_version,
        description=row.description,
        influence=row.influence,
        root_cause=row.root_cause,
        severity_level=SeverityLevel(row.severity_level) if row.severity_level else None,
        reference_url=row.reference_url,
        guidance_url=row.guidance_url,
        affected_version=list(row.affected_version or []),
        fixed_version=list(row.fixed_version or []),
        unpublished_version=list(row.unpublished_version or []),
        abi=row.abi,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_values(defect: Defect) -> dict:
    return {
        "repo": defect.issue.repo,
        "title": defect.issue.title,
        "status": defect.issue.status.value if defect.issue.status else None,
        "component": defect.component,
        "component_version": defect.component_version,
        "kernel": defect.kernel,
        "system_version": defect.system_version,
        "description": defect.description,
        "influence": defect.influence,
        "root_cause": defect.root_cause,
        "severity_level": defect.severity_level.value if defect.severity_level else None,
        "reference_url": defect.reference_url,
        "guidance_url": defect.guidance_url,
        "affected_version": list(defect.affected_version),
        "fixed_version": list(defect.fixed_version),
        "unpublished_version": list(defect.unpublished_version),
        "abi": defect.abi,
    }


class SqlDefectRepository:
    """Defect repository backed by a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _get(self, session: Session, issue: Issue) -> DefectRow | None:
        return session.get(DefectRow, {"org": issue.org, "number": issue.number})

    def has(self, issue: Issue) -> tuple[Defect | None, bool]:
        try:
            with self._session_factory() as session:
                row = self._get(session, issue)
                if row is None:
                    return None, False
                return _to_defect(row), True
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to load defect {issue.org}/{issue.number}: {e}") from e

    def add(self, defect: Defect) -> None:
        row = DefectRow(org=defect.issue.org, number=defect.issue.number, **_row_values(defect))
        if defect.created_at is not None:
            row.created_at = defect.created_at

        try:
            with self._session_factory.begin() as session:
                session.add(row)
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to add defect {defect.issue.org}/{defect.issue.number}: {e}") from e

    def save(self, defect: Defect) -> None:
        try:
            with self._session_factory.begin() as session:
                row = self._get(session, defect.issue)
                if row is None:
                    logger.info(f"defect {defect.issue.org}/{defect.issue.number} not stored yet, adding it")
                    session.add(DefectRow(org=defect.issue.org, number=defect.issue.number, **_row_values(defect)))
                    return

                for key, value in _row_values(defect).items():
                    if key in _IMMUTABLE_FIELDS and getattr(row, key):
                        continue
                    setattr(row, key, value)
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to save defect {defect.issue.org}/{defect.issue.number}: {e}") from e

    def find(self, options: FindDefectsOptions) -> Defects:
        stmt = select(DefectRow)
        if options.org:
            stmt = stmt.where(DefectRow.org == options.org)
        if options.numbers:
            stmt = stmt.where(DefectRow.number.in_(options.numbers))
        if options.status is not None:
            stmt = stmt.where(DefectRow.status == options.status.value)
        stmt = stmt.order_by(DefectRow.created_at, DefectRow.number)

        try:
            with self._session_factory() as session:
                return Defects(_to_defect(row) for row in session.scalars(stmt).all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to find defects: {e}") from e
