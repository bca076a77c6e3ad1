"""Defect records and the bulletin pipeline."""

from defect_manager.defect.dp import IssueStatus, SeverityLevel, SystemVersion, URL
from defect_manager.defect.models import Bulletin, Defect, Defects, Issue, Product, ProductTree
from defect_manager.defect.repository import DefectRepository, FindDefectsOptions, RepositoryError
from defect_manager.defect.service import CollectDefectsDTO, DefectService

__all__ = [
    "IssueStatus",
    "SeverityLevel",
    "SystemVersion",
    "URL",
    "Bulletin",
    "Defect",
    "Defects",
    "Issue",
    "Product",
    "ProductTree",
    "DefectRepository",
    "FindDefectsOptions",
    "RepositoryError",
    "CollectDefectsDTO",
    "DefectService",
]
