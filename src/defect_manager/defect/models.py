"""Domain models for defects and the bulletins generated from them."""

from dataclasses import dataclass, field
from datetime import datetime

from defect_manager.defect.dp import IssueStatus, SeverityLevel


@dataclass
class Issue:
    """Gitee issue that owns a defect, keyed by ``(org, number)``."""

    number: str
    org: str
    repo: str = ""
    title: str = ""
    status: IssueStatus | None = None

    @property
    def key(self) -> tuple[str, str]:
        return self.org, self.number


@dataclass
class Defect:
    """Normalized defect record."""

    issue: Issue
    component: str = ""
    component_version: str = ""
    kernel: str = ""
    system_version: str = ""
    description: str = ""
    influence: str = ""
    root_cause: str = ""
    severity_level: SeverityLevel | None = None
    reference_url: str = ""
    guidance_url: str = ""
    affected_version: list[str] = field(default_factory=list)
    fixed_version: list[str] = field(default_factory=list)
    unpublished_version: list[str] = field(default_factory=list)
    abi: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_fixed_on(self, version: str) -> bool:
        return version in self.fixed_version


@dataclass
class Product:
    """One RPM of a component built for a release and architecture."""

    name: str
    arch: str
    version: str


@dataclass
class ProductTree:
    """RPM layout of a component over a set of releases."""

    component: str
    products: list[Product] = field(default_factory=list)

    def arches(self) -> list[str]:
        return sorted({p.arch for p in self.products})

    def for_arch(self, arch: str) -> list[Product]:
        return [p for p in self.products if p.arch == arch]

    def __bool__(self) -> bool:
        return bool(self.products)


@dataclass
class Bulletin:
    """Security bulletin draft covering all defects of one component."""

    component: str
    defects: list[Defect] = field(default_factory=list)
    unpublished_version: list[str] = field(default_factory=list)
    identification: str = ""
    product_tree: ProductTree | None = None

    @property
    def highest_severity(self) -> SeverityLevel | None:
        levels = [d.severity_level for d in self.defects if d.severity_level]
        return max(levels, key=lambda level: level.rank) if levels else None


class Defects(list):
    """List of defects with aggregate operations."""

    def generate_bulletins(self) -> list[Bulletin]:
        """Group defects by component, one bulletin draft per component.

        Bulletins follow first-seen component order and keep the defects in
        the order they were fetched.
        """
        bulletins: dict[str, Bulletin] = {}
        for defect in self:
            bulletin = bulletins.setdefault(defect.component, Bulletin(component=defect.component))
            bulletin.defects.append(defect)
            for version in defect.unpublished_version:
                if version not in bulletin.unpublished_version:
                    bulletin.unpublished_version.append(version)

        return list(bulletins.values())

    def fixed_on(self, version: str) -> "Defects":
        return Defects(d for d in self if d.is_fixed_on(version))
