"""Defect application service: persistence, collection and bulletins."""

import logging

from pydantic import BaseModel

from defect_manager.defect.backend import CveBackendClient
from defect_manager.defect.bulletin import BulletinError, BulletinFormatter
from defect_manager.defect.models import Defect, Defects, Issue
from defect_manager.defect.obs import UPLOADED_DEFECT_INDEX, ObsError, ObsUploader
from defect_manager.defect.producttree import ProductTreeError, ProductTreeResolver
from defect_manager.defect.repository import DefectRepository, FindDefectsOptions
from defect_manager.utils import year


logger = logging.getLogger(__name__)

BULLETIN_ID_FORMAT = "openEuler-BA-{year}-{seq}"


class CollectDefectsDTO(BaseModel):
    """Defect awaiting a bulletin, as returned by ``GET /v1/defect``."""

    number: str
    org: str
    repo: str
    title: str
    status: str
    component: str
    component_version: str
    kernel: str
    system_version: str
    description: str
    influence: str
    root_cause: str
    severity_level: str
    reference_url: str
    guidance_url: str
    affected_version: list[str]
    fixed_version: list[str]
    unpublished_version: list[str]
    abi: str

    @classmethod
    def from_defect(cls, defect: Defect) -> "CollectDefectsDTO":
        return cls(
            number=defect.issue.number,
            org=defect.issue.org,
            repo=defect.issue.repo,
            title=defect.issue.title,
            status=defect.issue.status.value if defect.issue.status else "",
            component=defect.component,
            component_version=defect.component_version,
            kernel=defect.kernel,
            system_version=defect.system_version,
            description=defect.description,
            influence=defect.influence,
            root_cause=defect.root_cause,
            severity_level=defect.severity_level.value if defect.severity_level else "",
            reference_url=defect.reference_url,
            guidance_url=defect.guidance_url,
            affected_version=defect.affected_version,
            fixed_version=defect.fixed_version,
            unpublished_version=defect.unpublished_version,
            abi=defect.abi,
        )


class DefectService:
    """Use cases over stored defects."""

    def __init__(
        self,
        repo: DefectRepository,
        product_tree: ProductTreeResolver,
        formatter: BulletinFormatter,
        backend: CveBackendClient,
        obs: ObsUploader,
    ):
        self.repo = repo
        self.product_tree = product_tree
        self.formatter = formatter
        self.backend = backend
        self.obs = obs

    def is_defect_exist(self, issue: Issue) -> tuple[Defect | None, bool]:
        return self.repo.has(issue)

    def save_defect(self, defect: Defect) -> None:
        """Insert or update the defect of an issue."""
        _, exists = self.repo.has(defect.issue)
        if exists:
            self.repo.save(defect)
        else:
            self.repo.add(defect)

    def collect_defects(self, version: str) -> list[CollectDefectsDTO]:
        """Return defects fixed on ``version`` that still need a bulletin.

        ``unpublished_version`` of every examined defect is written back,
        since bulletin generation reads it from the store.
        """
        defects = self.repo.find(FindDefectsOptions()).fixed_on(version)
        if not defects:
            return []

        self.product_tree.init_cache()
        try:
            with_rpm = Defects(
                d for d in defects
                if self.product_tree.parse_rpm(d.updated_at, d.component, version)
            )
        finally:
            self.product_tree.clean_cache()

        published = {item.issue_num: item.versions for item in self.backend.published_defects()}
        logger.info(f"published defects: {sorted(published)}")

        result = []
        for defect in with_rpm:
            published_versions = published.get(defect.issue.number)
            if published_versions is None:
                defect.unpublished_version = list(defect.fixed_version)
            elif len(published_versions) != len(defect.fixed_version):
                defect.unpublished_version = [v for v in defect.fixed_version if v not in published_versions]
            else:
                defect.unpublished_version = []

            self.repo.save(defect)

            if defect.unpublished_version:
                logger.info(f"unpublished defect: {defect.issue.number} {defect.unpublished_version}")
                result.append(CollectDefectsDTO.from_defect(defect))

        return result

    def generate_bulletins(self, numbers: list[str]) -> list[str]:
        """Generate and upload one bulletin per component of the given issues.

        Drafts that fail are logged and skipped. Returns the uploaded file names.
        """
        defects = self.repo.find(FindDefectsOptions(numbers=numbers))
        if not defects:
            logger.info(f"no defects found for {numbers}")
            return []

        seq = self.backend.max_bulletin_id()
        current_year = year()

        uploaded: list[str] = []
        self.product_tree.init_cache()
        try:
            for bulletin in defects.generate_bulletins():
                seq += 1
                bulletin.identification = BULLETIN_ID_FORMAT.format(year=current_year, seq=seq)

                try:
                    bulletin.product_tree = self.product_tree.get_tree(
                        bulletin.defects[0].created_at, bulletin.component, bulletin.unpublished_version,
                    )
                except ProductTreeError as e:
                    logger.error(f"{bulletin.identification}, component {bulletin.component}, get productTree error: {e}")
                    continue

                try:
                    xml_data = self.formatter.generate(bulletin)
                except BulletinError as e:
                    logger.error(f"{bulletin.identification}, component: {bulletin.component}, to xml error: {e}")
                    continue

                file_name = f"{bulletin.identification}.xml"
                try:
                    self.obs.upload(file_name, xml_data)
                except ObsError as e:
                    logger.error(f"{bulletin.identification}, component: {bulletin.component}, upload to obs error: {e}")
                    continue

                uploaded.append(file_name)
        finally:
            self.product_tree.clean_cache()

        self._upload_index(uploaded, current_year)
        return uploaded

    def _upload_index(self, files: list[str], current_year: int) -> None:
        if not files:
            return

        content = "\n".join(f"{current_year}/{name}" for name in files)
        self.obs.upload(UPLOADED_DEFECT_INDEX, content.encode("utf-8"))
