"""Unit tests for the defect service: collection and bulletin generation."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from defect_manager.defect.backend import IssueNumAndVersion, parse_max_bulletin_id
from defect_manager.defect.bulletin import BulletinFormatter
from defect_manager.defect.dp import SeverityLevel
from defect_manager.defect.models import Defect, Issue, Product, ProductTree
from defect_manager.defect.obs import ObsError
from defect_manager.defect.producttree import ProductTreeError
from defect_manager.defect.repository import FindDefectsOptions
from defect_manager.defect.service import DefectService


V2203 = "openEuler-22.03-LTS"
V2003 = "openEuler-20.03-LTS-SP3"


def make_defect(number: str, component: str = "glibc", fixed=None, unpublished=None, created_at=None) -> Defect:
    return Defect(
        issue=Issue(number=number, org="src-openeuler", repo=component, title=f"{component} bug"),
        component=component,
        description=f"{component} is broken",
        severity_level=SeverityLevel.MODERATE,
        affected_version=list(fixed or []),
        fixed_version=list(fixed or []),
        unpublished_version=list(unpublished or []),
        created_at=created_at or datetime(2024, 1, 1),
    )


def tree_for(defect_time, component, versions) -> ProductTree:
    return ProductTree(
        component=component,
        products=[Product(name=f"{component}-1.0-1.oe2203.x86_64.rpm", arch="x86_64", version=v) for v in versions],
    )


@pytest.fixture
def product_tree():
    resolver = MagicMock()
    resolver.parse_rpm.return_value = "glibc-2.34-120.oe2203.x86_64.rpm"
    resolver.get_tree.side_effect = tree_for
    return resolver


@pytest.fixture
def backend():
    client = MagicMock()
    client.published_defects.return_value = []
    client.max_bulletin_id.return_value = 999
    return client


@pytest.fixture
def obs():
    return MagicMock()


@pytest.fixture
def service(repository, product_tree, backend, obs):
    return DefectService(repository, product_tree, BulletinFormatter(), backend, obs)


class TestSaveDefect:
    """Tests for the idempotent upsert."""

    def test_save_twice(self, service, repository):
        defect = make_defect("I1", fixed=[V2203])

        service.save_defect(defect)
        defect.influence = "updated"
        service.save_defect(defect)

        stored, exists = service.is_defect_exist(defect.issue)
        assert exists
        assert stored.influence == "updated"
        assert len(repository.find(FindDefectsOptions())) == 1


class TestCollectDefects:
    """Tests for collecting defects that still need a bulletin."""

    def test_partially_published(self, service, repository, backend):
        """A version published already is excluded from unpublished versions."""
        repository.add(make_defect("I1", fixed=[V2203, V2003]))
        backend.published_defects.return_value = [IssueNumAndVersion(issue_num="I1", versions=[V2203])]

        result = service.collect_defects(V2003)

        assert [dto.number for dto in result] == ["I1"]
        assert result[0].unpublished_version == [V2003]
        stored, _ = repository.has(Issue(number="I1", org="src-openeuler"))
        assert stored.unpublished_version == [V2003]

    def test_never_published(self, service, repository):
        repository.add(make_defect("I1", fixed=[V2203, V2003]))

        result = service.collect_defects(V2203)

        assert result[0].unpublished_version == [V2203, V2003]

    def test_fully_published_not_returned(self, service, repository, backend):
        repository.add(make_defect("I1", fixed=[V2203]))
        backend.published_defects.return_value = [IssueNumAndVersion(issue_num="I1", versions=[V2203])]

        assert service.collect_defects(V2203) == []
        stored, _ = repository.has(Issue(number="I1", org="src-openeuler"))
        assert stored.unpublished_version == []

    def test_not_fixed_on_version_skipped(self, service, repository, backend):
        repository.add(make_defect("I1", fixed=[V2003]))

        assert service.collect_defects(V2203) == []
        backend.published_defects.assert_not_called()

    def test_without_rpm_dropped(self, service, repository, product_tree):
        repository.add(make_defect("I1", fixed=[V2203]))
        product_tree.parse_rpm.return_value = ""

        assert service.collect_defects(V2203) == []

    def test_idempotent(self, service, repository, backend):
        repository.add(make_defect("I1", fixed=[V2203, V2003]))
        backend.published_defects.return_value = [IssueNumAndVersion(issue_num="I1", versions=[V2203])]

        first = service.collect_defects(V2003)
        second = service.collect_defects(V2003)

        assert first == second

    def test_cache_bracketed(self, service, repository, product_tree):
        repository.add(make_defect("I1", fixed=[V2203]))

        service.collect_defects(V2203)

        product_tree.init_cache.assert_called_once()
        product_tree.clean_cache.assert_called_once()


class TestGenerateBulletins:
    """Tests for bulletin generation."""

    def test_year_rollover_numbering(self, service, repository, backend, obs, monkeypatch):
        """Three components after a year change get 1000, 1001 and 1002."""
        monkeypatch.setattr("defect_manager.defect.service.year", lambda: 2024)
        backend.max_bulletin_id.side_effect = lambda: parse_max_bulletin_id("openEuler-BA-2023-1487", current_year=2024)
        for number, component in (("I1", "glibc"), ("I2", "kernel"), ("I3", "zlib")):
            repository.add(make_defect(number, component, fixed=[V2203], unpublished=[V2203]))

        files = service.generate_bulletins(["I1", "I2", "I3"])

        assert files == [
            "openEuler-BA-2024-1000.xml",
            "openEuler-BA-2024-1001.xml",
            "openEuler-BA-2024-1002.xml",
        ]
        uploaded = [c.args[0] for c in obs.upload.call_args_list]
        assert uploaded == files + ["update_defect.txt"]
        index = obs.upload.call_args_list[-1].args[1].decode()
        assert index.splitlines() == [f"2024/{name}" for name in files]

    def test_continues_sequence(self, service, repository, backend, monkeypatch):
        monkeypatch.setattr("defect_manager.defect.service.year", lambda: 2024)
        backend.max_bulletin_id.return_value = 1487
        repository.add(make_defect("I1", fixed=[V2203], unpublished=[V2203]))

        assert service.generate_bulletins(["I1"]) == ["openEuler-BA-2024-1488.xml"]

    def test_one_bulletin_per_component(self, service, repository, product_tree):
        repository.add(make_defect("I1", "glibc", fixed=[V2203], unpublished=[V2203], created_at=datetime(2024, 1, 1)))
        repository.add(make_defect("I2", "glibc", fixed=[V2003], unpublished=[V2003], created_at=datetime(2024, 1, 2)))

        files = service.generate_bulletins(["I1", "I2"])

        assert len(files) == 1
        product_tree.get_tree.assert_called_once()
        defect_time, component, versions = product_tree.get_tree.call_args.args
        assert component == "glibc"
        assert versions == [V2203, V2003]
        assert defect_time.replace(tzinfo=None) == datetime(2024, 1, 1)

    def test_failed_draft_skipped(self, service, repository, product_tree, monkeypatch):
        """A product tree failure skips that bulletin; numbering still advances."""
        monkeypatch.setattr("defect_manager.defect.service.year", lambda: 2024)
        repository.add(make_defect("I1", "glibc", fixed=[V2203], unpublished=[V2203]))
        repository.add(make_defect("I2", "kernel", fixed=[V2203], unpublished=[V2203], created_at=datetime(2024, 1, 2)))

        def get_tree(defect_time, component, versions):
            if component == "glibc":
                raise ProductTreeError("no rpm")
            return tree_for(defect_time, component, versions)

        product_tree.get_tree.side_effect = get_tree

        assert service.generate_bulletins(["I1", "I2"]) == ["openEuler-BA-2024-1001.xml"]

    def test_upload_failure_skipped(self, service, repository, obs):
        repository.add(make_defect("I1", "glibc", fixed=[V2203], unpublished=[V2203]))
        obs.upload.side_effect = ObsError("denied")

        assert service.generate_bulletins(["I1"]) == []

    def test_no_defects(self, service, backend, obs):
        assert service.generate_bulletins(["I404"]) == []
        backend.max_bulletin_id.assert_not_called()
        obs.upload.assert_not_called()
