"""Unit tests for product tree resolution, XML bulletins and uploads."""

from datetime import date, datetime
from unittest.mock import MagicMock
from xml.etree import ElementTree as ET

import httpx
import pytest
from botocore.exceptions import ClientError

from defect_manager.defect.bulletin import BulletinError, BulletinFormatter
from defect_manager.defect.dp import SeverityLevel
from defect_manager.defect.models import Bulletin, Defect, Issue, Product, ProductTree
from defect_manager.defect.obs import ObsError, ObsUploader
from defect_manager.defect.producttree import ProductTreeError, RepoProductTree, parse_listing


LISTING = """<html><body><pre>
<a href="../">../</a>
<a href="glibc-2.34-100.oe2203.x86_64.rpm">glibc-2.34-100.oe2203.x86_64.rpm</a>     10-Jan-2024 09:00     1234
<a href="glibc-2.34-120.oe2203.x86_64.rpm">glibc-2.34-120.oe2203.x86_64.rpm</a>     20-Feb-2024 09:00     1234
<a href="glibc-devel-2.34-120.oe2203.x86_64.rpm">glibc-devel-2.34-120.oe2203.x86_64.rpm</a>     20-Feb-2024 09:00     1234
<a href="glibcx-1.0-1.oe2203.x86_64.rpm">glibcx-1.0-1.oe2203.x86_64.rpm</a>     20-Feb-2024 09:00     1234
<a href="zlib-1.2.13-1.oe2203.x86_64.rpm">zlib-1.2.13-1.oe2203.x86_64.rpm</a>     20-Feb-2024 09:00     1234
</pre></body></html>
"""


def listing_transport(calls: list) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        if "/x86_64/" in request.url.path:
            return httpx.Response(200, text=LISTING)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def make_bulletin(**overrides) -> Bulletin:
    defect = Defect(
        issue=Issue(number="I8ABCD", org="src-openeuler", repo="glibc"),
        component="glibc",
        description="resolver crash",
        severity_level=SeverityLevel.HIGH,
        unpublished_version=["openEuler-22.03-LTS"],
    )
    fields = {
        "component": "glibc",
        "defects": [defect],
        "unpublished_version": ["openEuler-22.03-LTS"],
        "identification": "openEuler-BA-2024-1000",
        "product_tree": ProductTree(
            component="glibc",
            products=[Product(name="glibc-2.34-120.oe2203.x86_64.rpm", arch="x86_64", version="openEuler-22.03-LTS")],
        ),
    }
    fields.update(overrides)
    return Bulletin(**fields)


class TestProductTree:
    """Tests for RepoProductTree."""

    def test_parse_listing(self):
        entries = parse_listing(LISTING)

        assert len(entries) == 5
        assert entries[0].package_name == "glibc"
        assert entries[0].version_release == "2.34-100.oe2203"
        assert entries[2].package_name == "glibc-devel"
        assert entries[0].published_at == datetime(2024, 1, 10, 9, 0)

    def test_parse_rpm_newest_after_defect(self):
        resolver = RepoProductTree("https://repo.example.com", ["x86_64"], transport=listing_transport([]))

        rpm = resolver.parse_rpm(datetime(2024, 1, 1), "glibc", "openEuler-22.03-LTS")

        assert rpm == "glibc-2.34-120.oe2203.x86_64.rpm"

    def test_parse_rpm_nothing_released_since(self):
        resolver = RepoProductTree("https://repo.example.com", ["x86_64"], transport=listing_transport([]))

        assert resolver.parse_rpm(datetime(2024, 3, 1), "glibc", "openEuler-22.03-LTS") == ""

    def test_parse_rpm_listing_failure_is_empty(self):
        resolver = RepoProductTree("https://repo.example.com", ["aarch64"], transport=listing_transport([]))

        assert resolver.parse_rpm(datetime(2024, 1, 1), "glibc", "openEuler-22.03-LTS") == ""

    def test_get_tree_collects_subpackages(self):
        resolver = RepoProductTree("https://repo.example.com", ["x86_64"], transport=listing_transport([]))

        tree = resolver.get_tree(datetime(2024, 1, 1), "glibc", ["openEuler-22.03-LTS"])

        assert [p.name for p in tree.products] == [
            "glibc-2.34-120.oe2203.x86_64.rpm",
            "glibc-devel-2.34-120.oe2203.x86_64.rpm",
        ]
        assert tree.arches() == ["x86_64"]

    def test_get_tree_empty_raises(self):
        resolver = RepoProductTree("https://repo.example.com", ["x86_64"], transport=listing_transport([]))

        with pytest.raises(ProductTreeError):
            resolver.get_tree(datetime(2024, 1, 1), "openssl", ["openEuler-22.03-LTS"])

    def test_listing_cached_between_init_and_clean(self):
        calls = []
        resolver = RepoProductTree("https://repo.example.com", ["x86_64"], transport=listing_transport(calls))

        resolver.init_cache()
        resolver.parse_rpm(None, "glibc", "openEuler-22.03-LTS")
        resolver.get_tree(None, "glibc", ["openEuler-22.03-LTS"])
        resolver.clean_cache()
        resolver.parse_rpm(None, "glibc", "openEuler-22.03-LTS")

        assert calls == [
            "https://repo.example.com/openEuler-22.03-LTS/update/x86_64/Packages/",
            "https://repo.example.com/openEuler-22.03-LTS/update/x86_64/Packages/",
        ]


class TestBulletinFormatter:
    """Tests for XML bulletin generation."""

    def test_generate(self):
        data = BulletinFormatter().generate(make_bulletin(), release_date=date(2024, 3, 1))

        root = ET.fromstring(data)
        ns = {"cvrf": "http://www.icasi.org/CVRF/schema/cvrf/1.1"}
        assert root.find("cvrf:DocumentTracking/cvrf:Identification/cvrf:ID", ns).text == "openEuler-BA-2024-1000"
        assert root.find("cvrf:DocumentTracking/cvrf:InitialReleaseDate", ns).text == "2024-03-01"
        assert b"glibc-2.34-120.oe2203.x86_64.rpm" in data
        assert b"https://gitee.com/src-openeuler/glibc/issues/I8ABCD" in data

    def test_missing_identification(self):
        with pytest.raises(BulletinError):
            BulletinFormatter().generate(make_bulletin(identification=""))

    def test_missing_product_tree(self):
        with pytest.raises(BulletinError):
            BulletinFormatter().generate(make_bulletin(product_tree=ProductTree(component="glibc")))


class TestObsUploader:
    """Tests for ObsUploader."""

    def test_object_keys(self, monkeypatch):
        monkeypatch.setattr("defect_manager.defect.obs.year", lambda: 2024)
        uploader = ObsUploader("ak", "sk", "https://obs.example.com", "bucket", "/defect/", client=MagicMock())

        assert uploader.object_key("openEuler-BA-2024-1000.xml") == "defect/2024/openEuler-BA-2024-1000.xml"
        assert uploader.object_key("update_defect.txt") == "defect/update_defect.txt"

    def test_upload(self, monkeypatch):
        monkeypatch.setattr("defect_manager.defect.obs.year", lambda: 2024)
        client = MagicMock()
        uploader = ObsUploader("ak", "sk", "https://obs.example.com", "bucket", "defect", client=client)

        uploader.upload("a.xml", b"<x/>")

        client.put_object.assert_called_once_with(Bucket="bucket", Key="defect/2024/a.xml", Body=b"<x/>")

    def test_upload_error(self):
        client = MagicMock()
        client.put_object.side_effect = ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        uploader = ObsUploader("ak", "sk", "https://obs.example.com", "bucket", "defect", client=client)

        with pytest.raises(ObsError):
            uploader.upload("a.xml", b"<x/>")
