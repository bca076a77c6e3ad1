"""Unit tests for the CVE backend client and bulletin numbering."""

import httpx
import pytest

from defect_manager.defect.backend import CveBackendClient, CveBackendError, parse_max_bulletin_id


def make_client(handler) -> CveBackendClient:
    return CveBackendClient("https://backend.example.com", transport=httpx.MockTransport(handler))


class TestParseMaxBulletinId:
    """Tests for bulletin sequence parsing."""

    def test_empty_starts_at_1000(self):
        assert parse_max_bulletin_id("", current_year=2024) + 1 == 1000

    def test_same_year_continues(self):
        assert parse_max_bulletin_id("openEuler-BA-2024-1487", current_year=2024) == 1487

    def test_new_year_resets(self):
        assert parse_max_bulletin_id("openEuler-BA-2023-1487", current_year=2024) + 1 == 1000

    def test_five_digit_sequence(self):
        assert parse_max_bulletin_id("openEuler-BA-2024-12345", current_year=2024) == 12345

    def test_exhausted_sequence_resets(self):
        assert parse_max_bulletin_id("openEuler-BA-2024-99999", current_year=2024) + 1 == 1000

    def test_invalid_id(self):
        with pytest.raises(CveBackendError):
            parse_max_bulletin_id("openEuler-SA-2024-1000", current_year=2024)


class TestCveBackendClient:
    """Tests for CveBackendClient."""

    def test_max_bulletin_id(self, monkeypatch):
        monkeypatch.setattr("defect_manager.defect.backend.year", lambda: 2024)
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            return httpx.Response(200, json={"code": 0, "result": "openEuler-BA-2024-1010", "msg": ""})

        assert make_client(handler).max_bulletin_id() == 1010
        assert seen["url"].path == "/cve-security-notice-server/securitynotice/getMaxNoticeId"
        assert seen["url"].params["notice_type"] == "bug"

    def test_max_bulletin_id_empty_result(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"code": 0, "result": "", "msg": ""})

        assert make_client(handler).max_bulletin_id() == 999

    def test_error_code_raises_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"code": 1, "result": None, "msg": "db down"})

        with pytest.raises(CveBackendError, match="db down"):
            make_client(handler).max_bulletin_id()

    def test_http_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502)

        with pytest.raises(CveBackendError):
            make_client(handler).published_defects()

    def test_published_defects(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/getPublishedBugs")
            return httpx.Response(200, json={
                "code": 0,
                "msg": "",
                "result": [{"issue_num": "I1", "versions": ["openEuler-22.03-LTS"]}],
            })

        published = make_client(handler).published_defects()

        assert len(published) == 1
        assert published[0].issue_num == "I1"
        assert published[0].versions == ["openEuler-22.03-LTS"]
