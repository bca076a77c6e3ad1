"""Client for the CVE security-notice backend."""

import logging
import re
from dataclasses import dataclass, field

import httpx

from defect_manager.utils import year


logger = logging.getLogger(__name__)

INITIAL_BULLETIN_ID = 1000
MAX_BULLETIN_ID = 99999

BULLETIN_ID_PATTERN = re.compile(r"openEuler-BA-(\d{4})-(\d{4,5})")


class CveBackendError(Exception):
    """Raised when the CVE backend call fails or reports an error."""


@dataclass
class IssueNumAndVersion:
    """A published defect and the versions its bulletins cover."""

    issue_num: str
    versions: list[str] = field(default_factory=list)


def parse_max_bulletin_id(identification: str, current_year: int | None = None) -> int:
    """Turn the latest bulletin identifier into the last used sequence value.

    The next bulletin gets 1000 when nothing was published yet, at the start
    of a new year, and after the five-digit range is exhausted.
    """
    if not identification:
        return INITIAL_BULLETIN_ID - 1

    match = BULLETIN_ID_PATTERN.search(identification)
    if not match:
        raise CveBackendError(f"invalid bulletin id: {identification}")

    current_year = current_year or year()
    if match.group(1) != str(current_year):
        return INITIAL_BULLETIN_ID - 1

    seq = int(match.group(2))
    if seq >= MAX_BULLETIN_ID:
        logger.warning(f"bulletin sequence {seq} exhausted, resetting to {INITIAL_BULLETIN_ID}")
        return INITIAL_BULLETIN_ID - 1

    return seq


class CveBackendClient:
    """Reads bulletin numbering and published defects from the backend."""

    def __init__(
        self,
        endpoint: str,
        retries: int = 3,
        transport: httpx.BaseTransport | None = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self._client = httpx.Client(
            base_url=f"{self.endpoint}/cve-security-notice-server/securitynotice",
            transport=transport or httpx.HTTPTransport(retries=retries),
        )

    def close(self) -> None:
        self._client.close()

    def _get_result(self, path: str, params: dict | None = None):
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CveBackendError(f"Failed to call {path}: {e}") from e

        if data.get("code", 0) != 0:
            raise CveBackendError(data.get("msg") or f"{path} returned code {data.get('code')}")

        return data.get("result")

    def max_bulletin_id(self) -> int:
        """Return the last used bulletin sequence number for the current year."""
        result = self._get_result("/getMaxNoticeId", params={"notice_type": "bug"})
        return parse_max_bulletin_id(result or "")

    def published_defects(self) -> list[IssueNumAndVersion]:
        """Return all published defects with the versions they were announced for."""
        result = self._get_result("/getPublishedBugs") or []
        return [
            IssueNumAndVersion(
                issue_num=item.get("issue_num", ""),
                versions=list(item.get("versions") or []),
            )
            for item in result
        ]
