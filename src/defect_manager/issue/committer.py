"""Cache of repository committers and default issue assignees."""

import logging
import time
from datetime import date

import httpx

from defect_manager.gitee.client import GiteeClient, GiteeClientError


logger = logging.getLogger(__name__)

SIG_OWNER = "openeuler"
SIG_REPO = "community"
SIG_PATH = "sig"
COMMITTERS_URL = "https://www.openeuler.org/api-dsapi/query/sig/repo/committers"

# Querying SIGs back to back gets answered with 503.
REQUEST_INTERVAL = 0.2


class CommitterCache:
    """Maps ``namespace/repo`` to its committers and default assignee.

    ``refresh`` rebuilds both maps and swaps them in; readers may still see
    the previous generation while a refresh is running.
    """

    def __init__(
        self,
        gitee: GiteeClient,
        committers_url: str = COMMITTERS_URL,
        retries: int = 3,
        transport: httpx.BaseTransport | None = None,
        interval: float = REQUEST_INTERVAL,
    ):
        self.gitee = gitee
        self.committers_url = committers_url
        self.interval = interval
        self._http = httpx.Client(transport=transport or httpx.HTTPTransport(retries=retries))
        self.committers_of_repo: dict[str, list[str]] = {}
        self.assigner_of_repo: dict[str, str] = {}
        self.cache_at = ""

    def list_committer(self, path_with_namespace: str) -> list[str]:
        return list(self.committers_of_repo.get(path_with_namespace, []))

    def get_assigner(self, path_with_namespace: str) -> str:
        return self.assigner_of_repo.get(path_with_namespace, "")

    def is_committer(self, path_with_namespace: str, user: str) -> bool:
        return user in self.committers_of_repo.get(path_with_namespace, [])

    def needs_refresh(self, today: date | None = None) -> bool:
        return self.cache_at != (today or date.today()).strftime("%Y%m%d")

    def get_sigs(self) -> list[str]:
        try:
            entries = self.gitee.list_directory(SIG_OWNER, SIG_REPO, SIG_PATH)
        except GiteeClientError as e:
            logger.error(f"get sig of openeuler error: {e}")
            return []

        return [entry.name for entry in entries if entry.type == "dir"]

    def _fetch_sig(self, sig: str) -> dict | None:
        try:
            response = self._http.get(
                self.committers_url,
                params={"community": "openeuler", "sig": sig},
            )
            response.raise_for_status()
            return response.json().get("data") or {}
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"get committers of sig {sig} error: {e}")
            return None

    def refresh(self) -> None:
        """Reload committers of every SIG."""
        committers_of_repo: dict[str, list[str]] = {}
        assigner_of_repo: dict[str, str] = {}

        for i, sig in enumerate(self.get_sigs()):
            if i:
                time.sleep(self.interval)

            data = self._fetch_sig(sig)
            if data is None:
                continue

            maintainers = list(data.get("maintainers") or [])
            sig_assigner = maintainers[0] if maintainers else ""

            for detail in data.get("committerDetails") or []:
                repo = detail.get("repo", "")
                gitee_ids = list(detail.get("gitee_id") or [])
                committers_of_repo[repo] = maintainers + gitee_ids
                assigner_of_repo[repo] = gitee_ids[0] if gitee_ids else sig_assigner

        self.committers_of_repo = committers_of_repo
        self.assigner_of_repo = assigner_of_repo
        self.cache_at = date.today().strftime("%Y%m%d")
        logger.info(f"committer cache refreshed with {len(committers_of_repo)} repos")
