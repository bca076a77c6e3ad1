"""Gitee REST v5 client."""

import os

import httpx

from defect_manager.gitee.models import ContentEntry, IssueData, Note, PRData, User


GITEE_API = "https://gitee.com/api/v5"
GITEE_ENTERPRISE_API = "https://api.gitee.com"

ISSUE_STATE_OPEN = "open"
ISSUE_STATE_CLOSED = "closed"


class GiteeClientError(Exception):
    """Raised when Gitee operations fail."""


class GiteeClient:
    """Thin client over the Gitee v5 API used by the robot."""

    def __init__(
        self,
        token: str | None = None,
        base_url: str = GITEE_API,
        enterprise_url: str = GITEE_ENTERPRISE_API,
        retries: int = 3,
        transport: httpx.BaseTransport | None = None,
    ):
        self.token = token or os.getenv("GITEE_TOKEN")
        if not self.token:
            raise GiteeClientError(
                "Gitee token not found. Set ROBOT_TOKEN or GITEE_TOKEN environment variable."
            )

        self.enterprise_url = enterprise_url.rstrip("/")
        self._http = httpx.Client(
            base_url=base_url,
            transport=transport or httpx.HTTPTransport(retries=retries),
        )

    def close(self) -> None:
        self._http.close()

    def _request(self, method: str, url: str, *, params: dict | None = None, json: dict | None = None):
        params = dict(params or {})
        if json is None:
            params["access_token"] = self.token
        else:
            json = {"access_token": self.token, **json}

        try:
            response = self._http.request(method, url, params=params, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise GiteeClientError(
                f"{method} {url} failed with {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise GiteeClientError(f"{method} {url} failed: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise GiteeClientError(f"{method} {url} returned invalid JSON: {e}") from e

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_bot(self) -> User:
        data = self._request("GET", "/user")
        user = User.from_dict(data)
        if user is None:
            raise GiteeClientError("Failed to get bot user")
        return user

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def get_issue(self, owner: str, repo: str, number: str) -> IssueData:
        data = self._request("GET", f"/repos/{owner}/{repo}/issues/{number}")
        return IssueData.from_dict(data or {})

    def update_issue(
        self,
        owner: str,
        number: str,
        repo: str,
        body: str | None = None,
        labels: str | None = None,
        assignee: str | None = None,
        state: str | None = None,
    ) -> IssueData:
        """Update an issue; only the given fields are sent.

        Args:
            owner: Namespace of the repository
            number: Issue number, e.g. ``I12345``
            repo: Repository name
            body: New body
            labels: Comma separated label names, replaces all labels
            assignee: Login of the new assignee
            state: ``open`` or ``closed``
        """
        payload: dict = {"repo": repo}
        if body is not None:
            payload["body"] = body
        if labels is not None:
            payload["labels"] = labels
        if assignee is not None:
            payload["assignee"] = assignee
        if state is not None:
            payload["state"] = state

        data = self._request("PATCH", f"/repos/{owner}/issues/{number}", json=payload)
        return IssueData.from_dict(data or {})

    def reopen_issue(self, owner: str, repo: str, number: str) -> None:
        self.update_issue(owner, number, repo, state=ISSUE_STATE_OPEN)

    def close_issue(self, owner: str, repo: str, number: str) -> None:
        self.update_issue(owner, number, repo, state=ISSUE_STATE_CLOSED)

    def update_enterprise_issue(self, enterprise_id: str, issue_id: int, params: dict) -> None:
        """PUT issue attributes (plan and deadline) through the enterprise API."""
        url = f"{self.enterprise_url}/enterprises/{enterprise_id}/issues/{issue_id}"
        try:
            response = self._http.put(url, json=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise GiteeClientError(f"Failed to update enterprise issue {issue_id}: {e}") from e

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def create_issue_comment(self, owner: str, repo: str, number: str, body: str) -> None:
        self._request("POST", f"/repos/{owner}/{repo}/issues/{number}/comments", json={"body": body})

    def list_issue_comments(self, owner: str, repo: str, number: str) -> list[Note]:
        """List all comments of an issue, oldest first."""
        notes: list[Note] = []
        page = 1
        per_page = 100
        while True:
            data = self._request(
                "GET",
                f"/repos/{owner}/{repo}/issues/{number}/comments",
                params={"page": page, "per_page": per_page, "order": "asc"},
            ) or []
            notes.extend(Note.from_dict(item) for item in data)
            if len(data) < per_page:
                return notes
            page += 1

    # ------------------------------------------------------------------
    # Pull requests / contents
    # ------------------------------------------------------------------

    def list_issue_pull_requests(self, owner: str, repo: str, number: str) -> list[PRData]:
        data = self._request(
            "GET",
            f"/repos/{owner}/issues/{number}/pull_requests",
            params={"repo": repo},
        ) or []
        return [PRData.from_dict(item) for item in data]

    def list_directory(self, owner: str, repo: str, path: str) -> list[ContentEntry]:
        data = self._request("GET", f"/repos/{owner}/{repo}/contents/{path}") or []
        if isinstance(data, dict):
            data = [data]
        return [
            ContentEntry(name=item.get("name", ""), type=item.get("type", ""), path=item.get("path", ""))
            for item in data
        ]
