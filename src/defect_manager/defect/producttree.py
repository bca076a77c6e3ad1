"""Product tree resolution from the openEuler update repository."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import httpx

from defect_manager.defect.models import Product, ProductTree


logger = logging.getLogger(__name__)

# nginx autoindex line: <a href="x.rpm">x.rpm</a>   27-Mar-2023 10:00   12345
_LISTING_ENTRY = re.compile(
    r'<a href="(?P<name>[^"/]+\.rpm)">[^<]*</a>\s+(?P<date>\d{2}-\w{3}-\d{4} \d{2}:\d{2})'
)


class ProductTreeError(Exception):
    """Raised when the product tree of a component cannot be resolved."""


class ProductTreeResolver(Protocol):
    def init_cache(self) -> None:
        ...

    def clean_cache(self) -> None:
        ...

    def get_tree(self, defect_time: datetime | None, component: str, versions: list[str]) -> ProductTree:
        ...

    def parse_rpm(self, defect_time: datetime | None, component: str, version: str) -> str:
        ...


@dataclass
class RpmEntry:
    file_name: str
    published_at: datetime

    @property
    def package_name(self) -> str:
        return self.file_name.rsplit("-", 2)[0]

    @property
    def version_release(self) -> str:
        parts = self.file_name[: -len(".rpm")].rsplit("-", 2)
        if len(parts) < 3:
            return ""
        return f"{parts[1]}-{parts[2].rsplit('.', 1)[0]}"


def parse_listing(html: str) -> list[RpmEntry]:
    entries = []
    for match in _LISTING_ENTRY.finditer(html):
        try:
            published_at = datetime.strptime(match.group("date"), "%d-%b-%Y %H:%M")
        except ValueError:
            continue
        entries.append(RpmEntry(file_name=match.group("name"), published_at=published_at))
    return entries


def _naive(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=None)


class RepoProductTree:
    """Resolves product trees by reading ``update/<arch>/Packages`` listings.

    Listings are cached between ``init_cache`` and ``clean_cache``; the cache
    is not shared safely between concurrent runs.
    """

    def __init__(
        self,
        repo_url: str,
        arches: list[str],
        retries: int = 3,
        transport: httpx.BaseTransport | None = None,
    ):
        self.repo_url = repo_url.rstrip("/")
        self.arches = arches
        self._client = httpx.Client(
            transport=transport or httpx.HTTPTransport(retries=retries),
            follow_redirects=True,
        )
        self._cache: dict[tuple[str, str], list[RpmEntry]] | None = None

    def init_cache(self) -> None:
        self._cache = {}

    def clean_cache(self) -> None:
        self._cache = None

    def _listing(self, version: str, arch: str) -> list[RpmEntry]:
        key = (version, arch)
        if self._cache is not None and key in self._cache:
            return self._cache[key]

        url = f"{self.repo_url}/{version}/update/{arch}/Packages/"
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ProductTreeError(f"Failed to list {url}: {e}") from e

        entries = parse_listing(response.text)
        if self._cache is not None:
            self._cache[key] = entries
        return entries

    def _latest(self, entries: list[RpmEntry], defect_time: datetime | None, component: str) -> RpmEntry | None:
        since = _naive(defect_time)
        candidates = [
            e for e in entries
            if e.package_name == component and (since is None or e.published_at >= since)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda e: e.published_at)

    def parse_rpm(self, defect_time: datetime | None, component: str, version: str) -> str:
        """Return the newest RPM of the component released after the defect, or ''."""
        for arch in self.arches:
            try:
                entries = self._listing(version, arch)
            except ProductTreeError as e:
                logger.error(f"parse rpm of {component} on {version}/{arch} error: {e}")
                continue

            latest = self._latest(entries, defect_time, component)
            if latest is not None:
                return latest.file_name

        return ""

    def get_tree(self, defect_time: datetime | None, component: str, versions: list[str]) -> ProductTree:
        tree = ProductTree(component=component)
        for version in versions:
            for arch in self.arches:
                entries = self._listing(version, arch)
                latest = self._latest(entries, defect_time, component)
                if latest is None:
                    continue

                # Subpackages built from the same source share the version-release.
                for entry in entries:
                    if entry.version_release != latest.version_release:
                        continue
                    if entry.package_name == component or entry.package_name.startswith(f"{component}-"):
                        tree.products.append(Product(name=entry.file_name, arch=arch, version=version))

        if not tree:
            raise ProductTreeError(f"no rpm of {component} found for {', '.join(versions)}")

        return tree
