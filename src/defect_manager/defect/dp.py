"""Constrained value types used by the defect model."""

import logging
import re
from enum import Enum
from urllib.parse import urlparse


logger = logging.getLogger(__name__)


class IssueStatus(str, Enum):
    """Gitee issue state names for the defect issue type."""

    TODO = "待办的"
    REPAIRING = "修复中"
    CONFIRMED = "已确认"
    FINISHED = "已完成"
    ACCEPTED = "已验收"
    SUSPENDED = "已挂起"
    CANCELLED = "已取消"

    @classmethod
    def new(cls, value: str) -> "IssueStatus":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"invalid issue status: {value!r}") from None

    @property
    def is_closed(self) -> bool:
        return self in (IssueStatus.FINISHED, IssueStatus.ACCEPTED)

    @property
    def is_rejected(self) -> bool:
        return self in (IssueStatus.SUSPENDED, IssueStatus.CANCELLED)


class SeverityLevel(str, Enum):
    """Severity levels, ordered from lowest to highest."""

    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    CRITICAL = "Critical"

    @classmethod
    def new(cls, value: str) -> "SeverityLevel":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"invalid severity level: {value!r}") from None

    @property
    def rank(self) -> int:
        return list(SeverityLevel).index(self)


_VERSION_RE = re.compile(r"^\S+$")


class SystemVersion(str):
    """An OS release name such as ``openEuler-22.03-LTS``."""

    @classmethod
    def new(cls, value: str) -> "SystemVersion":
        if not value or not _VERSION_RE.match(value):
            raise ValueError(f"invalid system version: {value!r}")
        return cls(value)


class URL(str):
    """An absolute http(s) URL."""

    @classmethod
    def new(cls, value: str) -> "URL":
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"invalid url: {value!r}")
        return cls(value)


def optional_severity(value: str) -> SeverityLevel | None:
    """Severity from analyst input, ``None`` when unspecified or invalid."""
    if not value:
        return None
    try:
        return SeverityLevel.new(value)
    except ValueError:
        logger.warning(f"invalid severity level: {value}")
        return None


def optional_url(value: str) -> URL | None:
    if not value:
        return None
    try:
        return URL.new(value)
    except ValueError:
        logger.warning(f"invalid url: {value}")
        return None


def optional_system_version(value: str) -> SystemVersion | None:
    if not value:
        return None
    try:
        return SystemVersion.new(value)
    except ValueError:
        logger.warning(f"invalid system version: {value}")
        return None
