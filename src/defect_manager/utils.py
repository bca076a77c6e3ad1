"""Small helpers shared by the issue and defect packages."""

import calendar
from datetime import date, datetime


def trim_string(value: str) -> str:
    """Remove spaces, tabs, CR and LF from a string."""
    for ch in (" ", "\n", "\r", "\t"):
        value = value.replace(ch, "")
    return value


def year() -> int:
    return date.today().year


def format_time(value: datetime) -> str:
    """Format a timestamp the way the Gitee enterprise API expects."""
    return value.strftime("%Y-%m-%dT%H:%M:%S")


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    target_year = value.year + month_index // 12
    target_month = month_index % 12 + 1
    last_day = calendar.monthrange(target_year, target_month)[1]
    return value.replace(year=target_year, month=target_month, day=min(value.day, last_day))


def remove_duplicates(values: list[str]) -> list[str]:
    """Drop repeated entries while keeping first-seen order."""
    return list(dict.fromkeys(values))


class MultiError:
    """Collects user-facing error messages.

    Once the first message carries an ``@user`` mention, the mention is
    stripped from every later message so the user is only pinged once.
    """

    def __init__(self):
        self._errors: list[str] = []

    def add(self, message: str) -> None:
        message = message.strip()
        if self._errors and self._errors[0].startswith("@") and message.startswith("@"):
            parts = message.split(" ", 1)
            message = parts[1].strip() if len(parts) > 1 else ""
        self._errors.append(message)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def message(self) -> str:
        return ". ".join(self._errors)
