"""Unit tests for shared helpers."""

from datetime import datetime

from defect_manager.utils import MultiError, add_months, format_time, remove_duplicates, trim_string


class TestStrings:
    """Tests for string helpers."""

    def test_trim_string_removes_all_whitespace(self):
        """Spaces, tabs and line breaks are removed everywhere."""
        assert trim_string(" glibc -\t2.34\r\n") == "glibc-2.34"

    def test_remove_duplicates_keeps_order(self):
        assert remove_duplicates(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]


class TestTime:
    """Tests for time helpers."""

    def test_format_time(self):
        assert format_time(datetime(2024, 3, 5, 7, 8, 9)) == "2024-03-05T07:08:09"

    def test_add_months_clamps_day(self):
        """January 31st plus one month lands on the last day of February."""
        assert add_months(datetime(2024, 1, 31, 10), 1) == datetime(2024, 2, 29, 10)

    def test_add_months_crosses_year(self):
        assert add_months(datetime(2023, 12, 15), 1) == datetime(2024, 1, 15)


class TestMultiError:
    """Tests for the error collector."""

    def test_empty_is_falsy(self):
        assert not MultiError()

    def test_mention_only_kept_once(self):
        """Later @user prefixes are stripped once the first message has one."""
        errors = MultiError()
        errors.add("@alice 缺陷描述=> 没有按正确格式填写")
        errors.add("@alice 内核版本=> 没有按正确格式填写")
        errors.add("缺陷所属软件及版本号=> 不允许为空")

        assert errors
        assert errors.message() == (
            "@alice 缺陷描述=> 没有按正确格式填写. "
            "内核版本=> 没有按正确格式填写. "
            "缺陷所属软件及版本号=> 不允许为空"
        )

    def test_messages_without_mention_untouched(self):
        errors = MultiError()
        errors.add(" 内核版本=> 不允许为空 ")
        errors.add("缺陷严重等级=> 不允许为空")

        assert errors.message() == "内核版本=> 不允许为空. 缺陷严重等级=> 不允许为空"
