"""Extraction of structured fields from defect issue bodies and comments.

Issue bodies come in two template shapes, bold markers (``**【…】…**``) and
heading markers (``### …``). Analysis comments use plain labels. Every field
regex has two groups, ``(label)(payload)``; the label strings are part of
the template contract with reporters and must not change.
"""

import re
from dataclasses import dataclass, field

from defect_manager.utils import MultiError, trim_string


ITEM_DESCRIPTION = "description"
ITEM_OS = "os"
ITEM_KERNEL = "kernel"
ITEM_COMPONENTS = "components"
ITEM_REPRODUCTION_STEPS = "problemReproductionSteps"
ITEM_TITLE_DESCRIPTION = "descriptionTitle"
ITEM_TITLE_OS = "osTitle"
ITEM_TITLE_KERNEL = "kernelTitle"
ITEM_TITLE_COMPONENTS = "componentsTitle"
ITEM_TITLE_REPRODUCTION_STEPS = "problemReproductionStepsTitle"
ITEM_REFERENCE_URL = "referenceAndGuidanceUrl"
ITEM_INFLUENCE = "influence"
ITEM_SEVERITY_LEVEL = "severityLevel"
ITEM_ROOT_CAUSE = "rootCause"
ITEM_AFFECTED_VERSION = "affectedVersion"
ITEM_ABI = "abi"

INFLUENCE = "影响性分析说明"
NOT_FORMATTED = "没有按正确格式填写"
NOT_NULL = "不允许为空"

ITEM_NAMES = {
    ITEM_DESCRIPTION: "缺陷描述",
    ITEM_OS: "缺陷所属的os版本",
    ITEM_KERNEL: "内核版本",
    ITEM_COMPONENTS: "缺陷所属软件及版本号",
    ITEM_REPRODUCTION_STEPS: "问题复现步骤",
    ITEM_TITLE_DESCRIPTION: "缺陷描述",
    ITEM_TITLE_OS: "缺陷所属的os版本",
    ITEM_TITLE_KERNEL: "内核版本",
    ITEM_TITLE_COMPONENTS: "缺陷所属软件及版本号",
    ITEM_TITLE_REPRODUCTION_STEPS: "问题复现步骤",
    ITEM_REFERENCE_URL: "详情及分析指导参考链接",
    ITEM_INFLUENCE: "影响性分析说明",
    ITEM_SEVERITY_LEVEL: "缺陷严重等级",
    ITEM_ROOT_CAUSE: "缺陷根因说明",
    ITEM_AFFECTED_VERSION: "受影响版本排查",
    ITEM_ABI: "abi",
}

ITEM_PATTERNS = {
    ITEM_DESCRIPTION: re.compile(
        r"(缺陷描述)[】][(（]必填[)）][:：]请补充详细的缺陷问题现象描述\*\*([\s\S]*?)\*\*一、缺陷信息"
    ),
    ITEM_OS: re.compile(
        r"(缺陷所属的os版本)[】][(（]必填，如openEuler-22.03-LTS[)）]\*\*([\s\S]*?)\*\*【内核版本"
    ),
    ITEM_KERNEL: re.compile(
        r"(内核版本)[】][(（]必填，如kernel-4.19[)）]\*\*([\s\S]*?)\*\*【缺陷所属软件及版本号"
    ),
    ITEM_COMPONENTS: re.compile(
        r"(缺陷所属软件及版本号)[】][(（]必填，如kernel-4.19[)）]\*\*([\s\S]*?)\*\*【环境信息"
    ),
    ITEM_REPRODUCTION_STEPS: re.compile(
        r"(问题复现步骤)[】][(（]必填[)）][:：]请描述具体的操作步骤\*\*([\s\S]*?)\*\*【实际结果"
    ),
    ITEM_TITLE_DESCRIPTION: re.compile(
        r"(缺陷描述)[】][(（]必填[)）][:：]请补充详细的缺陷问题现象描述([\s\S]*?)\*\*一、缺陷信息"
    ),
    ITEM_TITLE_OS: re.compile(
        r"(缺陷所属的os版本)[】][(（]必填，如openEuler-22.03-LTS[)）]([\s\S]*?)### 【内核版本"
    ),
    ITEM_TITLE_KERNEL: re.compile(
        r"(内核版本)[】][(（]必填，如kernel-4.19[)）]([\s\S]*?)### 【缺陷所属软件及版本号"
    ),
    ITEM_TITLE_COMPONENTS: re.compile(
        r"(缺陷所属软件及版本号)[】][(（]必填，如kernel-4.19[)）]([\s\S]*?)\*\*【环境信息"
    ),
    ITEM_TITLE_REPRODUCTION_STEPS: re.compile(
        r"(问题复现步骤)[】][(（]必填[)）][:：]请描述具体的操作步骤([\s\S]*?)\*\*【实际结果"
    ),
    ITEM_REFERENCE_URL: re.compile(
        r"(详情及分析指导参考链接)[】]?[^\n]*?(?:\*\*)?([\s\S]*?)(?:\*\*【|### 【|\*\*二、|$)"
    ),
    ITEM_INFLUENCE: re.compile(r"(影响性分析说明)[:：]([\s\S]*?)缺陷严重等级"),
    ITEM_SEVERITY_LEVEL: re.compile(
        r"(缺陷严重等级)[:：]\(Critical/High/Moderate/Low\)([\s\S]*?)(?:缺陷根因说明|受影响版本排查)"
    ),
    ITEM_ROOT_CAUSE: re.compile(r"(缺陷根因说明)[:：]([\s\S]*?)受影响版本排查"),
    ITEM_AFFECTED_VERSION: re.compile(r"(受影响版本排查)\(受影响/不受影响\)[:：]([\s\S]*?)abi变化"),
    ITEM_ABI: re.compile(r"(abi变化)\(是/否\)[:：]([\s\S]*?)$"),
}

ISSUE_ITEMS = [
    ITEM_DESCRIPTION,
    ITEM_OS,
    ITEM_KERNEL,
    ITEM_COMPONENTS,
    ITEM_REPRODUCTION_STEPS,
]

ISSUE_TITLE_ITEMS = [
    ITEM_TITLE_DESCRIPTION,
    ITEM_TITLE_OS,
    ITEM_TITLE_KERNEL,
    ITEM_TITLE_COMPONENTS,
    ITEM_TITLE_REPRODUCTION_STEPS,
]

COMMENT_ITEMS = [
    ITEM_INFLUENCE,
    ITEM_SEVERITY_LEVEL,
    ITEM_AFFECTED_VERSION,
    ITEM_ABI,
]

# Payloads kept verbatim instead of whitespace-stripped.
NO_TRIM_ITEMS = {ITEM_DESCRIPTION, ITEM_TITLE_DESCRIPTION, ITEM_INFLUENCE}

SEVERITY_LEVELS = {"Critical", "High", "Moderate", "Low"}

AFFECTED = "受影响"
UNAFFECTED = "不受影响"
YES = "是"
NO = "否"

VERSION_VERDICT_PATTERN = re.compile(r"(openEuler.*?)[:：]\s*(不受影响|受影响|是|否)")
_AFTER_AFFECTED = re.compile(r"受影响(.+)$")
_URL_PATTERN = re.compile(r"https?://[^\s)）\]*]+")

COMMENT_VERSION_TIP = """
{assign} 请确认分支: {versions}.
**请确认{versions}是否填写完整，否则将无法关闭当前issue.**
"""


class ParseError(Exception):
    """Analyst-visible parse failure; the message is posted back on the issue."""


@dataclass
class ParseIssueResult:
    kernel: str = ""
    component: str = ""
    component_version: str = ""
    os: str = ""
    description: str = ""
    reference_url: str = ""
    guidance_url: str = ""


@dataclass
class ParseCommentResult:
    influence: str = ""
    severity_level: str = ""
    root_cause: str = ""
    all_version_result: list[str] = field(default_factory=list)
    all_abi_result: list[str] = field(default_factory=list)
    affected_version: list[str] = field(default_factory=list)
    abi: list[str] = field(default_factory=list)


def _mention(user: str | None) -> str:
    return f"@{user}" if user else ""


def _canonical(item: str) -> str:
    return item.removesuffix("Title")


def extract_os(body: str) -> str:
    """Return the trimmed OS version section of an issue body, or ''."""
    for item in (ITEM_OS, ITEM_TITLE_OS):
        match = ITEM_PATTERNS[item].search(body)
        if match:
            return trim_string(match.group(2))
    return ""


class Parser:
    """Parses issue bodies and analysis comments against the maintained versions."""

    def __init__(self, maintain_version: list[str]):
        self.maintain_version = list(maintain_version)

    def parse_issue(self, body: str, user: str | None = None) -> ParseIssueResult:
        items = ISSUE_TITLE_ITEMS if "###" in body else ISSUE_ITEMS
        result = self._parse(items, body, user)

        ret = ParseIssueResult(
            kernel=result.get(ITEM_KERNEL, ""),
            os=result.get(ITEM_OS, ""),
            description=result.get(ITEM_DESCRIPTION, ""),
        )

        components = result.get(ITEM_COMPONENTS, "")
        if components:
            parts = components.split("-")
            ret.component = "-".join(parts[:-1])
            ret.component_version = parts[-1]

        match = ITEM_PATTERNS[ITEM_REFERENCE_URL].search(body)
        if match:
            urls = _URL_PATTERN.findall(match.group(2))
            if urls:
                ret.reference_url = urls[0]
            if len(urls) > 1:
                ret.guidance_url = urls[1]

        return ret

    def parse_comment(self, body: str, user: str | None = None) -> ParseCommentResult:
        result = self._parse(COMMENT_ITEMS, body, user)

        ret = ParseCommentResult(
            influence=result.get(ITEM_INFLUENCE, ""),
            severity_level=result.get(ITEM_SEVERITY_LEVEL, ""),
        )

        match = ITEM_PATTERNS[ITEM_ROOT_CAUSE].search(body)
        if match:
            ret.root_cause = trim_string(match.group(2))

        if ITEM_AFFECTED_VERSION in result:
            ret.all_version_result, ret.affected_version = self.parse_version(
                result[ITEM_AFFECTED_VERSION], user,
            )

        if ITEM_ABI in result:
            ret.all_abi_result, ret.abi = self.parse_version(result[ITEM_ABI], user)

        return ret

    def _parse(self, items: list[str], body: str, user: str | None) -> dict[str, str]:
        assign = _mention(user)
        errors = MultiError()

        def not_formatted(item: str) -> str:
            return f"{assign} {ITEM_NAMES[item]}=> {NOT_FORMATTED}"

        result: dict[str, str] = {}
        for item in items:
            match = ITEM_PATTERNS[item].search(body)
            if not match:
                errors.add(not_formatted(item))
                continue

            payload = match.group(2)
            trimmed = trim_string(payload)
            if not trimmed:
                errors.add(f"{ITEM_NAMES[item]}=> {NOT_NULL}")
                continue

            key = _canonical(item)
            value = payload if item in NO_TRIM_ITEMS else trimmed
            result[key] = value

            if key == ITEM_SEVERITY_LEVEL and value not in SEVERITY_LEVELS:
                errors.add(not_formatted(item))
            elif key == ITEM_OS and value not in self.maintain_version:
                errors.add(not_formatted(item))
            elif key == ITEM_COMPONENTS and len(value.split("-")) < 2:
                errors.add(not_formatted(item))

        if errors:
            raise ParseError(errors.message())

        return result

    def parse_version(self, text: str, user: str | None = None) -> tuple[list[str], list[str]]:
        """Parse a per-version verdict table.

        Returns the ``version:verdict`` entries and the versions whose verdict
        is affected (``受影响``) or yes (``是``).
        """
        assign = _mention(user)
        matches = list(VERSION_VERDICT_PATTERN.finditer(text))
        if not matches:
            raise ParseError(f"{assign} 请对受影响版本排查/abi变化进行分析".strip())

        analysis: list[str] = []
        affected: list[str] = []
        all_versions: set[str] = set()
        for match in matches:
            version, verdict = match.group(1), match.group(2)
            # A key that swallowed a previous verdict keeps only the text after it.
            if AFFECTED in version:
                tail = _AFTER_AFFECTED.findall(version)
                if tail:
                    version = tail[-1]

            all_versions.add(version)
            analysis.append(match.group(0))
            if verdict in (AFFECTED, YES):
                affected.append(version)

        missing = [v for v in self.maintain_version if v not in all_versions]
        if missing:
            raise ParseError(COMMENT_VERSION_TIP.format(assign=assign, versions=",".join(missing)))

        return analysis, affected
