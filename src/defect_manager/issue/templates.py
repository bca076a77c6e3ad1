"""Issue body and comment templates posted by the robot."""

import logging
import re

from defect_manager.issue.parse import ParseCommentResult


logger = logging.getLogger(__name__)

UNAFFECTED_LABEL = "DEFECT/UNAFFECTED"
FIXED_LABEL = "DEFECT/FIXED"
UNFIXED_LABEL = "DEFECT/UNFIXED"
DEFECT_LABEL_PREFIX = "DEFECT/"

ANALYSIS_FEEDBACK_MARKER = "二、缺陷分析结构反馈"
NOTICE_MARKER = "issue处理注意事项"

MANUAL_LINK = "https://gitee.com/Coopermassaki/cve-manager/blob/master/cve-vulner-manager/doc/md/defect-manager-manual.md"
PR_ISSUE_LINK = "https://gitee.com/help/articles/4142"


# =============================================================================
# ISSUE BODY
# =============================================================================

FEEDBACK = """
**二、缺陷分析结构反馈**
影响性分析说明：

缺陷严重等级:(Critical/High/Moderate/Low)

缺陷根因说明:

受影响版本排查(受影响/不受影响):
{affected_version}
修复是否涉及abi变化(是/否):
{abi}
"""

COMMENT_FEEDBACK = """
影响性分析说明:
{influence}
缺陷严重等级:(Critical/High/Moderate/Low)
{severity_level}
缺陷根因说明:
{root_cause}
受影响版本排查(受影响/不受影响):
{affected_version}
修复是否涉及abi变化(是/否):
{abi}
"""

_FIRST_PART_OF_BODY = re.compile(r"^[\s\S]*?\*\*二、缺陷分析结构反馈\*\*")


# =============================================================================
# COMMENTS
# =============================================================================

SUSPEND_TIP = """
{mention}
**issue变更为 [已取消/已挂起] 状态时，必须由操作者填写相关原因，现issue被重新打开**
**请按如下格式评论原因后，重新进行操作**
************************************************************************
/reason xxxxxx
"""

FIRST_COMMENT = """
{assignees}
**issue处理注意事项:**
**1. 当前issue受影响的分支提交pr时, 须在pr描述中填写当前issue编号进行关联, 否则无法关闭当前issue;**
**2. 模板内容需要填写完整, 无论是受影响或者不受影响都需要填写完整内容,未引入的分支不需要填写, 否则无法关闭当前issue;**
**3. 以下为模板中需要填写完整的内容, 请复制到评论区回复, 注: 内容的标题名称(影响性分析说明, 缺陷严重等级, 受影响版本排查(受影响/不受影响), 修复是否涉及abi变化(是/否))不能省略,省略后defect-manager将无法正常解析填写内容.**
**评论区可能使用到的指令说明:**
| 指令  | 指令说明 | 使用权限 |
|:--:|:--:|---------|
|/check-issue|触发defect-manager校验|不限|
|/reason xxx|/reason +挂起或取消条件|不限|
************************************************************************
影响性分析说明:

缺陷严重等级:(Critical/High/Moderate/Low)

缺陷根因说明:

受影响版本排查(受影响/不受影响):
{affected_version}
abi变化(是/否):
{abi}
-----------------------------------------------------------------------
缺陷issue处理具体操作请参考:
{manual_link}
pr关联issue具体操作请参考:
{pr_issue_link}
"""

REJECT_TABLE = """
| issue状态  | 操作者 | 原因 |
|:--:|:--:|---------|
|{state}|{user}|{reason}|
"""

REJECT_COMMENT = """
{mention} 当前issue状态为: {state}，若要追加评论，请先修改issue状态，否则评论无法被识别.
"""

ANALYSIS_TABLE = """
{mention} 经过defect-manager解析，已分析的内容如下表所示:
| 状态  | 需分析 | 内容 |
|:--:|:--:|---------|
|已分析|1.影响性分析说明|{influence}|
|已分析|2.缺陷严重等级|{severity_level}|
|已分析|3.缺陷根因定位|{root_cause}|
|已分析|4.受影响版本排查|{affected_version}|
|已分析|5.abi变化|{abi}|

**请确认分析内容的准确性，确认无误后，您可以进行后续步骤，否则您可以继续分析**
"""

REOPEN_COMMENT = """
@{user}
关闭issue前,需要将受影响的分支在合并pr时关联上当前issue编号: #{number}
受影响分支: {branches}
具体操作参考: {link}
"""

MISSING_ANALYSIS_COMMENT = "@{user} 未对受影响版本排查/abi变化进行分析，重新打开issue"

NOT_COMMITTER_COMMENT = "@{user} 仅当前仓库的maintainer或committer可以提交影响性分析，本次评论不会被解析"

NO_COMMITTER_ERROR = "获取committer列表失败，请联系管理员"


def add_analysis_feedback(body: str, maintain_version: list[str]) -> str:
    """Append section two of the template, listing every maintained version."""
    versions = "".join(f"{v}\n" for v in maintain_version)
    return body + FEEDBACK.format(affected_version=versions, abi=versions)


def analysis_comment_feedback(body: str, comment: ParseCommentResult) -> str:
    """Replace section two of the body with the parsed analysis."""
    analysis = COMMENT_FEEDBACK.format(
        influence=comment.influence,
        severity_level=comment.severity_level,
        root_cause=comment.root_cause,
        affected_version="\n".join(comment.all_version_result),
        abi="\n".join(comment.all_abi_result),
    )

    match = _FIRST_PART_OF_BODY.search(body)
    if not match:
        logger.error("issue body not match, not find the first part of defect info")
        return body

    return match.group(0) + analysis


def first_comment(maintain_version: list[str], committers: list[str]) -> str:
    versions = "".join(f"{i}. {v}:\n" for i, v in enumerate(maintain_version, start=1))
    return FIRST_COMMENT.format(
        assignees=" , ".join(f"@{c}" for c in committers),
        affected_version=versions,
        abi=versions,
        manual_link=MANUAL_LINK,
        pr_issue_link=PR_ISSUE_LINK,
    )


def analysis_complete(user: str, comment: ParseCommentResult) -> str:
    return ANALYSIS_TABLE.format(
        mention=f"@{user}",
        influence=comment.influence.replace("\r\n", "").replace("\n", ""),
        severity_level=comment.severity_level,
        root_cause=comment.root_cause or "无",
        affected_version=",".join(comment.all_version_result),
        abi=",".join(comment.all_abi_result),
    )


def deal_labels(labels: list[str], update_label: str = "") -> str:
    """Drop every DEFECT/* status label and add ``update_label`` if given."""
    names = [name for name in labels if not name.startswith(DEFECT_LABEL_PREFIX)]
    if update_label:
        names.append(update_label)
    return ",".join(names)
