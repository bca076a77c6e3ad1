"""Pytest fixtures for defect-manager tests."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from defect_manager.defect.db import create_db_engine, create_session_factory, init_db
from defect_manager.defect.sql_repository import SqlDefectRepository


MAINTAIN_VERSION = ["openEuler-20.03-LTS-SP1", "openEuler-22.03-LTS"]


ISSUE_BODY = """**【缺陷描述】（必填）：请补充详细的缺陷问题现象描述**
glibc crashes when resolving long host names.

**一、缺陷信息**
**【缺陷所属的os版本】（必填，如openEuler-22.03-LTS）**
openEuler-22.03-LTS
**【内核版本】（必填，如kernel-4.19）**
kernel-5.10.0
**【缺陷所属软件及版本号】（必填，如kernel-4.19）**
glibc-2.34
**【环境信息】**
x86_64 vm
**【问题复现步骤】（必填）：请描述具体的操作步骤**
1. getaddrinfo with a 300 byte name
**【实际结果】**
segfault
**【详情及分析指导参考链接】**
https://sourceware.org/bugzilla/show_bug.cgi?id=1 https://gitee.com/openeuler/docs/guide
"""


ANALYSIS_COMMENT = """影响性分析说明:
Out of bounds read in the resolver.
缺陷严重等级:(Critical/High/Moderate/Low)
High
缺陷根因说明:
Missing length check.
受影响版本排查(受影响/不受影响):
1. openEuler-20.03-LTS-SP1:不受影响
2. openEuler-22.03-LTS:受影响
abi变化(是/否):
1. openEuler-20.03-LTS-SP1:否
2. openEuler-22.03-LTS:否
"""


@pytest.fixture
def maintain_version():
    return list(MAINTAIN_VERSION)


@pytest.fixture
def issue_body():
    """Reporter-filled issue body in the bold template."""
    return ISSUE_BODY


@pytest.fixture
def analysis_comment():
    """Complete analysis comment: affected on 22.03 only."""
    return ANALYSIS_COMMENT


@pytest.fixture
def session_factory():
    """Session factory over a fresh in-memory database."""
    engine = create_db_engine("sqlite:///:memory:")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def repository(session_factory):
    return SqlDefectRepository(session_factory)


@pytest.fixture
def mock_gitee_client():
    """Mock Gitee client with no comments and no pull requests."""
    client = MagicMock()
    client.list_issue_comments.return_value = []
    client.list_issue_pull_requests.return_value = []
    return client


@pytest.fixture
def mock_committers():
    committers = MagicMock()
    committers.list_committer.return_value = ["alice", "bob"]
    committers.get_assigner.return_value = "alice"
    committers.is_committer.return_value = True
    return committers


@pytest.fixture
def created_at():
    return datetime(2024, 1, 31, 8, 30, tzinfo=timezone.utc)


def make_issue_payload(state_name: str, body: str = ISSUE_BODY, **overrides) -> dict:
    """Gitee ``Issue Hook`` payload for issue I8ABCD in src-openeuler/glibc."""
    issue = {
        "id": 9001,
        "number": "I8ABCD",
        "title": "glibc resolver crash",
        "body": body,
        "state": "open",
        "state_name": state_name,
        "type_name": "缺陷",
        "labels": [{"name": "sig/Base-service"}],
        "assignee": {"login": "alice"},
        "user": {"login": "reporter"},
        "created_at": "2024-01-31T08:30:00+08:00",
    }
    issue.update(overrides.pop("issue", {}))
    payload = {
        "action": "state_change",
        "issue": issue,
        "project": {"namespace": "src-openeuler", "path": "glibc"},
        "sender": {"login": "carol"},
        "assignee": issue["assignee"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def issue_payload():
    """Factory for Gitee ``Issue Hook`` payloads."""
    return make_issue_payload
