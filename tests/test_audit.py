from unittest.mock import MagicMock

import pytest
from starlette.requests import Request

import audit
from audit import AuditLogger, client_ip, user_agent
from database import AUDIT_LOG


def request_with(headers=None):
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "POST", "path": "/", "headers": raw})


@pytest.mark.parametrize("headers,expected", [
    ({"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "X-Real-IP": "10.0.0.2"}, "203.0.113.7"),
    ({"X-Real-IP": "10.0.0.2", "CF-Connecting-IP": "10.0.0.3"}, "10.0.0.2"),
    ({"CF-Connecting-IP": "10.0.0.3"}, "10.0.0.3"),
    ({}, "unknown"),
])
def test_client_ip_precedence(headers, expected):
    assert client_ip(request_with(headers)) == expected


def test_user_agent_defaults_to_unknown():
    assert user_agent(request_with()) == "unknown"
    assert user_agent(request_with({"User-Agent": "curl/8"})) == "curl/8"


def test_record_writes_entry(mongo):
    AuditLogger(mongo).record("admin-1", "CREATE", "project", "pr1", request_with({"User-Agent": "ua"}), {"title": "X"})
    entry = mongo[AUDIT_LOG].find_one({})
    assert entry["user_id"] == "admin-1"
    assert entry["metadata"] == {"title": "X"}
    assert entry["ip_address"] == "unknown"
    assert entry["user_agent"] == "ua"


def test_empty_metadata_is_stored_as_null(mongo):
    AuditLogger(mongo).record("admin-1", "DELETE", "blog", "b1", request_with(), {})
    assert mongo[AUDIT_LOG].find_one({})["metadata"] is None


@pytest.mark.parametrize("database", [None, "broken"])
def test_record_failures_are_logged_not_raised(monkeypatch, database):
    log = MagicMock()
    monkeypatch.setattr(audit, "logger", log)
    if database:
        database = MagicMock()
        database.__getitem__.return_value.insert_one.side_effect = RuntimeError("down")
    AuditLogger(database).record("admin-1", "UPDATE", "profile", "profile", request_with())
    assert log.error.call_args.args[0] == "audit_log_failed"


def test_invalid_action_is_swallowed(mongo):
    AuditLogger(mongo).record("admin-1", "PUBLISH", "blog", "b1", request_with())
    assert mongo[AUDIT_LOG].count_documents({}) == 0


def test_read_helpers(mongo):
    logger = AuditLogger(mongo)
    logger.record("admin-1", "CREATE", "blog", "b1", request_with())
    logger.record("admin-1", "UPDATE", "blog", "b1", request_with())
    logger.record("admin-2", "CREATE", "project", "p1", request_with())
    assert len(logger.for_user("admin-1")) == 2
    assert len(logger.for_resource("blog", "b1")) == 2
    assert len(logger.recent(limit=1)) == 1
    assert logger.stats() == {
        "totalLogs": 3,
        "actionStats": {"CREATE": 2, "UPDATE": 1},
        "resourceStats": {"blog": 2, "project": 1},
    }


def test_read_helpers_degrade_without_store():
    logger = AuditLogger(None)
    assert logger.recent() == []
    assert logger.stats()["totalLogs"] == 0
