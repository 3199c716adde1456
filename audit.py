"""
Admin audit logging

Every successful admin mutation is recorded with the actor, the action,
the resource and where the request came from. Recording is best-effort:
a failed write is logged locally and never reaches the caller.
"""

from collections import Counter
from typing import Any, Dict, List, Optional

import structlog
from fastapi import Depends, Request
from pymongo import DESCENDING
from pymongo.database import Database

from database import AUDIT_LOG, get_db, new_id, serialize, utcnow
from schemas import AuditAction, AuditLogEntry, ResourceType

logger = structlog.get_logger(__name__)


def client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return request.headers.get("x-real-ip") or request.headers.get("cf-connecting-ip") or "unknown"


def user_agent(request: Request) -> str:
    return request.headers.get("user-agent") or "unknown"


class AuditLogger:
    def __init__(self, database: Optional[Database]):
        self.db = database

    def record(
        self,
        user_id: str,
        action: AuditAction,
        resource_type: ResourceType,
        resource_id: Optional[str],
        request: Request,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            if self.db is None:
                raise RuntimeError("audit store not configured")
            entry = AuditLogEntry(
                user_id=user_id,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                ip_address=client_ip(request),
                user_agent=user_agent(request),
                metadata=metadata or None,
                created_at=utcnow(),
            )
            doc = entry.model_dump()
            doc["_id"] = new_id()
            self.db[AUDIT_LOG].insert_one(doc)
        except Exception as exc:
            logger.error(
                "audit_log_failed",
                error=str(exc),
                user_id=user_id,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
            )

    # Read-back helpers; they degrade to empty results like the writer does

    def for_user(self, user_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        return self._find({"user_id": user_id}, limit)

    def for_resource(self, resource_type: ResourceType, resource_id: str) -> List[Dict[str, Any]]:
        return self._find({"resource_type": resource_type, "resource_id": resource_id}, 0)

    def recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        return self._find({}, limit)

    def stats(self) -> Dict[str, Any]:
        try:
            docs = list(self.db[AUDIT_LOG].find({}, {"action": 1, "resource_type": 1}))
        except Exception as exc:
            logger.error("audit_stats_failed", error=str(exc))
            return {"totalLogs": 0, "actionStats": {}, "resourceStats": {}}
        return {
            "totalLogs": len(docs),
            "actionStats": dict(Counter(d.get("action") for d in docs)),
            "resourceStats": dict(Counter(d.get("resource_type") for d in docs)),
        }

    def _find(self, query: Dict[str, Any], limit: int) -> List[Dict[str, Any]]:
        try:
            cursor = self.db[AUDIT_LOG].find(query).sort("created_at", DESCENDING)
            if limit:
                cursor = cursor.limit(limit)
            return [serialize(doc) for doc in cursor]
        except Exception as exc:
            logger.error("audit_read_failed", error=str(exc), query=query)
            return []


def get_audit_logger(database: Optional[Database] = Depends(get_db)) -> AuditLogger:
    return AuditLogger(database)
