"""
Database helpers for the portfolio store (MongoDB)

`db` is None when no DATABASE_URL is configured; callers treat that as
"backend unavailable" and fall back to the bundled data.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import Settings, get_settings

# Collection names
BLOG = "blog"
BLOG_COMMENT = "blog_comment"
PROJECT = "project"
EXPERIENCE = "experience"
PROFILE = "profile"
AUDIT_LOG = "admin_audit_log"


def connect(settings: Settings) -> Optional[Database]:
    if not settings.backend_configured:
        return None
    client = MongoClient(settings.database_url, serverSelectionTimeoutMS=5000, uuidRepresentation="standard")
    return client[settings.database_name]


_settings = get_settings()
db: Optional[Database] = connect(_settings)


def get_db() -> Optional[Database]:
    return db


def ensure_indexes(database: Database) -> None:
    database[BLOG].create_index([("slug", ASCENDING)], unique=True)
    database[BLOG_COMMENT].create_index([("blog_id", ASCENDING), ("created_at", ASCENDING)])
    database[AUDIT_LOG].create_index([("user_id", ASCENDING), ("created_at", ASCENDING)])
    database[AUDIT_LOG].create_index([("resource_type", ASCENDING), ("resource_id", ASCENDING)])


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Expose `_id` as a string `id` and datetimes as ISO strings."""
    if doc is None:
        return None
    out = {k: v for k, v in doc.items() if k != "_id"}
    out["id"] = str(doc.get("_id"))
    for key, value in out.items():
        if isinstance(value, datetime):
            out[key] = value.isoformat()
    return out
