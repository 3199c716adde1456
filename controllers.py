"""
Mutation executors for the admin API

One ResourceController per collection (blog, project, experience) with
the profile singleton handled by ProfileController. Storage errors are
re-raised as StorageFailure so routes can classify them.
"""

from typing import Any, Dict, List, Optional, Sequence, Type

import structlog
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

import schemas
from database import BLOG, BLOG_COMMENT, EXPERIENCE, PROFILE, PROJECT, new_id, serialize, utcnow
from errors import NotFound, StorageFailure

logger = structlog.get_logger(__name__)


def present_comment(doc: Dict[str, Any]) -> Dict[str, Any]:
    created = doc.get("created_at")
    return {
        "id": str(doc["_id"]),
        "author": doc["author"],
        "message": doc["message"],
        "date": created.isoformat() if hasattr(created, "isoformat") else created,
    }


class ResourceController:
    def __init__(
        self,
        collection: str,
        resource_type: str,
        create_schema: Type[BaseModel],
        update_schema: Type[BaseModel],
        nullable_fields: Sequence[str] = (),
        snapshot_fields: Sequence[str] = ("title",),
        defaults: Optional[Dict[str, Any]] = None,
        sort_field: str = "created_date",
    ):
        self.collection = collection
        self.resource_type = resource_type
        self.create_schema = create_schema
        self.update_schema = update_schema
        self.nullable_fields = set(nullable_fields)
        self.snapshot_fields = tuple(snapshot_fields)
        self.defaults = defaults or {}
        self.sort_field = sort_field

    def _normalize(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """Store "" as null for nullable fields and never null out required ones."""
        out = {}
        for key, value in values.items():
            if key in self.nullable_fields:
                out[key] = value if value != "" else None
            elif value is not None:
                out[key] = value
        return out

    def present(self, doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        return serialize(doc)

    def list(self, database: Database, query: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        try:
            docs = database[self.collection].find(query or {}).sort(self.sort_field, DESCENDING)
            return [self.present(doc) for doc in docs]
        except PyMongoError as exc:
            raise StorageFailure(f"list {self.resource_type}", exc) from exc

    def get(self, database: Database, resource_id: str) -> Dict[str, Any]:
        try:
            doc = database[self.collection].find_one({"_id": resource_id})
        except PyMongoError as exc:
            raise StorageFailure(f"read {self.resource_type}", exc) from exc
        if doc is None:
            raise NotFound(self.resource_type, resource_id)
        return self.present(doc)

    def create(self, database: Database, payload: BaseModel) -> Dict[str, Any]:
        doc = {field: None for field in self.nullable_fields}
        doc.update(self.defaults)
        doc.update(self._normalize(payload.model_dump()))
        doc["_id"] = new_id()
        doc["created_date"] = utcnow()
        try:
            database[self.collection].insert_one(doc)
        except PyMongoError as exc:
            raise StorageFailure(f"create {self.resource_type}", exc) from exc
        logger.info("resource_created", resource_type=self.resource_type, resource_id=doc["_id"])
        return self.present(doc)

    def update(self, database: Database, resource_id: str, payload: BaseModel) -> Dict[str, Any]:
        changes = self._normalize(payload.model_dump(exclude_unset=True))
        try:
            if changes:
                doc = database[self.collection].find_one_and_update(
                    {"_id": resource_id},
                    {"$set": changes},
                    return_document=ReturnDocument.AFTER,
                )
            else:
                doc = database[self.collection].find_one({"_id": resource_id})
        except PyMongoError as exc:
            raise StorageFailure(f"update {self.resource_type}", exc) from exc
        if doc is None:
            raise NotFound(self.resource_type, resource_id)
        logger.info("resource_updated", resource_type=self.resource_type, resource_id=resource_id, fields=sorted(changes))
        return self.present(doc)

    def snapshot(self, database: Database, resource_id: str) -> Optional[Dict[str, Any]]:
        """Identifying fields of a row that is about to be deleted, or None."""
        projection = {field: 1 for field in self.snapshot_fields}
        try:
            doc = database[self.collection].find_one({"_id": resource_id}, projection)
        except PyMongoError as exc:
            raise StorageFailure(f"read {self.resource_type}", exc) from exc
        if doc is None:
            return None
        return {field: doc.get(field) for field in self.snapshot_fields}

    def delete(self, database: Database, resource_id: str) -> int:
        try:
            result = database[self.collection].delete_one({"_id": resource_id})
        except PyMongoError as exc:
            raise StorageFailure(f"delete {self.resource_type}", exc) from exc
        logger.info("resource_deleted", resource_type=self.resource_type, resource_id=resource_id, deleted=result.deleted_count)
        return result.deleted_count


class BlogController(ResourceController):
    """Blog posts, plus the published-only reads used by the public site."""

    def _with_comments(self, database: Database, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        ids = [doc["_id"] for doc in docs]
        by_post: Dict[str, List[Dict[str, Any]]] = {post_id: [] for post_id in ids}
        for comment in database[BLOG_COMMENT].find({"blog_id": {"$in": ids}}).sort("created_at", ASCENDING):
            by_post[comment["blog_id"]].append(present_comment(comment))
        out = []
        for doc in docs:
            post = self.present(doc)
            post["likes"] = post.get("likes") or 0
            post["comments"] = by_post[doc["_id"]]
            out.append(post)
        return out

    def published(self, database: Database) -> List[Dict[str, Any]]:
        try:
            docs = list(database[self.collection].find({"status": "published"}).sort(self.sort_field, DESCENDING))
            return self._with_comments(database, docs)
        except PyMongoError as exc:
            raise StorageFailure("list published blog", exc) from exc

    def find_published(self, database: Database, identifier: str) -> Dict[str, Any]:
        """Look a published post up by id or slug."""
        query = {"status": "published", "$or": [{"_id": identifier}, {"slug": identifier}]}
        try:
            doc = database[self.collection].find_one(query)
            if doc is None:
                raise NotFound(self.resource_type, identifier)
            return self._with_comments(database, [doc])[0]
        except PyMongoError as exc:
            raise StorageFailure("read published blog", exc) from exc


class ExperienceController(ResourceController):
    def present(self, doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        out = serialize(doc)
        # an ongoing entry has no end date, whatever was stored
        if out is not None and out.get("current"):
            out["end_date"] = None
        return out


class ProfileController:
    """The profile is a singleton stored under a fixed id."""

    resource_type = "profile"
    singleton_id = "profile"
    nullable_fields = {"profile_image_url", "resume_url", "github_url", "linkedin_url"}

    def get(self, database: Database) -> Optional[Dict[str, Any]]:
        try:
            doc = database[PROFILE].find_one({"_id": self.singleton_id})
        except PyMongoError as exc:
            raise StorageFailure("read profile", exc) from exc
        return serialize(doc)

    def upsert(self, database: Database, payload: BaseModel) -> Dict[str, Any]:
        changes = {}
        for key, value in payload.model_dump(exclude_unset=True).items():
            if key in self.nullable_fields:
                changes[key] = value or None
            elif value is not None:
                changes[key] = value
        now = utcnow()
        changes["updated_at"] = now
        try:
            # single atomic upsert on the fixed id: concurrent first writers cannot create two rows
            doc = database[PROFILE].find_one_and_update(
                {"_id": self.singleton_id},
                {"$set": changes, "$setOnInsert": {"created_at": now}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            raise StorageFailure("save profile", exc) from exc
        logger.info("profile_saved", fields=sorted(k for k in changes if k != "updated_at"))
        return serialize(doc)


blogs = BlogController(
    BLOG,
    "blog",
    schemas.BlogCreate,
    schemas.BlogUpdate,
    nullable_fields=("content", "excerpt", "cover_image_url"),
    snapshot_fields=("title", "slug", "status"),
    defaults={"likes": 0},
)

projects = ResourceController(
    PROJECT,
    "project",
    schemas.ProjectCreate,
    schemas.ProjectUpdate,
    nullable_fields=("github_url", "demo_url", "image_url"),
    snapshot_fields=("title", "category"),
)

experiences = ExperienceController(
    EXPERIENCE,
    "experience",
    schemas.ExperienceCreate,
    schemas.ExperienceUpdate,
    nullable_fields=("end_date", "description"),
    snapshot_fields=("title", "organization", "type"),
    sort_field="start_date",
)

profile = ProfileController()
