"""
Admin API

Every route runs the same pipeline: admin session check, payload
validation, the write itself, then an audit entry once the write has
committed. Failures are turned into safe client messages by the
ErrorClassifier.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pymongo.database import Database
from starlette.datastructures import FormData, UploadFile

import controllers
from audit import AuditLogger, get_audit_logger
from auth import require_admin
from config import Settings, get_settings
from controllers import ResourceController
from database import get_db
from errors import ErrorClassifier, NotFound, StorageFailure
from schemas import ProfileUpdate, Session
from uploads import LocalFileStore, UploadRejected, generate_unique_filename, validate_upload
from validation import ValidationFailure, validate

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin")


# ============
# Dependencies
# ============
def get_classifier(settings: Settings = Depends(get_settings)) -> ErrorClassifier:
    return ErrorClassifier(settings.environment)


def require_store(database: Optional[Database] = Depends(get_db)) -> Database:
    if database is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return database


async def json_body(request: Request) -> Any:
    # read after the session check so unauthenticated callers never reach parsing
    try:
        return await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")


async def upload_form(request: Request) -> FormData:
    # parsed only after the session check, like json_body; starlette answers 400 on a malformed body
    return await request.form()


def get_file_store(settings: Settings = Depends(get_settings)) -> LocalFileStore:
    return LocalFileStore(settings.upload_dir, settings.public_base_url)


# =======
# Helpers
# =======
def validation_error(exc: ValidationFailure, classifier: ErrorClassifier, **metadata: Any) -> HTTPException:
    detail: Dict[str, Any] = {"error": classifier.safe_validation_error(exc, "admin_validation_failed", **metadata)}
    if classifier.is_development:
        detail["fields"] = exc.field_errors
    return HTTPException(status_code=400, detail=detail)


def storage_error(exc: StorageFailure, classifier: ErrorClassifier, **metadata: Any) -> HTTPException:
    return HTTPException(status_code=500, detail=classifier.safe_database_error(exc, "admin_storage_failed", **metadata))


def not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Not found")


def parse(body: Any, schema, classifier: ErrorClassifier, **metadata: Any):
    try:
        return validate(body, schema)
    except ValidationFailure as exc:
        raise validation_error(exc, classifier, **metadata)


# ======================
# Blog/project/experience
# ======================
def register_resource(path: str, controller: ResourceController) -> None:
    kind = controller.resource_type

    @router.get(f"/{path}", name=f"list_{path}")
    def list_resources(
        session: Session = Depends(require_admin),
        database: Database = Depends(require_store),
        classifier: ErrorClassifier = Depends(get_classifier),
    ):
        try:
            return controller.list(database)
        except StorageFailure as exc:
            raise storage_error(exc, classifier, user_id=session.user_id)

    @router.get(f"/{path}/{{resource_id}}", name=f"get_{kind}")
    def get_resource(
        resource_id: str,
        session: Session = Depends(require_admin),
        database: Database = Depends(require_store),
        classifier: ErrorClassifier = Depends(get_classifier),
    ):
        try:
            return controller.get(database, resource_id)
        except NotFound:
            raise not_found()
        except StorageFailure as exc:
            raise storage_error(exc, classifier, user_id=session.user_id, resource_id=resource_id)

    @router.post(f"/{path}", name=f"create_{kind}", status_code=201)
    def create_resource(
        request: Request,
        session: Session = Depends(require_admin),
        body: Any = Depends(json_body),
        database: Database = Depends(require_store),
        classifier: ErrorClassifier = Depends(get_classifier),
        audit: AuditLogger = Depends(get_audit_logger),
    ):
        payload = parse(body, controller.create_schema, classifier, user_id=session.user_id, resource_type=kind)
        try:
            created = controller.create(database, payload)
        except StorageFailure as exc:
            raise storage_error(exc, classifier, user_id=session.user_id, resource_type=kind)
        audit.record(session.user_id, "CREATE", kind, created["id"], request, {"title": created.get("title")})
        return JSONResponse(created, status_code=201)

    @router.put(f"/{path}/{{resource_id}}", name=f"update_{kind}")
    def update_resource(
        resource_id: str,
        request: Request,
        session: Session = Depends(require_admin),
        body: Any = Depends(json_body),
        database: Database = Depends(require_store),
        classifier: ErrorClassifier = Depends(get_classifier),
        audit: AuditLogger = Depends(get_audit_logger),
    ):
        payload = parse(body, controller.update_schema, classifier, user_id=session.user_id, resource_id=resource_id)
        try:
            updated = controller.update(database, resource_id, payload)
        except NotFound:
            raise not_found()
        except StorageFailure as exc:
            raise storage_error(exc, classifier, user_id=session.user_id, resource_id=resource_id)
        audit.record(
            session.user_id, "UPDATE", kind, resource_id, request,
            {"fields": sorted(payload.model_fields_set), "title": updated.get("title")},
        )
        return updated

    @router.delete(f"/{path}/{{resource_id}}", name=f"delete_{kind}")
    def delete_resource(
        resource_id: str,
        request: Request,
        session: Session = Depends(require_admin),
        database: Database = Depends(require_store),
        classifier: ErrorClassifier = Depends(get_classifier),
        audit: AuditLogger = Depends(get_audit_logger),
    ):
        try:
            snapshot = controller.snapshot(database, resource_id)
            controller.delete(database, resource_id)
        except StorageFailure as exc:
            raise storage_error(exc, classifier, user_id=session.user_id, resource_id=resource_id)
        # snapshot is None when the row was already gone
        audit.record(session.user_id, "DELETE", kind, resource_id, request, snapshot)
        return {"success": True}


register_resource("blogs", controllers.blogs)
register_resource("projects", controllers.projects)
register_resource("experiences", controllers.experiences)


# =======
# Profile
# =======
@router.get("/profile")
def get_profile(
    session: Session = Depends(require_admin),
    database: Database = Depends(require_store),
    classifier: ErrorClassifier = Depends(get_classifier),
):
    try:
        return controllers.profile.get(database)
    except StorageFailure as exc:
        raise storage_error(exc, classifier, user_id=session.user_id)


@router.api_route("/profile", methods=["PATCH", "PUT"])
def save_profile(
    request: Request,
    session: Session = Depends(require_admin),
    body: Any = Depends(json_body),
    database: Database = Depends(require_store),
    classifier: ErrorClassifier = Depends(get_classifier),
    audit: AuditLogger = Depends(get_audit_logger),
):
    payload = parse(body, ProfileUpdate, classifier, user_id=session.user_id, resource_type="profile")
    try:
        saved = controllers.profile.upsert(database, payload)
    except StorageFailure as exc:
        raise storage_error(exc, classifier, user_id=session.user_id, resource_type="profile")
    audit.record(session.user_id, "UPDATE", "profile", saved["id"], request, {"fields": sorted(payload.model_fields_set)})
    return {"success": True, "profile": saved}


# ============
# File uploads
# ============
@router.post("/upload")
def upload_file(
    request: Request,
    session: Session = Depends(require_admin),
    form: FormData = Depends(upload_form),
    settings: Settings = Depends(get_settings),
    store: LocalFileStore = Depends(get_file_store),
    classifier: ErrorClassifier = Depends(get_classifier),
    audit: AuditLogger = Depends(get_audit_logger),
):
    file = form.get("file")
    if not isinstance(file, UploadFile) or not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    directory = form.get("directory")
    if not isinstance(directory, str):
        directory = "misc"
    data = file.file.read(settings.max_upload_bytes + 1)
    try:
        validate_upload(file.content_type, len(data), settings.max_upload_bytes)
    except UploadRejected as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    file_name = generate_unique_filename(file.filename)
    try:
        path = store.save(directory, file_name, data)
    except StorageFailure as exc:
        raise HTTPException(
            status_code=500,
            detail=classifier.safe_error(exc, "upload_failed", user_id=session.user_id, file_name=file_name),
        )
    audit.record(
        session.user_id, "UPLOAD", "file", path, request,
        {"original_name": file.filename, "content_type": file.content_type, "size": len(data)},
    )
    return {"success": True, "url": store.public_url(path), "path": path, "fileName": file_name}


@router.delete("/upload")
def delete_file(
    request: Request,
    path: Optional[str] = Query(None),
    session: Session = Depends(require_admin),
    store: LocalFileStore = Depends(get_file_store),
    classifier: ErrorClassifier = Depends(get_classifier),
    audit: AuditLogger = Depends(get_audit_logger),
):
    if not path:
        raise HTTPException(status_code=400, detail="No file path provided")
    try:
        deleted = store.delete(path)
    except UploadRejected as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except StorageFailure as exc:
        raise HTTPException(
            status_code=500,
            detail=classifier.safe_error(exc, "file_delete_failed", user_id=session.user_id, path=path),
        )
    if not deleted:
        raise not_found()
    audit.record(session.user_id, "DELETE", "file", path, request)
    return {"success": True, "message": "File deleted successfully"}


# =========
# Audit log
# =========
@router.get("/audit-logs")
def list_audit_logs(
    user_id: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    session: Session = Depends(require_admin),
    audit: AuditLogger = Depends(get_audit_logger),
):
    if resource_type and resource_id:
        return audit.for_resource(resource_type, resource_id)
    if user_id:
        return audit.for_user(user_id, limit)
    return audit.recent(limit)


@router.get("/audit-logs/stats")
def audit_log_stats(
    session: Session = Depends(require_admin),
    audit: AuditLogger = Depends(get_audit_logger),
):
    return audit.stats()
