import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import structlog
from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.database import Database
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

import admin
import contact
import controllers
from admin import get_classifier, validation_error
from audit import AuditLogger, get_audit_logger
from auth import authenticate_admin, require_admin, resolve_session, session_token
from config import Settings, get_settings
from database import db, ensure_indexes, get_db
from errors import ErrorClassifier, NotFound, StorageFailure
from fallback import FallbackData, get_fallback
from likes import post_comment, toggle_like
from schemas import Comment, CommentCreate, LikeRequest, LikeResponse, LoginRequest, Session, Token
from validation import ValidationFailure, field_errors_from, validate


# ===================
# Logging (structlog)
# ===================
def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=logging.DEBUG if settings.is_development else logging.INFO, format="%(message)s")
    renderer = structlog.dev.ConsoleRenderer() if settings.is_development else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


_settings = get_settings()
configure_logging(_settings)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if db is not None:
        try:
            ensure_indexes(db)
        except Exception as exc:
            logger.error("ensure_indexes_failed", error=str(exc))
    else:
        logger.warning("database_not_configured", mode="fallback")
    yield


# ==================
# FastAPI app config
# ==================
app = FastAPI(title=_settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = contact.limiter
app.add_exception_handler(RateLimitExceeded, contact.rate_limit_exceeded)

app.include_router(admin.router)
app.include_router(contact.router)
app.mount("/uploads", StaticFiles(directory=_settings.upload_dir, check_dir=False), name="uploads")


# ==================
# Exception handlers
# ==================
def _request_settings(request: Request) -> Settings:
    # honour dependency overrides so handlers see the same settings as routes
    provider = request.app.dependency_overrides.get(get_settings, get_settings)
    return provider()


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    classifier = ErrorClassifier(_request_settings(request).environment)
    failure = ValidationFailure(field_errors_from(exc))
    return JSONResponse(
        validation_error(failure, classifier, path=request.url.path).detail,
        status_code=400,
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    classifier = ErrorClassifier(_request_settings(request).environment)
    message = classifier.safe_error(exc, "unexpected_error", path=request.url.path, method=request.method)
    return JSONResponse({"error": message}, status_code=500)


# ======
# Routes
# ======
@app.get("/")
def root():
    return {"status": "ok", "service": "portfolio-api"}


@app.get("/test")
def test_database(database: Optional[Database] = Depends(get_db)):
    ok = database is not None
    collections = []
    if ok:
        try:
            collections = database.list_collection_names()
        except Exception as exc:
            logger.warning("list_collections_failed", error=str(exc))
    return {"backend": "running", "database": "connected" if ok else "not-available", "collections": collections[:10]}


# Auth
@app.post("/api/auth/login", response_model=Token)
def login(
    data: LoginRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    audit: AuditLogger = Depends(get_audit_logger),
):
    session = authenticate_admin(data.email, data.password, settings)
    if session is None:
        logger.info("login_failed", email=data.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = session_token(session, settings)
    audit.record(session.user_id, "LOGIN", "profile", None, request)
    response = JSONResponse(Token(access_token=token).model_dump())
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=not settings.is_development,
        samesite="lax",
    )
    return response


@app.post("/api/auth/logout")
def logout(
    request: Request,
    settings: Settings = Depends(get_settings),
    audit: AuditLogger = Depends(get_audit_logger),
):
    session = resolve_session(request, settings)
    if session is not None:
        audit.record(session.user_id, "LOGOUT", "profile", None, request)
    response = JSONResponse({"success": True})
    response.delete_cookie(settings.session_cookie_name)
    return response


@app.get("/api/auth/session")
def current_session(session: Session = Depends(require_admin)):
    return session.model_dump()


# Portfolio (public reads never fail: any backend problem falls back to bundled data)
@app.get("/api/portfolio/user")
def portfolio_user(database: Optional[Database] = Depends(get_db), fallback: FallbackData = Depends(get_fallback)):
    if database is None:
        return fallback.profile
    try:
        profile = controllers.profile.get(database)
    except StorageFailure as exc:
        logger.error("profile_fetch_failed", error=str(exc))
        return fallback.profile
    if profile is None:
        return fallback.profile
    profile.pop("id", None)
    for key in ("created_at", "updated_at"):
        profile.pop(key, None)
    return profile


def _fallback_projects(fallback: FallbackData, category: str, featured: bool) -> List[Dict[str, Any]]:
    if featured:
        return [p for p in fallback.featured_projects() if category == "all" or p.get("category") == category]
    return fallback.projects_by_category(category)


@app.get("/api/portfolio/projects")
def portfolio_projects(
    category: str = "all",
    featured: bool = False,
    database: Optional[Database] = Depends(get_db),
    fallback: FallbackData = Depends(get_fallback),
):
    if database is None:
        return _fallback_projects(fallback, category, featured)
    query: Dict[str, Any] = {}
    if category != "all":
        query["category"] = category
    if featured:
        query["featured"] = True
    try:
        return controllers.projects.list(database, query)
    except StorageFailure as exc:
        logger.error("projects_fetch_failed", error=str(exc))
        return _fallback_projects(fallback, category, featured)


@app.get("/api/portfolio/experiences")
def portfolio_experiences(database: Optional[Database] = Depends(get_db), fallback: FallbackData = Depends(get_fallback)):
    if database is None:
        return fallback.experiences
    try:
        return controllers.experiences.list(database)
    except StorageFailure as exc:
        logger.error("experiences_fetch_failed", error=str(exc))
        return fallback.experiences


# Blog
@app.get("/api/blogs")
def list_blogs(database: Optional[Database] = Depends(get_db), fallback: FallbackData = Depends(get_fallback)):
    if database is None:
        return fallback.blog_posts
    try:
        return controllers.blogs.published(database)
    except StorageFailure as exc:
        logger.error("blogs_fetch_failed", error=str(exc))
        return fallback.blog_posts


@app.get("/api/blogs/{identifier}")
def get_blog(
    identifier: str,
    database: Optional[Database] = Depends(get_db),
    fallback: FallbackData = Depends(get_fallback),
):
    if database is not None:
        try:
            return controllers.blogs.find_published(database, identifier)
        except NotFound:
            pass
        except StorageFailure as exc:
            logger.error("blog_fetch_failed", identifier=identifier, error=str(exc))
    post = fallback.find_post(identifier)
    if post is None:
        raise HTTPException(status_code=404, detail="Blog post not found")
    return post


@app.post("/api/blogs/{post_id}/like", response_model=LikeResponse, response_model_exclude_none=True)
def like_blog(
    post_id: str,
    payload: Optional[LikeRequest] = Body(None),
    database: Optional[Database] = Depends(get_db),
    fallback: FallbackData = Depends(get_fallback),
    classifier: ErrorClassifier = Depends(get_classifier),
):
    unlike = payload.unlike if payload else False
    try:
        return toggle_like(database, fallback, post_id, unlike)
    except NotFound:
        raise HTTPException(status_code=404, detail="Blog post not found")
    except StorageFailure as exc:
        raise HTTPException(status_code=500, detail=classifier.safe_database_error(exc, "like_failed", post_id=post_id))


@app.post("/api/blogs/{post_id}/comment", response_model=Comment, status_code=201)
def comment_blog(
    post_id: str,
    body: Any = Body(None),
    database: Optional[Database] = Depends(get_db),
    classifier: ErrorClassifier = Depends(get_classifier),
):
    if database is None:
        raise HTTPException(status_code=503, detail="Comments are not available. Database is not configured.")
    try:
        payload = validate(body, CommentCreate)
    except ValidationFailure as exc:
        raise validation_error(exc, classifier, post_id=post_id)
    try:
        comment = post_comment(database, post_id, payload)
    except NotFound:
        classifier.log("comment_target_missing", f"blog {post_id} not found or not published", post_id=post_id)
        raise HTTPException(status_code=404, detail="Blog not found")
    except StorageFailure as exc:
        raise HTTPException(
            status_code=500,
            detail=classifier.safe_database_error(exc, "comment_insert_failed", post_id=post_id, author=payload.author),
        )
    return comment


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
