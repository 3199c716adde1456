"""
Schemas for the Portfolio API

Request payloads are validated against these models before anything is
written. Create models require the mandatory fields; update models make
every field optional but keep the same per-field constraints.
"""

import re
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, EmailStr, Field, HttpUrl, TypeAdapter, field_validator

from validation import split_csv

SLUG_PATTERN = r"^[a-z0-9-]+$"

BlogStatus = Literal["draft", "published"]
ProjectCategory = Literal["machine_learning", "deep_learning", "data_science", "web_development", "other"]
ExperienceType = Literal["education", "work", "research"]
AuditAction = Literal["CREATE", "UPDATE", "DELETE", "UPLOAD", "LOGIN", "LOGOUT"]
ResourceType = Literal["profile", "project", "blog", "experience", "file"]

_http_url = TypeAdapter(HttpUrl)


def _url_or_empty(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    try:
        _http_url.validate_python(value)
    except ValueError:
        raise ValueError("must be a valid URL") from None
    return value


def _nullable_date(value: Optional[str]) -> Optional[str]:
    return value or None


def _optional_description(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    if len(value) < 10:
        raise ValueError("must be at least 10 characters")
    return value


# "" means "no value" for these and is stored as null
UrlOrEmpty = Annotated[Optional[str], AfterValidator(_url_or_empty)]
NullableDate = Annotated[Optional[str], AfterValidator(_nullable_date)]
StringList = Annotated[List[str], BeforeValidator(split_csv)]


# ==========
# Blog posts
# ==========
class BlogCreate(BaseModel):
    title: str = Field(..., min_length=5)
    slug: str = Field(..., pattern=SLUG_PATTERN)
    content: Optional[str] = None
    excerpt: Optional[str] = Field(None, max_length=400)
    cover_image_url: UrlOrEmpty = None
    tags: StringList = []
    status: BlogStatus = "draft"
    featured: bool = False


class BlogUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=5)
    slug: Optional[str] = Field(None, pattern=SLUG_PATTERN)
    content: Optional[str] = None
    excerpt: Optional[str] = Field(None, max_length=400)
    cover_image_url: UrlOrEmpty = None
    tags: Optional[StringList] = None
    status: Optional[BlogStatus] = None
    featured: Optional[bool] = None


# ========
# Projects
# ========
class ProjectCreate(BaseModel):
    title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=10)
    technologies: StringList = []
    github_url: UrlOrEmpty = None
    demo_url: UrlOrEmpty = None
    image_url: UrlOrEmpty = None
    category: ProjectCategory
    featured: bool = False


class ProjectUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3)
    description: Optional[str] = Field(None, min_length=10)
    technologies: Optional[StringList] = None
    github_url: UrlOrEmpty = None
    demo_url: UrlOrEmpty = None
    image_url: UrlOrEmpty = None
    category: Optional[ProjectCategory] = None
    featured: Optional[bool] = None


# ===========
# Experiences
# ===========
class ExperienceCreate(BaseModel):
    title: str = Field(..., min_length=3)
    organization: str = Field(..., min_length=2)
    start_date: str = Field(..., min_length=1)
    end_date: NullableDate = None
    description: Optional[str] = Field(None, min_length=10)
    type: ExperienceType
    current: bool = False


class ExperienceUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3)
    organization: Optional[str] = Field(None, min_length=2)
    start_date: Optional[str] = Field(None, min_length=1)
    end_date: NullableDate = None
    # "" clears the description on update
    description: Annotated[Optional[str], AfterValidator(_optional_description)] = None
    type: Optional[ExperienceType] = None
    current: Optional[bool] = None


# =======
# Profile
# =======
class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=120)
    email: Optional[EmailStr] = None
    bio: Optional[str] = Field(None, max_length=2000)
    title: Optional[str] = Field(None, max_length=120)
    location: Optional[str] = Field(None, max_length=120)
    profile_image_url: UrlOrEmpty = None
    resume_url: UrlOrEmpty = None
    github_url: UrlOrEmpty = None
    linkedin_url: UrlOrEmpty = None


# ================
# Public endpoints
# ================
class CommentCreate(BaseModel):
    author: str = Field(..., min_length=2, max_length=50)
    message: str = Field(..., min_length=5, max_length=500)


class Comment(BaseModel):
    id: str
    author: str
    message: str
    date: str


class LikeRequest(BaseModel):
    unlike: bool = False


class LikeResponse(BaseModel):
    likes: int
    warning: Optional[str] = None


CONTACT_NAME_RE = re.compile(r"^[a-zA-Z\s\-']{2,50}$")
CONTACT_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def sanitize_input(value: Any) -> Any:
    """Trim, drop angle brackets and cap length before any other check."""
    if not isinstance(value, str):
        return value
    return value.strip().replace("<", "").replace(">", "")[:5000]


Sanitized = Annotated[str, BeforeValidator(sanitize_input)]


class ContactMessage(BaseModel):
    # Stricter than the blog comment author rule
    name: Sanitized
    email: Sanitized
    message: Sanitized

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        if not CONTACT_NAME_RE.match(value):
            raise ValueError("Invalid name format. Only letters, spaces, and hyphens allowed.")
        return value

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        if not CONTACT_EMAIL_RE.match(value) or len(value) > 254:
            raise ValueError("Invalid email format")
        return value

    @field_validator("message")
    @classmethod
    def check_message(cls, value: str) -> str:
        # sanitize_input already caps the length at 5000
        if len(value) < 10:
            raise ValueError("Invalid message: it must be at least 10 characters.")
        return value


# ====
# Auth
# ====
class LoginRequest(BaseModel):
    email: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class Session(BaseModel):
    user_id: str
    email: Optional[str] = None
    role: str


# =========
# Audit log
# =========
class AuditLogEntry(BaseModel):
    user_id: str
    action: AuditAction
    resource_type: ResourceType
    resource_id: Optional[str] = None
    ip_address: str = "unknown"
    user_agent: str = "unknown"
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime
