"""
API request and response models for Inkwell REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
blog/models.py, which own the internal domain representation. Route handlers
map between the two.

Input rules (name, email, password strength, title/content length, tag shape,
comment length) are enforced here so route handlers only ever see data that
already passed validation. Schema failures become 422 validation_error
responses via the handler in api/main.py.
"""

import re
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from auth.models import User
from blog.models import Comment, Post

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

NAME_PATTERN = r"^[A-Za-z\s\-']+$"
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
TAG_PATTERN = r"^[A-Za-z0-9\-_]+$"

_MAX_TAGS = 10

# Names and emails are trimmed before validation. Passwords are stored exactly
# as typed, so the models that carry one do not strip strings wholesale.
_Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50, pattern=NAME_PATTERN)]
_Email = Annotated[str, StringConstraints(strip_whitespace=True, max_length=254, pattern=EMAIL_PATTERN)]
_Tag = Annotated[str, Field(min_length=2, max_length=20, pattern=TAG_PATTERN)]
_Title = Annotated[str, Field(min_length=3, max_length=200)]
_Content = Annotated[str, Field(min_length=10, max_length=50000)]


def check_password_strength(value: str) -> str:
    """Registration-grade password rule: 8-128 chars with upper, lower, and digit."""
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if len(value) > 128:
        raise ValueError("Password is too long (maximum 128 characters)")
    if not (re.search(r"[A-Z]", value) and re.search(r"[a-z]", value) and re.search(r"\d", value)):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )
    return value


def _normalize_tags(values) -> list[str]:
    """Accept a list or a comma-separated string; trim, drop blanks, dedupe in order."""
    if values is None:
        return values
    if isinstance(values, str):
        values = values.split(",")
    seen: set[str] = set()
    result: list[str] = []
    for v in values:
        tag = str(v).strip()
        if tag and tag not in seen:
            seen.add(tag)
            result.append(tag)
    return result


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"


class PostStatusEnum(str, Enum):
    draft = "draft"
    published = "published"


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register. Self-registered accounts are always role=user."""

    name: _Name
    email: _Email
    password: str = Field(min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return check_password_strength(v)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    No strength rule here: a login form only needs a non-empty password.
    """

    email: _Email
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. The password hash is never serialized."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: str
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class LoginResponse(BaseModel):
    """Returned by login and register. The token is also set as an httpOnly cookie."""

    model_config = ConfigDict(frozen=True)

    message: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class MeResponse(BaseModel):
    """Identity decoded from the caller's session token."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    name: str
    email: str
    role: str


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class ProfileUpdate(BaseModel):
    """Request body for PUT /api/v1/profile.

    Changing email or password requires current_password. Name changes do not.
    """

    name: Optional[_Name] = None
    email: Optional[_Email] = None
    current_password: Optional[str] = Field(default=None, max_length=255)
    new_password: Optional[str] = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v is not None else v


class ProfileResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: UserResponse


# ---------------------------------------------------------------------------
# Admin -- user management
# ---------------------------------------------------------------------------


class AdminUserCreate(BaseModel):
    """Request body for POST /api/v1/admin/users."""

    name: _Name
    email: _Email
    password: str = Field(max_length=255)
    role: RoleEnum = RoleEnum.user

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return check_password_strength(v)


class AdminUserUpdate(BaseModel):
    """Request body for PUT /api/v1/admin/users/{id}. All fields optional."""

    name: Optional[_Name] = None
    email: Optional[_Email] = None
    role: Optional[RoleEnum] = None
    password: Optional[str] = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v is not None else v

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: Optional[str]) -> Optional[str]:
        return check_password_strength(v) if v is not None else v


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


class PostCreate(BaseModel):
    """Request body for POST /api/v1/posts and POST /api/v1/admin/posts."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: _Title
    content: _Content
    status: PostStatusEnum = PostStatusEnum.draft
    tags: list[_Tag] = Field(default_factory=list, max_length=_MAX_TAGS)
    excerpt: Optional[str] = Field(default=None, max_length=500)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, values) -> list[str]:
        """Runs before per-item validation so the pattern fires on trimmed tags."""
        return _normalize_tags(values) or []


class PostUpdate(BaseModel):
    """Request body for PUT /api/v1/posts/{id}. Omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[_Title] = None
    content: Optional[_Content] = None
    status: Optional[PostStatusEnum] = None
    tags: Optional[list[_Tag]] = Field(default=None, max_length=_MAX_TAGS)
    excerpt: Optional[str] = Field(default=None, max_length=500)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, values):
        return _normalize_tags(values)


class AuthorInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: Optional[str] = None  # None when the author account was deleted


class PostResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    content: str
    excerpt: str
    slug: str
    status: str
    tags: list[str]
    author: AuthorInfo
    created_at: str
    updated_at: str

    @classmethod
    def from_post(cls, post: Post, author_name: Optional[str]) -> "PostResponse":
        """Factory Method -- the mapping lives here, colocated with the output model."""
        return cls(
            id=post.id,
            title=post.title,
            content=post.content,
            excerpt=post.excerpt,
            slug=post.slug,
            status=post.status,
            tags=post.tags,
            author=AuthorInfo(id=post.author_id, name=author_name),
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


class Pagination(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int
    limit: int
    total: int
    pages: int


class PostListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    posts: list[PostResponse]
    pagination: Pagination


class TagsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    tags: list[str]


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class CommentCreate(BaseModel):
    """Request body for POST /api/v1/posts/{id_or_slug}/comments."""

    model_config = ConfigDict(str_strip_whitespace=True)

    content: str = Field(min_length=1, max_length=1000)
    parent_comment_id: Optional[int] = None


class CommentResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    post_id: int
    content: str
    author: AuthorInfo
    parent_comment_id: Optional[int]
    created_at: str

    @classmethod
    def from_comment(cls, comment: Comment, author_name: Optional[str]) -> "CommentResponse":
        return cls(
            id=comment.id,
            post_id=comment.post_id,
            content=comment.content,
            author=AuthorInfo(id=comment.author_id, name=author_name),
            parent_comment_id=comment.parent_comment_id,
            created_at=comment.created_at,
        )


# ---------------------------------------------------------------------------
# Shared envelopes
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
