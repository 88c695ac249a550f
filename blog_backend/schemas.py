import re
from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python; both accepted on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# --- Envelope ---

class Envelope(ApiModel, Generic[T]):
    success: bool
    data: T | None = None
    error_message: str | None = None


# --- Users ---

class UserProfileResponse(ApiModel):
    id: int
    display_name: str | None = None
    bio: str | None = None
    profile_image_url: str | None = None
    created_at: datetime | None = None


class UserSummary(ApiModel):
    id: int
    username: str
    profile: UserProfileResponse | None = None


# --- Taxonomy ---

class CategoryResponse(ApiModel):
    id: int
    name: str
    slug: str
    created_at: datetime | None = None


class TagResponse(ApiModel):
    id: int
    name: str
    slug: str
    created_at: datetime | None = None


# --- Article ---

def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


def _check_slug(value: str) -> str:
    value = value.strip()
    if not SLUG_RE.match(value):
        raise ValueError("must be lowercase letters, digits and single hyphens")
    return value


class ArticleCreate(ApiModel):
    title: str = Field(max_length=300)
    slug: str | None = Field(None, max_length=350)
    content: str
    category_id: int
    is_published: bool = False
    tag_ids: list[int] = []

    @field_validator("title", "content")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _strip_required(value)

    @field_validator("slug")
    @classmethod
    def slug_format(cls, value: str | None) -> str | None:
        return _check_slug(value) if value is not None else None


class ArticleUpdate(ApiModel):
    title: str | None = Field(None, max_length=300)
    slug: str | None = Field(None, max_length=350)
    content: str | None = None
    category_id: int | None = None
    is_published: bool | None = None
    tag_ids: list[int] | None = None

    @field_validator("title", "content")
    @classmethod
    def not_blank(cls, value: str | None) -> str | None:
        return _strip_required(value) if value is not None else None

    @field_validator("slug")
    @classmethod
    def slug_format(cls, value: str | None) -> str | None:
        return _check_slug(value) if value is not None else None


class ArticleTagsUpdate(ApiModel):
    tag_ids: list[int]


class ArticleResponse(ApiModel):
    id: int
    title: str
    slug: str
    content: str
    is_published: bool
    is_deleted: bool
    published_at: datetime | None = None
    created_at: datetime | None = None
    author: UserSummary | None = None
    category: CategoryResponse | None = None
    tags: list[TagResponse] = []


class ArticlePage(ApiModel):
    items: list[ArticleResponse]
    current_page: int
    page_size: int
    total_count: int
    is_ascending: bool


# --- Comment ---

class CommentCreate(ApiModel):
    content: str
    article_id: int | None = None
    parent_comment_id: int | None = None

    @field_validator("content")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _strip_required(value)


class CommentUpdate(ApiModel):
    content: str | None = None
    article_id: int | None = None
    parent_comment_id: int | None = None

    @field_validator("content")
    @classmethod
    def not_blank(cls, value: str | None) -> str | None:
        return _strip_required(value) if value is not None else None


class CommentResponse(ApiModel):
    id: int
    content: str
    is_deleted: bool
    created_at: datetime | None = None
    user: UserSummary | None = None
    children: list["CommentResponse"] = []


CommentResponse.model_rebuild()
