"""Blog and journey post schemas."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from superoptimised.models.base import BlogPostStatus, BlogPostType
from superoptimised.schemas.base import BaseSchema

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class BlogPostCreate(BaseSchema):
    slug: str = Field(min_length=1, max_length=200, pattern=SLUG_PATTERN)
    title: str = Field(min_length=1, max_length=255)
    excerpt: Optional[str] = None
    content: str = Field(min_length=1)
    post_type: BlogPostType = BlogPostType.BLOG
    status: BlogPostStatus = BlogPostStatus.DRAFT
    featured: bool = False
    published_at: Optional[datetime] = None


class BlogPostUpdate(BaseSchema):
    slug: Optional[str] = Field(default=None, min_length=1, max_length=200, pattern=SLUG_PATTERN)
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    excerpt: Optional[str] = None
    content: Optional[str] = Field(default=None, min_length=1)
    post_type: Optional[BlogPostType] = None
    status: Optional[BlogPostStatus] = None
    featured: Optional[bool] = None
    published_at: Optional[datetime] = None


class BlogPostOut(BaseSchema):
    post_id: UUID
    slug: str
    title: str
    excerpt: Optional[str] = None
    content: str
    post_type: str
    status: str
    featured: bool
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class BlogPostList(BaseSchema):
    posts: list[BlogPostOut]
    total: int
    page: int
    limit: int
    total_pages: int
    has_more: bool
