"""Blog and build-journey posts."""
import uuid
from datetime import datetime, UTC

from sqlalchemy import Boolean, Column, DateTime, Index, String, Text

from superoptimised.database import Base
from superoptimised.models.base import BlogPostStatus, BlogPostType, get_uuid_column


class BlogPost(Base):
    __tablename__ = "blog_posts"

    post_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    slug = Column(String(200), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    excerpt = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    post_type = Column(String(20), nullable=False, default=BlogPostType.BLOG.value)
    status = Column(String(20), nullable=False, default=BlogPostStatus.DRAFT.value)
    featured = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_blog_posts_status_published", "status", "published_at"),
    )

    def __repr__(self):
        return f"<BlogPost(slug={self.slug}, status={self.status})>"
