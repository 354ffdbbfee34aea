"""Blog and build-journey posts."""
import logging
import math
from datetime import datetime, UTC
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.models.base import BlogPostStatus, BlogPostType
from superoptimised.models.blog_post import BlogPost
from superoptimised.schemas.blog import BlogPostCreate, BlogPostList, BlogPostOut, BlogPostUpdate
from superoptimised.utils.exceptions import BlogPostNotFoundError, DuplicateSlugError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50


class BlogService:
    """Public reads of published posts plus admin editing."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_posts(
        self,
        page: int = 1,
        limit: int = 10,
        post_type: Optional[BlogPostType] = None,
        featured: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> BlogPostList:
        """Published posts, newest first, one page at a time."""
        page = max(1, page)
        limit = min(max(1, limit), MAX_PAGE_SIZE)

        filters = [BlogPost.status == BlogPostStatus.PUBLISHED.value]
        if post_type is not None:
            filters.append(BlogPost.post_type == post_type.value)
        if featured is not None:
            filters.append(BlogPost.featured == featured)
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(
                BlogPost.title.ilike(pattern),
                BlogPost.excerpt.ilike(pattern),
                BlogPost.content.ilike(pattern),
            ))

        total = int((await self.db.execute(select(func.count(BlogPost.post_id)).where(*filters))).scalar_one())
        result = await self.db.execute(
            select(BlogPost)
            .where(*filters)
            .order_by(BlogPost.published_at.desc(), BlogPost.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        posts = [BlogPostOut.model_validate(post) for post in result.scalars().all()]

        return BlogPostList(
            posts=posts,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total else 0,
            has_more=page * limit < total,
        )

    async def get_by_slug(self, slug: str) -> BlogPost:
        result = await self.db.execute(
            select(BlogPost).where(
                BlogPost.slug == slug,
                BlogPost.status == BlogPostStatus.PUBLISHED.value,
            )
        )
        post = result.scalar_one_or_none()
        if post is None:
            raise BlogPostNotFoundError(slug)
        return post

    async def list_all(self) -> list[BlogPost]:
        result = await self.db.execute(select(BlogPost).order_by(BlogPost.created_at.desc()))
        return list(result.scalars().all())

    async def _get_by_slug_any_status(self, slug: str) -> Optional[BlogPost]:
        result = await self.db.execute(select(BlogPost).where(BlogPost.slug == slug))
        return result.scalar_one_or_none()

    async def _get(self, post_id) -> BlogPost:
        post = await self.db.get(BlogPost, post_id)
        if post is None:
            raise BlogPostNotFoundError()
        return post

    @staticmethod
    def _stamp_published(post: BlogPost) -> None:
        if post.status == BlogPostStatus.PUBLISHED.value and post.published_at is None:
            post.published_at = datetime.now(UTC)

    async def _commit_slug(self, post: BlogPost) -> None:
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise DuplicateSlugError(post.slug) from exc
        await self.db.refresh(post)

    async def create(self, data: BlogPostCreate) -> BlogPost:
        if await self._get_by_slug_any_status(data.slug) is not None:
            raise DuplicateSlugError(data.slug)

        post = BlogPost(
            slug=data.slug,
            title=data.title.strip(),
            excerpt=data.excerpt,
            content=data.content,
            post_type=data.post_type.value,
            status=data.status.value,
            featured=data.featured,
            published_at=data.published_at,
        )
        self._stamp_published(post)
        self.db.add(post)
        await self._commit_slug(post)
        logger.info(f"Created {post.post_type} post {post.slug} ({post.status})")
        return post

    async def update(self, post_id, data: BlogPostUpdate) -> BlogPost:
        post = await self._get(post_id)
        changes = data.model_dump(exclude_unset=True)

        new_slug = changes.get("slug")
        if new_slug and new_slug != post.slug and await self._get_by_slug_any_status(new_slug) is not None:
            raise DuplicateSlugError(new_slug)

        for field, value in changes.items():
            if value is None and field not in ("excerpt", "published_at"):
                continue
            if field in ("post_type", "status"):
                value = value.value
            setattr(post, field, value)

        self._stamp_published(post)
        await self._commit_slug(post)
        logger.info(f"Updated post {post.slug}: {sorted(changes)}")
        return post

    async def delete(self, post_id) -> None:
        post = await self._get(post_id)
        await self.db.delete(post)
        await self.db.commit()
        logger.info(f"Deleted post {post.slug}")
