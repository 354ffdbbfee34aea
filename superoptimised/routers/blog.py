"""Blog and journey post endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.database import get_db
from superoptimised.dependencies import get_admin_user
from superoptimised.models.base import BlogPostType
from superoptimised.models.user import User
from superoptimised.schemas.blog import BlogPostCreate, BlogPostList, BlogPostOut, BlogPostUpdate
from superoptimised.services import BlogService

router = APIRouter(prefix="/blog", tags=["blog"])
admin_router = APIRouter(prefix="/admin/blog", tags=["admin"])


@router.get("/posts", response_model=BlogPostList)
async def list_posts(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    post_type: Optional[BlogPostType] = Query(default=None, alias="type"),
    featured: Optional[bool] = None,
    search: Optional[str] = Query(default=None, max_length=200),
    db: AsyncSession = Depends(get_db),
):
    return await BlogService(db).list_posts(
        page=page, limit=limit, post_type=post_type, featured=featured, search=search,
    )


@router.get("/posts/{slug}", response_model=BlogPostOut)
async def get_post(slug: str, db: AsyncSession = Depends(get_db)):
    return await BlogService(db).get_by_slug(slug)


@admin_router.get("/posts", response_model=list[BlogPostOut])
async def admin_list_posts(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    """All posts regardless of status."""
    return await BlogService(db).list_all()


@admin_router.post("/posts", response_model=BlogPostOut, status_code=201)
async def create_post(
    request: BlogPostCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await BlogService(db).create(request)


@admin_router.patch("/posts/{post_id}", response_model=BlogPostOut)
async def update_post(
    post_id: UUID,
    request: BlogPostUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await BlogService(db).update(post_id, request)


@admin_router.delete("/posts/{post_id}", status_code=204)
async def delete_post(
    post_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    await BlogService(db).delete(post_id)
    return Response(status_code=204)
