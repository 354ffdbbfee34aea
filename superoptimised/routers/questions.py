"""Question endpoints: public reads and admin management."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.database import get_db
from superoptimised.dependencies import get_admin_user
from superoptimised.models.user import User
from superoptimised.schemas.question import (
    DeactivateResult,
    QuestionActiveUpdate,
    QuestionAnalytics,
    QuestionCreate,
    QuestionOrderItem,
    QuestionOut,
    QuestionResults,
    QuestionUpdate,
)
from superoptimised.services import QuestionService

router = APIRouter(prefix="/questions", tags=["questions"])
admin_router = APIRouter(prefix="/admin/questions", tags=["admin"])


@router.get("", response_model=list[QuestionOut])
async def list_questions(
    category: Optional[str] = Query(default=None, max_length=100),
    limit: int = Query(default=10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """Live questions for the voting page."""
    return await QuestionService(db).list_active(category=category, limit=limit)


@router.get("/{question_id}", response_model=QuestionOut)
async def get_question(question_id: UUID, db: AsyncSession = Depends(get_db)):
    return await QuestionService(db).get_live(question_id)


@router.get("/{question_id}/results", response_model=QuestionResults)
async def get_question_results(question_id: UUID, db: AsyncSession = Depends(get_db)):
    """Aggregated results, shaped by question type."""
    return await QuestionService(db).get_results(question_id)


@admin_router.get("", response_model=list[QuestionOut])
async def admin_list_questions(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await QuestionService(db).list_all()


@admin_router.post("", response_model=QuestionOut, status_code=201)
async def create_question(
    request: QuestionCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    question = await QuestionService(db).create(request)
    return QuestionService.to_out(question)


@admin_router.get("/{question_id}", response_model=QuestionOut)
async def admin_get_question(
    question_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await QuestionService(db).get_with_count(question_id)


@admin_router.patch("/{question_id}", response_model=QuestionOut)
async def update_question(
    question_id: UUID,
    request: QuestionUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    service = QuestionService(db)
    await service.update(question_id, request)
    return await service.get_with_count(question_id)


@admin_router.patch("/{question_id}/active", response_model=QuestionOut)
async def set_question_active(
    question_id: UUID,
    request: QuestionActiveUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    service = QuestionService(db)
    await service.set_active(question_id, request.is_active)
    return await service.get_with_count(question_id)


@admin_router.delete("/{question_id}", response_model=DeactivateResult)
async def delete_question(
    question_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    """Deactivate rather than delete, so recorded responses keep their question."""
    question = await QuestionService(db).deactivate(question_id)
    return DeactivateResult(
        question_id=question.question_id,
        is_active=question.is_active,
        message="Question deactivated",
    )


@admin_router.post("/reorder")
async def reorder_questions(
    items: list[QuestionOrderItem],
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    updated = await QuestionService(db).reorder(items)
    return {"success": True, "updated": updated}


@admin_router.get("/{question_id}/analytics", response_model=QuestionAnalytics)
async def question_analytics(
    question_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await QuestionService(db).get_analytics(question_id)
