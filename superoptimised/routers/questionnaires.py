"""Questionnaire endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from superoptimised.database import get_db
from superoptimised.dependencies import get_admin_user
from superoptimised.models.base import QuestionnaireStatus
from superoptimised.models.user import User
from superoptimised.schemas.questionnaire import (
    QuestionnaireCreate,
    QuestionnaireList,
    QuestionnaireOut,
    QuestionnaireQuestionAdd,
    QuestionnaireReorder,
    QuestionnaireStats,
    QuestionnaireStatusUpdate,
    QuestionnaireUpdate,
)
from superoptimised.services import QuestionnaireService

router = APIRouter(prefix="/questionnaires", tags=["questionnaires"])
admin_router = APIRouter(prefix="/admin/questionnaires", tags=["admin"])


@router.get("/{questionnaire_id}", response_model=QuestionnaireOut)
async def get_questionnaire(questionnaire_id: UUID, db: AsyncSession = Depends(get_db)):
    """An active questionnaire with its live questions in order."""
    return await QuestionnaireService(db).get_public(questionnaire_id)


@admin_router.get("", response_model=QuestionnaireList)
async def list_questionnaires(
    status: Optional[QuestionnaireStatus] = None,
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await QuestionnaireService(db).list_questionnaires(status=status, limit=limit, offset=offset)


@admin_router.get("/stats", response_model=QuestionnaireStats)
async def questionnaire_stats(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await QuestionnaireService(db).stats()


@admin_router.post("", response_model=QuestionnaireOut, status_code=201)
async def create_questionnaire(
    request: QuestionnaireCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await QuestionnaireService(db).create(request)


@admin_router.get("/{questionnaire_id}", response_model=QuestionnaireOut)
async def admin_get_questionnaire(
    questionnaire_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await QuestionnaireService(db).get_out(questionnaire_id)


@admin_router.patch("/{questionnaire_id}", response_model=QuestionnaireOut)
async def update_questionnaire(
    questionnaire_id: UUID,
    request: QuestionnaireUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await QuestionnaireService(db).update(questionnaire_id, request)


@admin_router.patch("/{questionnaire_id}/status", response_model=QuestionnaireOut)
async def update_questionnaire_status(
    questionnaire_id: UUID,
    request: QuestionnaireStatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await QuestionnaireService(db).update_status(questionnaire_id, request.status)


@admin_router.delete("/{questionnaire_id}", status_code=204)
async def delete_questionnaire(
    questionnaire_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    await QuestionnaireService(db).delete(questionnaire_id)
    return Response(status_code=204)


@admin_router.post("/{questionnaire_id}/questions", response_model=QuestionnaireOut)
async def add_questionnaire_question(
    questionnaire_id: UUID,
    request: QuestionnaireQuestionAdd,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await QuestionnaireService(db).add_question(questionnaire_id, request)


@admin_router.delete("/{questionnaire_id}/questions/{question_id}", response_model=QuestionnaireOut)
async def remove_questionnaire_question(
    questionnaire_id: UUID,
    question_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await QuestionnaireService(db).remove_question(questionnaire_id, question_id)


@admin_router.put("/{questionnaire_id}/questions/order", response_model=QuestionnaireOut)
async def reorder_questionnaire_questions(
    questionnaire_id: UUID,
    request: QuestionnaireReorder,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return await QuestionnaireService(db).reorder(questionnaire_id, request.question_orders)
