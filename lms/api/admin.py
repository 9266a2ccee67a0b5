"""
Staff endpoints: system toggles and quiz authoring
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID
import logging

from lms.api.deps import require_staff
from lms.database import get_db
from lms.schemas.quiz import QuestionCreate, QuestionResponse, QuizCreate, QuizCreated, ReconcileResponse
from lms.schemas.settings import AppSettingsResponse, AppSettingsUpdate
from lms.services.quiz_service import quiz_service
from lms.services.settings_service import settings_service

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_staff)])
logger = logging.getLogger(__name__)


@router.get("/settings", response_model=AppSettingsResponse)
async def get_settings(db: Session = Depends(get_db)):
    return settings_service.get_settings(db)


@router.patch("/settings", response_model=AppSettingsResponse)
async def update_settings(update: AppSettingsUpdate, db: Session = Depends(get_db)):
    """Open/close attendance and registration"""
    return settings_service.update(
        db,
        is_attendance_open=update.is_attendance_open,
        is_registration_open=update.is_registration_open,
    )


@router.post("/quizzes", response_model=QuizCreated, status_code=201)
async def create_quiz(request: QuizCreate, db: Session = Depends(get_db)):
    quiz = quiz_service.create_quiz(
        db,
        class_id=request.class_id,
        title=request.title,
        time_limit_seconds=request.time_limit_seconds,
        xp_reward=request.xp_reward,
    )
    return QuizCreated(
        quiz_id=quiz.id,
        title=quiz.title,
        time_limit_seconds=quiz.time_limit_seconds,
        xp_reward=quiz.xp_reward,
    )


@router.post("/quizzes/{quiz_id}/questions", response_model=QuestionResponse, status_code=201)
async def add_question(quiz_id: UUID, request: QuestionCreate, db: Session = Depends(get_db)):
    """Append a question; it goes to the end of the quiz"""
    return quiz_service.add_question(
        db,
        quiz_id,
        request.question,
        [o.model_dump() for o in request.options],
    )


@router.delete("/quizzes/{quiz_id}/questions/{question_id}", status_code=204)
async def delete_question(quiz_id: UUID, question_id: UUID, db: Session = Depends(get_db)):
    quiz_service.delete_question(db, quiz_id, question_id)


@router.post("/quizzes/reconcile", response_model=ReconcileResponse)
async def reconcile_quiz_awards(db: Session = Depends(get_db)):
    """Pay quiz XP that is missing for recorded attempts"""
    granted = quiz_service.reconcile_quiz_awards(db)
    logger.info(f"Reconciliation run granted {granted} awards")
    return ReconcileResponse(granted=granted)
