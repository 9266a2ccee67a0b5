"""
Quiz session endpoints
Each call drives the caller's QuizSession state machine one step
"""
from fastapi import APIRouter, Depends
from uuid import UUID
import logging

from lms.api.deps import get_current_user_id, get_quiz_sessions
from lms.schemas.quiz import AnswerSelection, QuizSessionResponse
from lms.services.quiz_engine import QuizSessionRegistry

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])
logger = logging.getLogger(__name__)


@router.post("/{quiz_id}/sessions", response_model=QuizSessionResponse, status_code=201)
async def open_session(
    quiz_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    sessions: QuizSessionRegistry = Depends(get_quiz_sessions)
):
    """
    Open a quiz

    - phase "intro" when the quiz has not been taken
    - phase "result" with the stored score when it has
    - an already open session for the same quiz is returned as is
    """
    session = await sessions.open(quiz_id, user_id)
    return session.snapshot()


@router.get("/sessions/{session_id}", response_model=QuizSessionResponse)
async def get_session(
    session_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    sessions: QuizSessionRegistry = Depends(get_quiz_sessions)
):
    return sessions.get(session_id, user_id).snapshot()


@router.post("/sessions/{session_id}/start", response_model=QuizSessionResponse)
async def start_session(
    session_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    sessions: QuizSessionRegistry = Depends(get_quiz_sessions)
):
    """Start the countdown; rejected for a quiz with no questions"""
    session = sessions.get(session_id, user_id)
    session.start()
    return session.snapshot()


@router.put("/sessions/{session_id}/answers", response_model=QuizSessionResponse)
async def select_answer(
    session_id: UUID,
    selection: AnswerSelection,
    user_id: UUID = Depends(get_current_user_id),
    sessions: QuizSessionRegistry = Depends(get_quiz_sessions)
):
    session = sessions.get(session_id, user_id)
    session.select_answer(selection.question_id, selection.option_index)
    return session.snapshot()


@router.post("/sessions/{session_id}/next", response_model=QuizSessionResponse)
async def next_question(
    session_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    sessions: QuizSessionRegistry = Depends(get_quiz_sessions)
):
    session = sessions.get(session_id, user_id)
    session.next()
    return session.snapshot()


@router.post("/sessions/{session_id}/previous", response_model=QuizSessionResponse)
async def previous_question(
    session_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    sessions: QuizSessionRegistry = Depends(get_quiz_sessions)
):
    session = sessions.get(session_id, user_id)
    session.previous()
    return session.snapshot()


@router.post("/sessions/{session_id}/submit", response_model=QuizSessionResponse)
async def submit_session(
    session_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    sessions: QuizSessionRegistry = Depends(get_quiz_sessions)
):
    """
    Hand in the quiz

    Scores, stores the attempt and pays proportional XP in one transaction.
    A 503 leaves the session in "playing" with last_error set; call again
    to retry.
    """
    session = sessions.get(session_id, user_id)
    await session.submit()
    return session.snapshot()


@router.delete("/sessions/{session_id}", status_code=204)
async def close_session(
    session_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    sessions: QuizSessionRegistry = Depends(get_quiz_sessions)
):
    """Leave the quiz; stops the countdown without saving anything"""
    sessions.close(session_id, user_id)
