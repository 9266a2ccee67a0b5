"""
Quiz attempt engine
A per-user state machine driving one timed attempt of a quiz

    loading -> intro -> playing -> result
    loading -> result              (the quiz was already taken)

The countdown is an asyncio task ticking once per tick_seconds. It is
cancelled on every way out of the playing phase: manual submit, timeout and
close(). Timeout submits through the same path as a manual submit.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from lms.config import settings
from lms.database import SessionLocal
from lms.exceptions import InvalidTransitionError, LMSError, NotFoundError, PersistenceError, ValidationError
from lms.services.grading_service import grading_service
from lms.services.quiz_service import quiz_service, quiz_xp_reward

logger = logging.getLogger(__name__)


class QuizPhase(str, Enum):
    LOADING = "loading"
    INTRO = "intro"
    PLAYING = "playing"
    RESULT = "result"


@dataclass(frozen=True)
class QuizView:
    """Detached copy of a quiz definition"""
    id: UUID
    class_id: UUID
    title: str
    time_limit_seconds: int
    xp_reward: Optional[int]


@dataclass(frozen=True)
class QuestionView:
    id: UUID
    question: str
    options: Tuple[Dict[str, Any], ...]
    order_index: int

    def public(self) -> Dict[str, Any]:
        """Question as shown while playing, without correctness flags"""
        return {
            "id": str(self.id),
            "question": self.question,
            "options": [o["text"] for o in self.options],
            "order_index": self.order_index,
        }


@dataclass
class QuizOutcome:
    score: int
    total: int
    correct: Optional[int]  # unknown when read back from a stored attempt
    xp_awarded: int
    passed: bool
    feedback: str
    from_previous_attempt: bool
    breakdown: Optional[List[Dict[str, Any]]] = None


class QuizSession:
    """
    One user's pass through one quiz

    Must be driven from a single event loop. Persistence goes through
    session_factory so a timeout can submit without a request in flight.
    """

    def __init__(
        self,
        quiz_id: UUID,
        user_id: UUID,
        session_factory: Callable[[], Session] = SessionLocal,
        tick_seconds: float = None,
        on_finish: Optional[Callable[["QuizSession"], None]] = None,
    ):
        self.id = uuid4()
        self.quiz_id = quiz_id
        self.user_id = user_id
        self.phase = QuizPhase.LOADING
        self.quiz: Optional[QuizView] = None
        self.questions: List[QuestionView] = []
        self.answers: Dict[str, int] = {}
        self.current_index = 0
        self.time_left = 0
        self.result: Optional[QuizOutcome] = None
        self.last_error: Optional[str] = None
        self.handed_in = False
        self.closed = False
        self.opened_at = time.monotonic()

        self._session_factory = session_factory
        self._on_finish = on_finish
        self._tick_seconds = tick_seconds if tick_seconds is not None else settings.QUIZ_TICK_SECONDS
        self._timer: Optional[asyncio.Task] = None
        self._submit_lock = asyncio.Lock()

    # --- loading ---

    async def load(self) -> QuizPhase:
        """
        Fetch the quiz, its questions and any existing attempt

        Raises:
            NotFoundError: the quiz does not exist
        """
        self._require(QuizPhase.LOADING)

        with self._session_factory() as db:
            quiz = quiz_service.get_quiz(db, self.quiz_id)
            questions = quiz_service.get_questions(db, self.quiz_id)
            attempt = quiz_service.get_attempt(db, self.user_id, self.quiz_id)

            self.quiz = QuizView(
                id=quiz.id,
                class_id=quiz.class_id,
                title=quiz.title,
                time_limit_seconds=quiz.time_limit_seconds,
                xp_reward=quiz.xp_reward,
            )
            self.questions = [
                QuestionView(
                    id=q.id,
                    question=q.question,
                    options=tuple(q.options or ()),
                    order_index=q.order_index,
                )
                for q in questions
            ]
            stored_score = attempt.score if attempt else None

        self.time_left = self.quiz.time_limit_seconds

        if stored_score is not None:
            self.result = self._stored_outcome(stored_score)
            self.phase = QuizPhase.RESULT
            logger.info(f"Quiz {self.quiz_id} already attempted by {self.user_id}, showing stored result")
        else:
            self.phase = QuizPhase.INTRO

        return self.phase

    def _stored_outcome(self, score: int) -> QuizOutcome:
        return QuizOutcome(
            score=score,
            total=len(self.questions),
            correct=None,
            xp_awarded=0,
            passed=grading_service.is_passing(score),
            feedback=grading_service.feedback(score),
            from_previous_attempt=True,
        )

    # --- intro ---

    @property
    def can_start(self) -> bool:
        return self.phase is QuizPhase.INTRO and len(self.questions) > 0

    def start(self) -> None:
        """
        Enter the playing phase and start the countdown

        Must be called from inside the running event loop.
        """
        self._require(QuizPhase.INTRO)
        if not self.questions:
            raise ValidationError("This quiz has no questions yet")

        self.phase = QuizPhase.PLAYING
        self.time_left = self.quiz.time_limit_seconds
        self.current_index = 0
        self._timer = asyncio.get_running_loop().create_task(self._countdown())
        logger.info(f"Quiz session {self.id} started: {self.time_left}s on the clock")

    # --- playing ---

    @property
    def current_question(self) -> Optional[QuestionView]:
        if not self.questions:
            return None
        return self.questions[self.current_index]

    @property
    def is_last_question(self) -> bool:
        return self.current_index == len(self.questions) - 1

    def select_answer(self, question_id, option_index: int) -> None:
        self._require_answering()

        question = self._find_question(str(question_id))
        if not 0 <= option_index < len(question.options):
            raise ValidationError("Option index out of range")
        self.answers[str(question.id)] = option_index

    def next(self) -> int:
        self._require(QuizPhase.PLAYING)
        if self.current_index < len(self.questions) - 1:
            self.current_index += 1
        return self.current_index

    def previous(self) -> int:
        self._require(QuizPhase.PLAYING)
        if self.current_index > 0:
            self.current_index -= 1
        return self.current_index

    async def submit(self, auto: bool = False) -> QuizOutcome:
        """
        Score the answers, persist the attempt and move to the result phase

        A manual submit is offered on the last question only. Once handed
        in, answers are frozen; if saving fails the session stays in
        playing with last_error set and submit() may be called again.

        Raises:
            InvalidTransitionError: not playing, or not on the last question
            PersistenceError: the attempt could not be saved
            NotFoundError: the quiz was deleted mid-attempt; the session closes
        """
        async with self._submit_lock:
            if self.phase is QuizPhase.RESULT:
                return self.result
            self._require(QuizPhase.PLAYING)
            if not auto and not self.handed_in and not self.is_last_question:
                raise InvalidTransitionError("Submit is available on the last question")

            self._cancel_timer()
            self.handed_in = True

            try:
                with self._session_factory() as db:
                    submission = quiz_service.submit_attempt(
                        db, self.quiz, self.questions, self.user_id, dict(self.answers)
                    )
                    stored_score = submission.attempt.score
            except PersistenceError as e:
                self.last_error = e.message
                logger.warning(f"Quiz session {self.id} submit failed, retry allowed: {e.message}")
                raise
            except NotFoundError as e:
                # nothing left to submit to
                self.last_error = e.message
                self.closed = True
                self._finish()
                logger.warning(f"Quiz session {self.id} closed, quiz {self.quiz_id} no longer exists")
                raise

            if submission.already_attempted:
                self.result = self._stored_outcome(stored_score)
            else:
                grade = submission.grade
                self.result = QuizOutcome(
                    score=grade.score,
                    total=grade.total,
                    correct=grade.correct,
                    xp_awarded=submission.xp_awarded,
                    passed=grade.passed,
                    feedback=grade.feedback,
                    from_previous_attempt=False,
                    breakdown=grade.breakdown,
                )

            self.last_error = None
            self.phase = QuizPhase.RESULT
            self._finish()
            logger.info(
                f"Quiz session {self.id} finished ({'timeout' if auto else 'manual'}): "
                f"score={self.result.score}, xp={self.result.xp_awarded}"
            )
            return self.result

    async def _countdown(self) -> None:
        while self.time_left > 0:
            await asyncio.sleep(self._tick_seconds)
            if self.phase is not QuizPhase.PLAYING or self.closed:
                return
            self.time_left -= 1

        logger.info(f"Quiz session {self.id} timed out, auto-submitting")
        try:
            await self.submit(auto=True)
        except LMSError as e:
            logger.warning(f"Quiz session {self.id} auto-submit failed: {e.message}")

    # --- teardown ---

    def close(self) -> None:
        """Abandon the session; stops the countdown and writes nothing"""
        self._cancel_timer()
        self.closed = True
        self._finish()

    # --- helpers ---

    def _finish(self) -> None:
        if self._on_finish:
            self._on_finish(self)

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer and timer is not asyncio.current_task() and not timer.done():
            timer.cancel()

    def _require(self, *phases: QuizPhase) -> None:
        if self.closed:
            raise InvalidTransitionError("Quiz session is closed")
        if self.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise InvalidTransitionError(f"Action requires phase {allowed}, session is {self.phase.value}")

    def _require_answering(self) -> None:
        self._require(QuizPhase.PLAYING)
        if self.handed_in or self.time_left <= 0:
            raise InvalidTransitionError("Answers are locked, the quiz was handed in")

    def _find_question(self, question_id: str) -> QuestionView:
        for question in self.questions:
            if str(question.id) == question_id:
                return question
        raise ValidationError("Question is not part of this quiz")

    def snapshot(self) -> Dict[str, Any]:
        """Serializable view of the session for the API"""
        data = {
            "session_id": str(self.id),
            "quiz_id": str(self.quiz_id),
            "phase": self.phase.value,
            "title": self.quiz.title if self.quiz else None,
            "time_limit_seconds": self.quiz.time_limit_seconds if self.quiz else None,
            "xp_reward": quiz_xp_reward(self.quiz) if self.quiz else None,
            "total_questions": len(self.questions),
            "can_start": self.can_start,
            "time_left": self.time_left,
            "current_index": self.current_index,
            "is_last_question": self.is_last_question,
            "current_question": None,
            "answers": dict(self.answers),
            "answered_count": len(self.answers),
            "handed_in": self.handed_in,
            "last_error": self.last_error,
            "result": None,
        }
        if self.phase is QuizPhase.PLAYING and self.current_question:
            data["current_question"] = self.current_question.public()
        if self.phase is QuizPhase.RESULT and self.result:
            data["result"] = {
                "score": self.result.score,
                "total": self.result.total,
                "correct": self.result.correct,
                "xp_awarded": self.result.xp_awarded,
                "passed": self.result.passed,
                "feedback": self.result.feedback,
                "from_previous_attempt": self.result.from_previous_attempt,
                "breakdown": self.result.breakdown,
            }
        return data


class QuizSessionRegistry:
    """
    Live quiz sessions of this process, by session id

    A user has at most one live session per quiz; opening the quiz again
    returns it. Only sessions in intro or playing are held: a session leaves
    the registry when it reaches result or is closed, and sessions left in
    intro longer than idle_seconds are swept on the next open(). Re-opening
    a finished quiz loads its stored result from the database.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        tick_seconds: float = None,
        idle_seconds: float = None,
    ):
        self.session_factory = session_factory
        self.tick_seconds = tick_seconds
        self.idle_seconds = idle_seconds if idle_seconds is not None else settings.QUIZ_SESSION_IDLE_SECONDS
        self._sessions: Dict[UUID, QuizSession] = {}

    def __len__(self):
        return len(self._sessions)

    async def open(self, quiz_id: UUID, user_id: UUID) -> QuizSession:
        self.sweep()
        for session in self._sessions.values():
            if session.quiz_id == quiz_id and session.user_id == user_id and not session.closed:
                return session

        session = QuizSession(
            quiz_id,
            user_id,
            session_factory=self.session_factory,
            tick_seconds=self.tick_seconds,
            on_finish=self._forget,
        )
        await session.load()
        if session.phase is QuizPhase.INTRO:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: UUID, user_id: UUID) -> QuizSession:
        session = self._sessions.get(session_id)
        if not session or session.user_id != user_id:
            raise NotFoundError("Quiz session not found")
        return session

    def close(self, session_id: UUID, user_id: UUID) -> None:
        self.get(session_id, user_id).close()

    def close_all(self) -> None:
        for session in list(self._sessions.values()):
            session.close()
        self._sessions.clear()

    def sweep(self, now: float = None) -> int:
        """Close sessions idle in intro for longer than idle_seconds"""
        now = now if now is not None else time.monotonic()
        stale = [
            s for s in self._sessions.values()
            if s.phase is QuizPhase.INTRO and now - s.opened_at >= self.idle_seconds
        ]
        for session in stale:
            session.close()
        if stale:
            logger.info(f"Swept {len(stale)} idle quiz sessions")
        return len(stale)

    def _forget(self, session: QuizSession) -> None:
        self._sessions.pop(session.id, None)


# Global instance
quiz_sessions = QuizSessionRegistry()
