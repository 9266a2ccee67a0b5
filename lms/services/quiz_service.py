"""
Quiz persistence: reading definitions, recording attempts, authoring
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from lms.config import settings
from lms.exceptions import NotFoundError, PersistenceError, ValidationError
from lms.models import PointLog, Quiz, QuizAttempt, QuizQuestion
from lms.services.grading_service import GradeResult, grading_service
from lms.services.ledger_service import QUIZ_SOURCE_PREFIX, ledger_service, quiz_source
from lms.utils.cache import cache_service

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    attempt: QuizAttempt
    grade: Optional[GradeResult]
    xp_awarded: int
    already_attempted: bool


def quiz_xp_reward(quiz: Quiz) -> int:
    return quiz.xp_reward or settings.DEFAULT_QUIZ_XP


class QuizService:
    """Service for quiz reads, attempt recording and question authoring"""

    def get_quiz(self, db: Session, quiz_id: UUID) -> Quiz:
        quiz = db.get(Quiz, quiz_id)
        if not quiz:
            raise NotFoundError("Quiz not found")
        return quiz

    def get_questions(self, db: Session, quiz_id: UUID) -> List[QuizQuestion]:
        stmt = (
            select(QuizQuestion)
            .where(QuizQuestion.quiz_id == quiz_id)
            .order_by(QuizQuestion.order_index)
        )
        return list(db.execute(stmt).scalars())

    def get_attempt(self, db: Session, user_id: UUID, quiz_id: UUID) -> Optional[QuizAttempt]:
        stmt = select(QuizAttempt).where(
            QuizAttempt.user_id == user_id,
            QuizAttempt.quiz_id == quiz_id,
        )
        return db.execute(stmt).scalar_one_or_none()

    def submit_attempt(
        self,
        db: Session,
        quiz: Quiz,
        questions: List[QuizQuestion],
        user_id: UUID,
        answers: Dict[str, int],
    ) -> SubmissionResult:
        """
        Grade and record the user's only attempt, paying XP in the same transaction

        The attempt insert and the XP award commit together or not at all.
        A uniqueness violation on (user_id, quiz_id) means the quiz was
        already taken elsewhere; the stored attempt is returned unchanged.

        Raises:
            PersistenceError: the transaction failed and was rolled back,
                the submission can be retried
        """
        xp_reward = quiz_xp_reward(quiz)
        grade = grading_service.grade(questions, answers, xp_reward)
        stored_answers = {str(k): v for k, v in answers.items()}

        try:
            ledger_service.get_or_create_profile(db, user_id, commit=False)

            try:
                with db.begin_nested():
                    attempt = QuizAttempt(
                        quiz_id=quiz.id,
                        user_id=user_id,
                        score=grade.score,
                        answers=stored_answers,
                    )
                    db.add(attempt)
            except IntegrityError as e:
                db.commit()
                existing = self.get_attempt(db, user_id, quiz.id)
                if existing is None:
                    # not a duplicate: the quiz row went away under the attempt
                    if db.get(Quiz, quiz.id) is None:
                        logger.warning(f"Quiz {quiz.id} was deleted before user {user_id} submitted")
                        raise NotFoundError("Quiz not found")
                    raise PersistenceError("Could not save the quiz attempt, please retry") from e
                logger.info(f"Quiz {quiz.id} already attempted by user {user_id}, keeping stored score")
                return SubmissionResult(
                    attempt=existing,
                    grade=None,
                    xp_awarded=0,
                    already_attempted=True,
                )

            awarded = False
            if grade.xp_earned > 0:
                awarded = ledger_service.award_once(
                    db, user_id, quiz_source(quiz.id), grade.xp_earned, commit=False
                )
            db.commit()

        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Quiz submission failed: quiz={quiz.id}, user={user_id}: {str(e)}")
            raise PersistenceError("Could not save the quiz attempt, please retry") from e

        if awarded:
            cache_service.invalidate_leaderboard()
        logger.info(
            f"Quiz attempt saved: {attempt.id}, score={grade.score}, "
            f"xp={grade.xp_earned if awarded else 0}"
        )

        return SubmissionResult(
            attempt=attempt,
            grade=grade,
            xp_awarded=grade.xp_earned if awarded else 0,
            already_attempted=False,
        )

    def reconcile_quiz_awards(self, db: Session) -> int:
        """
        Grant quiz XP for attempts that have no matching points log entry

        Returns:
            Number of attempts that were paid
        """
        paid = {
            (row.user_id, row.source)
            for row in db.execute(
                select(PointLog.user_id, PointLog.source).where(
                    PointLog.source.like(f"{QUIZ_SOURCE_PREFIX}%")
                )
            )
        }

        rows = db.execute(select(QuizAttempt, Quiz).join(Quiz, Quiz.id == QuizAttempt.quiz_id)).all()

        granted = 0
        try:
            for attempt, quiz in rows:
                source = quiz_source(quiz.id)
                if (attempt.user_id, source) in paid:
                    continue
                xp = grading_service.xp_for_score(attempt.score, quiz_xp_reward(quiz))
                if xp <= 0:
                    continue
                if ledger_service.award_once(db, attempt.user_id, source, xp, commit=False):
                    granted += 1
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Quiz award reconciliation failed: {str(e)}")
            raise PersistenceError("Reconciliation failed, nothing was granted") from e

        if granted:
            cache_service.invalidate_leaderboard()
        logger.info(f"Quiz award reconciliation granted {granted} missing awards")
        return granted

    def create_quiz(
        self,
        db: Session,
        class_id: UUID,
        title: str,
        time_limit_seconds: int,
        xp_reward: Optional[int] = None,
    ) -> Quiz:
        if time_limit_seconds <= 0:
            raise ValidationError("Time limit must be positive")
        if not title.strip():
            raise ValidationError("Title cannot be empty")

        quiz = Quiz(
            class_id=class_id,
            title=title.strip(),
            time_limit_seconds=time_limit_seconds,
            xp_reward=xp_reward,
        )
        db.add(quiz)
        db.commit()
        db.refresh(quiz)
        logger.info(f"Quiz created: {quiz.id}")
        return quiz

    def add_question(
        self,
        db: Session,
        quiz_id: UUID,
        question: str,
        options: List[Dict[str, Any]],
    ) -> QuizQuestion:
        """
        Append a question to a quiz

        Blank options are dropped; at least two must remain and exactly one
        of them must be flagged correct.
        """
        self.get_quiz(db, quiz_id)

        if not question.strip():
            raise ValidationError("Question text cannot be empty")

        filled = [
            {"text": o["text"].strip(), "is_correct": bool(o.get("is_correct"))}
            for o in options
            if o.get("text", "").strip()
        ]
        if len(filled) < 2:
            raise ValidationError("A question needs at least 2 options")
        if sum(1 for o in filled if o["is_correct"]) != 1:
            raise ValidationError("Exactly one option must be correct")

        count = db.execute(
            select(func.count(QuizQuestion.id)).where(QuizQuestion.quiz_id == quiz_id)
        ).scalar_one()

        row = QuizQuestion(
            quiz_id=quiz_id,
            question=question.strip(),
            options=filled,
            order_index=count,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    def delete_question(self, db: Session, quiz_id: UUID, question_id: UUID) -> None:
        row = db.get(QuizQuestion, question_id)
        if not row or row.quiz_id != quiz_id:
            raise NotFoundError("Question not found")
        db.delete(row)
        db.commit()


# Global instance
quiz_service = QuizService()
