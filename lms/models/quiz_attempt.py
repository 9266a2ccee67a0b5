"""
QuizAttempt model - the single scored attempt of a user on a quiz
"""
from sqlalchemy import Column, Integer, TIMESTAMP, ForeignKey, JSON, UniqueConstraint, CheckConstraint, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from lms.database import Base
import uuid


class QuizAttempt(Base):
    """
    Quiz attempts table - UNIQUE(user_id, quiz_id), a quiz is taken once
    """
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint("user_id", "quiz_id", name="uq_quiz_attempts_user_quiz"),
        CheckConstraint("score >= 0 AND score <= 100", name="ck_quiz_attempts_score_range"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quiz_id = Column(Uuid(as_uuid=True), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    score = Column(Integer, nullable=False)  # 0-100 percentage
    answers = Column(JSON().with_variant(JSONB(), "postgresql"))  # {question_id: option_index}
    completed_at = Column(TIMESTAMP, server_default=func.now())

    def __repr__(self):
        return f"<QuizAttempt(user_id={self.user_id}, quiz_id={self.quiz_id}, score={self.score})>"
