"""
Quiz model - timed multiple-choice quizzes
"""
from sqlalchemy import Column, String, Integer, TIMESTAMP, CheckConstraint, Uuid, func
from sqlalchemy.orm import relationship
from lms.database import Base
import uuid


class Quiz(Base):
    """
    Quizzes table - quiz definition owned by a class
    """
    __tablename__ = "quizzes"
    __table_args__ = (
        CheckConstraint("time_limit_seconds > 0", name="ck_quizzes_time_limit_positive"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    time_limit_seconds = Column(Integer, nullable=False, default=600)
    xp_reward = Column(Integer)
    created_at = Column(TIMESTAMP, server_default=func.now())

    questions = relationship(
        "QuizQuestion",
        order_by="QuizQuestion.order_index",
        cascade="all, delete-orphan",
        back_populates="quiz",
    )

    def __repr__(self):
        return f"<Quiz(id={self.id}, title={self.title}, time_limit={self.time_limit_seconds})>"
