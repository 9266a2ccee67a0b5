"""
QuizQuestion model - one multiple-choice question
"""
from sqlalchemy import Column, Integer, Text, ForeignKey, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from lms.database import Base
import uuid


class QuizQuestion(Base):
    """
    Quiz questions table

    options is a list of {"text": str, "is_correct": bool}. Exactly one option
    is correct; this is checked when the question is authored.
    """
    __tablename__ = "quiz_questions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quiz_id = Column(Uuid(as_uuid=True), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    question = Column(Text, nullable=False)
    options = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    order_index = Column(Integer, nullable=False, default=0)

    quiz = relationship("Quiz", back_populates="questions")

    def __repr__(self):
        return f"<QuizQuestion(id={self.id}, quiz_id={self.quiz_id}, order={self.order_index})>"
