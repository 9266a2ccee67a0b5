"""
Pydantic schemas for quiz sessions and quiz authoring
"""
from pydantic import BaseModel, Field, field_validator
from typing import List, Dict, Any, Optional
from uuid import UUID


class CurrentQuestion(BaseModel):
    """Question as shown while playing; correctness is hidden"""
    id: UUID
    question: str
    options: List[str]
    order_index: int


class QuizResult(BaseModel):
    score: int
    total: int
    correct: Optional[int] = None
    xp_awarded: int
    passed: bool
    feedback: str
    from_previous_attempt: bool
    breakdown: Optional[List[Dict[str, Any]]] = None


class QuizSessionResponse(BaseModel):
    """Snapshot of a quiz session"""
    session_id: UUID
    quiz_id: UUID
    phase: str
    title: Optional[str] = None
    time_limit_seconds: Optional[int] = None
    xp_reward: Optional[int] = None
    total_questions: int
    can_start: bool
    time_left: int
    current_index: int
    is_last_question: bool
    current_question: Optional[CurrentQuestion] = None
    answers: Dict[str, int]
    answered_count: int
    handed_in: bool
    last_error: Optional[str] = None
    result: Optional[QuizResult] = None


class AnswerSelection(BaseModel):
    question_id: UUID
    option_index: int = Field(..., ge=0)


class QuizCreate(BaseModel):
    class_id: UUID
    title: str = Field(..., min_length=1, max_length=255)
    time_limit_seconds: int = Field(600, gt=0, description="Time limit in seconds")
    xp_reward: Optional[int] = Field(None, ge=0)


class QuizCreated(BaseModel):
    quiz_id: UUID
    title: str
    time_limit_seconds: int
    xp_reward: Optional[int] = None


class OptionIn(BaseModel):
    text: str = Field(..., max_length=500)
    is_correct: bool = False


class QuestionCreate(BaseModel):
    """New question; blank options are dropped, exactly one must be correct"""
    question: str = Field(..., min_length=1)
    options: List[OptionIn] = Field(..., min_length=2)

    @field_validator("options")
    @classmethod
    def one_correct_option(cls, options: List[OptionIn]) -> List[OptionIn]:
        filled = [o for o in options if o.text.strip()]
        if len(filled) < 2:
            raise ValueError("at least 2 non-empty options are required")
        if sum(1 for o in filled if o.is_correct) != 1:
            raise ValueError("exactly one option must be correct")
        return options


class QuestionResponse(BaseModel):
    id: UUID
    quiz_id: UUID
    question: str
    options: List[Dict[str, Any]]
    order_index: int

    class Config:
        from_attributes = True


class ReconcileResponse(BaseModel):
    granted: int
