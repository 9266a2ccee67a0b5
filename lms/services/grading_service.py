"""
Quiz grading service
Single-choice questions graded by exact match against the correct option
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from lms.config import settings

logger = logging.getLogger(__name__)


def round_half_up(numerator: int, denominator: int) -> int:
    """Round numerator / denominator to the nearest int, halves going up"""
    return (2 * numerator + denominator) // (2 * denominator)


def correct_option_index(options: Sequence[Dict[str, Any]]) -> Optional[int]:
    """Index of the first option flagged correct, None if there is none"""
    for idx, option in enumerate(options or []):
        if option.get("is_correct"):
            return idx
    return None


@dataclass
class GradeResult:
    correct: int
    total: int
    score: int  # 0-100
    xp_earned: int
    passed: bool
    feedback: str
    breakdown: List[Dict[str, Any]] = field(default_factory=list)


class GradingService:
    """
    Service for grading quiz submissions

    score = round(100 * correct / total), 0 for a quiz with no questions.
    XP is proportional to the score with no passing threshold; PASSING_SCORE
    only selects the result message.
    """

    def grade(
        self,
        questions: Sequence[Any],
        answers: Dict[str, int],
        xp_reward: int,
    ) -> GradeResult:
        """
        Grade a complete quiz submission

        Args:
            questions: QuizQuestion rows (anything with id and options)
            answers: User's choices {question_id: option_index}
            xp_reward: Full XP of the quiz

        Returns:
            GradeResult with score, XP and per-question breakdown
        """
        breakdown = []
        correct = 0

        for question in questions:
            q_id = str(question.id)
            chosen = answers.get(q_id)
            is_correct = self._grade_choice(question.options, chosen)
            if is_correct:
                correct += 1

            breakdown.append({
                "question_id": q_id,
                "chosen_index": chosen,
                "correct_index": correct_option_index(question.options),
                "is_correct": is_correct,
            })

        total = len(questions)
        score = self.score(correct, total)
        xp_earned = self.xp_for_score(score, xp_reward)
        passed = self.is_passing(score)

        logger.info(f"Quiz graded: {correct}/{total} correct, score={score}, xp={xp_earned}")

        return GradeResult(
            correct=correct,
            total=total,
            score=score,
            xp_earned=xp_earned,
            passed=passed,
            feedback=self.feedback(score),
            breakdown=breakdown,
        )

    def _grade_choice(self, options: Sequence[Dict[str, Any]], chosen: Optional[int]) -> bool:
        """Unanswered or out-of-range choices are incorrect"""
        if chosen is None or not 0 <= chosen < len(options):
            return False
        return bool(options[chosen].get("is_correct"))

    @staticmethod
    def score(correct: int, total: int) -> int:
        if total == 0:
            return 0
        return round_half_up(100 * correct, total)

    @staticmethod
    def xp_for_score(score: int, xp_reward: int) -> int:
        return round_half_up(score * xp_reward, 100)

    @staticmethod
    def is_passing(score: int) -> bool:
        return score >= settings.PASSING_SCORE

    def feedback(self, score: int) -> str:
        """Encouragement message for the result screen"""
        if score == 100:
            return "Perfect score! Outstanding work."
        if self.is_passing(score):
            return "Well done, you passed this quiz!"
        return "Keep practising, review the material and you will get there."


# Global instance
grading_service = GradingService()
