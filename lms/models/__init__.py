"""
Database models package
"""
from lms.models.profile import Profile
from lms.models.point_log import PointLog
from lms.models.attendance import Attendance
from lms.models.material import Material
from lms.models.quiz import Quiz
from lms.models.quiz_question import QuizQuestion
from lms.models.quiz_attempt import QuizAttempt
from lms.models.app_settings import AppSettings

__all__ = [
    "Profile",
    "PointLog",
    "Attendance",
    "Material",
    "Quiz",
    "QuizQuestion",
    "QuizAttempt",
    "AppSettings",
]
