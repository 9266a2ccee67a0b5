"""
Profile model - per-user gamification state
"""
from sqlalchemy import Column, String, Integer, Date, TIMESTAMP, CheckConstraint, Uuid, func
from lms.database import Base
import uuid


ROLE_ADMIN = "admin"
ROLE_TEACHER = "guru"
ROLE_STUDENT = "siswa"

STAFF_ROLES = (ROLE_ADMIN, ROLE_TEACHER)


class Profile(Base):
    """
    Profiles table - one row per authenticated user

    The id is owned by the auth provider and only referenced here.
    points is the cumulative sum of awards; level and progress are derived.
    """
    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_profiles_points_non_negative"),
        CheckConstraint("streak >= 0", name="ck_profiles_streak_non_negative"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(50), unique=True)
    full_name = Column(String(255))
    role = Column(String(10), nullable=False, default=ROLE_STUDENT)
    points = Column(Integer, nullable=False, default=0)
    streak = Column(Integer, nullable=False, default=0)
    last_check_in_date = Column(Date)
    created_at = Column(TIMESTAMP, server_default=func.now())

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def __repr__(self):
        return f"<Profile(id={self.id}, role={self.role}, points={self.points}, streak={self.streak})>"
