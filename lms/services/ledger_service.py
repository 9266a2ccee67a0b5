"""
Gamification ledger: points, levels and the daily attendance streak

Every award goes through a uniqueness-constrained insert (points_logs or
attendances). The constraint is the source of truth for idempotence; a
violation means "already done" and is never surfaced as an error.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from lms.config import settings
from lms.exceptions import AttendanceClosedError, NotFoundError, PersistenceError
from lms.models import Attendance, Material, PointLog, Profile
from lms.utils import dates
from lms.utils.cache import cache_service

logger = logging.getLogger(__name__)

MATERIAL_SOURCE_PREFIX = "material_"
QUIZ_SOURCE_PREFIX = "quiz_"


def material_source(material_id) -> str:
    return f"{MATERIAL_SOURCE_PREFIX}{material_id}"


def quiz_source(quiz_id) -> str:
    return f"{QUIZ_SOURCE_PREFIX}{quiz_id}"


def level(points: int) -> int:
    """Level derived from points: buckets of POINTS_PER_LEVEL, starting at 1"""
    return points // settings.POINTS_PER_LEVEL + 1


def progress_into_level(points: int) -> int:
    """Points earned inside the current level"""
    return points % settings.POINTS_PER_LEVEL


@dataclass
class CheckInResult:
    checked_in: bool
    already_checked_in: bool
    points_awarded: int
    points: int
    streak: int
    date: date


@dataclass
class MaterialCompletion:
    material_id: UUID
    awarded: bool
    points_awarded: int
    points: int


class LedgerService:
    """Service owning every mutation of Profile.points and Profile.streak"""

    def get_profile(self, db: Session, user_id: UUID) -> Optional[Profile]:
        return db.get(Profile, user_id)

    def get_or_create_profile(self, db: Session, user_id: UUID, commit: bool = True) -> Profile:
        """
        Return the user's profile, creating it on first access

        Two first requests racing each other both try to insert; the loser
        hits the primary key and reads the winner's row.
        """
        profile = db.get(Profile, user_id)
        if profile:
            return profile

        try:
            with db.begin_nested():
                profile = Profile(id=user_id, points=0, streak=0)
                db.add(profile)
            logger.info(f"Profile created for user {user_id}")
        except IntegrityError:
            profile = db.get(Profile, user_id)
        if commit:
            db.commit()
        return profile

    def _lock_profile(self, db: Session, user_id: UUID) -> Profile:
        """Read the profile with a row lock for the rest of the transaction"""
        self.get_or_create_profile(db, user_id, commit=False)
        stmt = (
            select(Profile)
            .where(Profile.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return db.execute(stmt).scalar_one()

    def check_in(
        self,
        db: Session,
        user_id: UUID,
        attendance_open: bool,
        today: Optional[date] = None,
    ) -> CheckInResult:
        """
        Record today's attendance and pay the check-in bonus

        Args:
            db: Database session
            user_id: Profile id
            attendance_open: Global attendance toggle, read by the caller
            today: Calendar date of the check-in (defaults to local today)

        Returns:
            CheckInResult; already_checked_in is set when a record for the
            date exists, in which case nothing was mutated.

        Raises:
            AttendanceClosedError: attendance is not open
            PersistenceError: the transaction failed and was rolled back
        """
        if not attendance_open:
            raise AttendanceClosedError("Attendance is not open right now")

        day = today or dates.today()

        try:
            profile = self._lock_profile(db, user_id)

            try:
                with db.begin_nested():
                    db.add(Attendance(user_id=user_id, date_only=day, status="hadir"))
            except IntegrityError:
                db.commit()
                logger.info(f"Check-in ignored, already checked in: user={user_id}, date={day}")
                return CheckInResult(
                    checked_in=False,
                    already_checked_in=True,
                    points_awarded=0,
                    points=profile.points,
                    streak=profile.streak,
                    date=day,
                )

            if profile.last_check_in_date == dates.yesterday(day):
                new_streak = profile.streak + 1
            elif profile.last_check_in_date == day:
                new_streak = max(profile.streak, 1)
            else:
                new_streak = 1

            profile.points += settings.CHECK_IN_POINTS
            profile.streak = new_streak
            profile.last_check_in_date = day
            db.commit()

        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Check-in failed for user {user_id}: {str(e)}")
            raise PersistenceError("Could not save the check-in, please retry") from e

        cache_service.invalidate_leaderboard()
        logger.info(
            f"Check-in: user={user_id}, date={day}, streak={profile.streak}, "
            f"points={profile.points}"
        )

        return CheckInResult(
            checked_in=True,
            already_checked_in=False,
            points_awarded=settings.CHECK_IN_POINTS,
            points=profile.points,
            streak=profile.streak,
            date=day,
        )

    def award_once(
        self,
        db: Session,
        user_id: UUID,
        source: str,
        points: int,
        commit: bool = True,
    ) -> bool:
        """
        Pay points for a source at most once

        Args:
            db: Database session
            user_id: Profile id
            source: Award source tag, the idempotency key per user
            points: Points to grant
            commit: Commit when done. Pass False to join the caller's
                transaction; the insert runs under a savepoint either way.

        Returns:
            True if points were granted, False if the source was already paid
        """
        try:
            profile = self._lock_profile(db, user_id)

            try:
                with db.begin_nested():
                    db.add(PointLog(user_id=user_id, source=source, points=points))
            except IntegrityError:
                logger.info(f"Award skipped, already paid: user={user_id}, source={source}")
                if commit:
                    db.commit()
                return False

            profile.points += points
            if commit:
                db.commit()
            else:
                db.flush()

        except SQLAlchemyError as e:
            if commit:
                db.rollback()
                logger.error(f"Award failed: user={user_id}, source={source}: {str(e)}")
                raise PersistenceError("Could not save the award, please retry") from e
            raise

        if commit:
            cache_service.invalidate_leaderboard()
        logger.info(f"Awarded {points} XP: user={user_id}, source={source}")
        return True

    def complete_material(self, db: Session, user_id: UUID, material_id: UUID) -> MaterialCompletion:
        """Pay a material's XP reward the first time it is completed"""
        material = db.get(Material, material_id)
        if not material:
            raise NotFoundError("Material not found")

        points = material.xp_reward or settings.DEFAULT_MATERIAL_XP
        awarded = self.award_once(db, user_id, material_source(material_id), points)
        profile = self.get_or_create_profile(db, user_id)

        return MaterialCompletion(
            material_id=material_id,
            awarded=awarded,
            points_awarded=points if awarded else 0,
            points=profile.points,
        )

    def completed_material_ids(self, db: Session, user_id: UUID) -> Set[str]:
        """
        Ids of materials already paid to the user

        Only a display hint; award_once stays the correctness check.
        """
        rows = db.execute(
            select(PointLog.source).where(
                PointLog.user_id == user_id,
                PointLog.source.like(f"{MATERIAL_SOURCE_PREFIX}%"),
            )
        ).scalars()
        return {source[len(MATERIAL_SOURCE_PREFIX):] for source in rows}

    def has_checked_in(self, db: Session, user_id: UUID, day: Optional[date] = None) -> bool:
        day = day or dates.today()
        stmt = select(Attendance.id).where(Attendance.user_id == user_id, Attendance.date_only == day)
        return db.execute(stmt).first() is not None

    def attendance_history(self, db: Session, user_id: UUID) -> List[Attendance]:
        """Attendance records, newest first"""
        stmt = (
            select(Attendance)
            .where(Attendance.user_id == user_id)
            .order_by(Attendance.date_only.desc())
        )
        return list(db.execute(stmt).scalars())


# Global instance
ledger_service = LedgerService()
