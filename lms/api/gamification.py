"""
Profile, attendance, material completion and leaderboard endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID
import logging

from lms.api.deps import get_current_profile, get_current_user_id
from lms.config import settings
from lms.database import get_db
from lms.models import Profile
from lms.schemas.profile import (
    AttendanceOverview, AttendanceRecord, CheckInResponse, CompletedMaterials,
    LeaderboardResponse, MaterialCompletionResponse, ProfileResponse,
)
from lms.services.ledger_service import ledger_service, level, progress_into_level
from lms.services.leaderboard_service import leaderboard_service
from lms.services.settings_service import settings_service
from lms.utils import dates

router = APIRouter(prefix="/api", tags=["gamification"])
logger = logging.getLogger(__name__)


@router.get("/me", response_model=ProfileResponse)
async def get_me(profile: Profile = Depends(get_current_profile)):
    """
    Current user's XP overview

    Level and progress are derived from points, never stored.
    """
    return ProfileResponse(
        user_id=profile.id,
        username=profile.username,
        full_name=profile.full_name,
        role=profile.role,
        points=profile.points,
        level=level(profile.points),
        progress_into_level=progress_into_level(profile.points),
        points_per_level=settings.POINTS_PER_LEVEL,
        streak=profile.streak,
        last_check_in_date=profile.last_check_in_date,
    )


@router.post("/attendance/check-in", response_model=CheckInResponse)
async def check_in(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Record today's attendance

    - 409 when attendance has not been opened by staff
    - A second check-in on the same day returns the current state
    """
    attendance_open = settings_service.is_attendance_open(db)
    result = ledger_service.check_in(db, user_id, attendance_open, dates.today())

    if result.already_checked_in:
        message = "You have already checked in today"
    else:
        message = f"Checked in! +{result.points_awarded} XP"

    return CheckInResponse(
        checked_in=result.checked_in,
        already_checked_in=result.already_checked_in,
        points_awarded=result.points_awarded,
        points=result.points,
        streak=result.streak,
        date=result.date,
        message=message,
    )


@router.get("/attendance", response_model=AttendanceOverview)
async def attendance_overview(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Today's status plus attendance history, newest first"""
    today = dates.today()
    history = ledger_service.attendance_history(db, profile.id)

    return AttendanceOverview(
        is_attendance_open=settings_service.is_attendance_open(db),
        has_checked_in_today=any(r.date_only == today for r in history),
        today=today,
        streak=profile.streak,
        history=[AttendanceRecord.model_validate(r) for r in history],
    )


@router.post("/materials/{material_id}/complete", response_model=MaterialCompletionResponse)
async def complete_material(
    material_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Mark a material as finished

    Pays its XP the first time only; repeating the call is harmless.
    """
    completion = ledger_service.complete_material(db, user_id, material_id)

    return MaterialCompletionResponse(
        material_id=completion.material_id,
        awarded=completion.awarded,
        points_awarded=completion.points_awarded,
        points=completion.points,
        level=level(completion.points),
    )


@router.get("/materials/completed", response_model=CompletedMaterials)
async def completed_materials(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    ids = ledger_service.completed_material_ids(db, user_id)
    return CompletedMaterials(material_ids=sorted(ids))


@router.get("/leaderboard", response_model=LeaderboardResponse, dependencies=[Depends(get_current_user_id)])
async def get_leaderboard(db: Session = Depends(get_db)):
    """Top students by XP"""
    return LeaderboardResponse(entries=leaderboard_service.get_leaderboard(db))
