"""
Pydantic schemas for profile, attendance, materials and leaderboard
"""
from pydantic import BaseModel
from typing import List, Optional
from uuid import UUID
from datetime import date


class ProfileResponse(BaseModel):
    """Profile with derived level values"""
    user_id: UUID
    username: Optional[str] = None
    full_name: Optional[str] = None
    role: str
    points: int
    level: int
    progress_into_level: int
    points_per_level: int
    streak: int
    last_check_in_date: Optional[date] = None


class CheckInResponse(BaseModel):
    """Result of a check-in; already_checked_in is not an error"""
    checked_in: bool
    already_checked_in: bool
    points_awarded: int
    points: int
    streak: int
    date: date
    message: str


class AttendanceRecord(BaseModel):
    date_only: date
    status: str

    class Config:
        from_attributes = True


class AttendanceOverview(BaseModel):
    is_attendance_open: bool
    has_checked_in_today: bool
    today: date
    streak: int
    history: List[AttendanceRecord]


class MaterialCompletionResponse(BaseModel):
    material_id: UUID
    awarded: bool
    points_awarded: int
    points: int
    level: int


class CompletedMaterials(BaseModel):
    material_ids: List[str]


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: UUID
    username: Optional[str] = None
    full_name: Optional[str] = None
    points: int
    level: int
    streak: int


class LeaderboardResponse(BaseModel):
    entries: List[LeaderboardEntry]
