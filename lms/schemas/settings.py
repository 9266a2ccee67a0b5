"""
Pydantic schemas for the admin settings toggles
"""
from pydantic import BaseModel
from typing import Optional


class AppSettingsResponse(BaseModel):
    is_attendance_open: bool
    is_registration_open: bool

    class Config:
        from_attributes = True


class AppSettingsUpdate(BaseModel):
    is_attendance_open: Optional[bool] = None
    is_registration_open: Optional[bool] = None
