"""
AppSettings model - single-row, system-wide toggles
"""
from sqlalchemy import Column, Integer, Boolean, TIMESTAMP, func
from lms.database import Base


SETTINGS_ROW_ID = 1


class AppSettings(Base):
    """
    App settings table - always holds exactly one row (id = 1)
    """
    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True, default=SETTINGS_ROW_ID)
    is_attendance_open = Column(Boolean, nullable=False, default=False)
    is_registration_open = Column(Boolean, nullable=False, default=True)
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return (
            f"<AppSettings(attendance_open={self.is_attendance_open}, "
            f"registration_open={self.is_registration_open})>"
        )
