"""
System-wide toggles stored in the single app_settings row
"""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lms.models import AppSettings
from lms.models.app_settings import SETTINGS_ROW_ID

logger = logging.getLogger(__name__)


class SettingsService:

    def get_settings(self, db: Session) -> AppSettings:
        """Return the settings row, creating it with defaults if missing"""
        row = db.get(AppSettings, SETTINGS_ROW_ID)
        if row:
            return row

        try:
            with db.begin_nested():
                row = AppSettings(id=SETTINGS_ROW_ID, is_attendance_open=False, is_registration_open=True)
                db.add(row)
        except IntegrityError:
            row = db.get(AppSettings, SETTINGS_ROW_ID)
        db.commit()
        return row

    def is_attendance_open(self, db: Session) -> bool:
        return self.get_settings(db).is_attendance_open

    def is_registration_open(self, db: Session) -> bool:
        return self.get_settings(db).is_registration_open

    def update(
        self,
        db: Session,
        is_attendance_open: Optional[bool] = None,
        is_registration_open: Optional[bool] = None,
    ) -> AppSettings:
        row = self.get_settings(db)
        if is_attendance_open is not None:
            row.is_attendance_open = is_attendance_open
        if is_registration_open is not None:
            row.is_registration_open = is_registration_open
        db.commit()
        db.refresh(row)
        logger.info(
            f"Settings updated: attendance_open={row.is_attendance_open}, "
            f"registration_open={row.is_registration_open}"
        )
        return row


# Global instance
settings_service = SettingsService()
