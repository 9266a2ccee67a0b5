"""
Calendar helpers for day-boundary logic
"""
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from lms.config import settings


def today() -> date:
    """Current calendar date in the program's timezone"""
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()


def yesterday(day: date) -> date:
    return day - timedelta(days=1)
