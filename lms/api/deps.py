"""
Shared FastAPI dependencies: caller identity and role gate
"""
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from lms.database import get_db
from lms.models import Profile
from lms.services.ledger_service import ledger_service
from lms.services.quiz_engine import QuizSessionRegistry, quiz_sessions


def get_current_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(None),
) -> UUID:
    """
    Identity of the caller

    Authentication happens in front of this service; the verified user id
    arrives in the X-User-Id header.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user id")

    request.state.user_id = user_id
    return user_id


def get_current_profile(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Profile:
    return ledger_service.get_or_create_profile(db, user_id)


def require_staff(profile: Profile = Depends(get_current_profile)) -> Profile:
    """Admin and teacher accounts only"""
    if not profile.is_staff:
        raise HTTPException(status_code=403, detail="Staff access required")
    return profile


def get_quiz_sessions() -> QuizSessionRegistry:
    return quiz_sessions
