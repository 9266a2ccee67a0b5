"""
Leaderboard of students ranked by XP
"""
import logging
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from lms.config import settings
from lms.models import Profile
from lms.models.profile import ROLE_STUDENT
from lms.services.ledger_service import level
from lms.utils.cache import LEADERBOARD_KEY, cache_service

logger = logging.getLogger(__name__)


class LeaderboardService:

    def get_leaderboard(self, db: Session) -> List[Dict[str, Any]]:
        """
        Top students by points, cached briefly in Redis

        Staff accounts are not ranked.
        """
        cached = cache_service.get(LEADERBOARD_KEY)
        if cached is not None:
            return cached

        stmt = (
            select(Profile)
            .where(Profile.role == ROLE_STUDENT)
            .order_by(Profile.points.desc(), Profile.created_at)
            .limit(settings.LEADERBOARD_LIMIT)
        )
        entries = [
            {
                "rank": rank,
                "user_id": str(p.id),
                "username": p.username,
                "full_name": p.full_name,
                "points": p.points,
                "level": level(p.points),
                "streak": p.streak,
            }
            for rank, p in enumerate(db.execute(stmt).scalars(), start=1)
        ]

        cache_service.set(LEADERBOARD_KEY, entries, ttl=settings.LEADERBOARD_CACHE_TTL)
        logger.debug(f"Leaderboard rebuilt with {len(entries)} entries")
        return entries


# Global instance
leaderboard_service = LeaderboardService()
