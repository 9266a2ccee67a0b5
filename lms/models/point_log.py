"""
PointLog model - append-only ledger of XP awards
"""
from sqlalchemy import Column, String, Integer, TIMESTAMP, UniqueConstraint, Uuid, func
from lms.database import Base
import uuid


class PointLog(Base):
    """
    Points log table - one row per paid activity

    UNIQUE(user_id, source) makes every award idempotent: a second insert for
    the same source is rejected by the database.
    """
    __tablename__ = "points_logs"
    __table_args__ = (
        UniqueConstraint("user_id", "source", name="uq_points_logs_user_source"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    source = Column(String(120), nullable=False)  # "material_<id>", "quiz_<id>"
    points = Column(Integer, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now())

    def __repr__(self):
        return f"<PointLog(user_id={self.user_id}, source={self.source}, points={self.points})>"
