"""
Attendance model - daily check-ins
"""
from sqlalchemy import Column, String, Date, TIMESTAMP, UniqueConstraint, Uuid, func
from lms.database import Base
import uuid


class Attendance(Base):
    """
    Attendances table - at most one row per user per calendar date
    """
    __tablename__ = "attendances"
    __table_args__ = (
        UniqueConstraint("user_id", "date_only", name="uq_attendances_user_date"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    date_only = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="hadir")
    created_at = Column(TIMESTAMP, server_default=func.now())

    def __repr__(self):
        return f"<Attendance(user_id={self.user_id}, date={self.date_only}, status={self.status})>"
