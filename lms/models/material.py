"""
Material model - reading/video items whose completion pays XP
"""
from sqlalchemy import Column, String, Integer, TIMESTAMP, Uuid, func
from lms.database import Base
import uuid


class Material(Base):
    __tablename__ = "materials"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    type = Column(String(20), default="text")  # text, video
    xp_reward = Column(Integer)
    created_at = Column(TIMESTAMP, server_default=func.now())

    def __repr__(self):
        return f"<Material(id={self.id}, title={self.title})>"
