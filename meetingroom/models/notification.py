from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from meetingroom.db import Base
from meetingroom.models.mixins import utcnow


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False)  # booking, room, user, system, email
    is_read = Column(Boolean, nullable=False, default=False)
    related_id = Column(String, nullable=True)
    related_type = Column(String(20), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
