from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from meetingroom.db import Base
from meetingroom.models.mixins import TimestampMixin


class CalendarSync(Base, TimestampMixin):
    __tablename__ = "calendar_sync"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider = Column(String(20), nullable=False)  # google, outlook
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    calendar_id = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
