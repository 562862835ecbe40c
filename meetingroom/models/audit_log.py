from sqlalchemy import Column, DateTime, Integer, JSON, String
from meetingroom.db import Base
from meetingroom.models.mixins import utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    action = Column(String(40), nullable=False)  # create, update, cancel, login, ...
    resource_type = Column(String(40), nullable=False)  # booking, room, user, ...
    resource_id = Column(String, nullable=True)
    details = Column(JSON, nullable=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)
