from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from meetingroom.db import Base
from meetingroom.models.mixins import utcnow

PURPOSE_RESET = "reset"
PURPOSE_ACTIVATION = "activation"


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    token = Column(String, unique=True, nullable=False, index=True)
    purpose = Column(String(20), nullable=False, default=PURPOSE_RESET)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
