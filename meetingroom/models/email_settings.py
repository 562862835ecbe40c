from sqlalchemy import Boolean, Column, Integer, String
from meetingroom.db import Base
from meetingroom.models.mixins import TimestampMixin


class EmailSettings(Base, TimestampMixin):
    __tablename__ = "email_settings"

    id = Column(Integer, primary_key=True, index=True)
    smtp_host = Column(String, nullable=False)
    smtp_port = Column(Integer, nullable=False)
    smtp_username = Column(String, nullable=False)
    smtp_password = Column(String, nullable=False)
    from_email = Column(String, nullable=False)
    from_name = Column(String, nullable=False)
    enable_booking_notifications = Column(Boolean, nullable=False, default=True)
    enable_reminders = Column(Boolean, nullable=False, default=True)
    enable_password_reset = Column(Boolean, nullable=False, default=True)
