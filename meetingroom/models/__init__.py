from meetingroom.models.audit_log import AuditLog
from meetingroom.models.booking import Booking
from meetingroom.models.calendar_sync import CalendarSync
from meetingroom.models.email_settings import EmailSettings
from meetingroom.models.notification import Notification
from meetingroom.models.password_reset import PasswordResetToken
from meetingroom.models.room import Room
from meetingroom.models.user import User

__all__ = [
    "AuditLog",
    "Booking",
    "CalendarSync",
    "EmailSettings",
    "Notification",
    "PasswordResetToken",
    "Room",
    "User",
]
