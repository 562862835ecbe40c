from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from meetingroom.db import Base
from meetingroom.models.mixins import TimestampMixin

STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"
STATUS_PENDING = "pending"
STATUSES = (STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_PENDING)


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_date_time = Column(DateTime, nullable=False)
    end_date_time = Column(DateTime, nullable=False)
    # end of the last occurrence once the repeat rule is expanded
    series_end_date_time = Column(DateTime, nullable=False)
    participants = Column(JSON, nullable=False, default=list)
    repeat_type = Column(String(10), nullable=False, default="none")
    repeat_config = Column(JSON, nullable=True)
    custom_days = Column(JSON, nullable=False, default=list)
    attachment_url = Column(String, nullable=True)
    attachment_name = Column(String, nullable=True)
    remind_me = Column(Boolean, nullable=False, default=False)
    reminder_time = Column(Integer, nullable=False, default=15)
    reminder_sent = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=STATUS_CONFIRMED)

    __table_args__ = (
        CheckConstraint("end_date_time > start_date_time", name="check_booking_time_range"),
        CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'pending')", name="check_booking_status"
        ),
        CheckConstraint(
            "repeat_type IN ('none', 'daily', 'weekly', 'custom')",
            name="check_booking_repeat_type",
        ),
        Index("ix_bookings_room_window", "room_id", "start_date_time", "series_end_date_time"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, room={self.room_id}, status={self.status})>"
