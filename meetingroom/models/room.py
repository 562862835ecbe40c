from sqlalchemy import Boolean, CheckConstraint, Column, Integer, JSON, String, Text
from meetingroom.db import Base
from meetingroom.models.mixins import TimestampMixin


class Room(Base, TimestampMixin):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    capacity = Column(Integer, nullable=False)
    location = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    equipment = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_room_capacity_positive"),
    )
