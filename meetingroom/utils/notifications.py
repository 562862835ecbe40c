import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from meetingroom.models.notification import Notification
from meetingroom.models.user import User

logger = logging.getLogger(__name__)

BOOKING_MESSAGES = {
    "created": (
        "Booking Confirmed",
        "Your booking for {room} from {start} to {end} has been confirmed.",
    ),
    "pending": (
        "Booking Pending",
        "Your booking for {room} from {start} to {end} is pending confirmation.",
    ),
    "updated": (
        "Booking Updated",
        "Your booking for {room} has been updated. New time: {start} to {end}.",
    ),
    "cancelled": (
        "Booking Cancelled",
        "Your booking for {room} from {start} to {end} has been cancelled.",
    ),
}

ROOM_MESSAGES = {
    "created": (
        "New Room Available",
        'A new meeting room "{room}" has been added and is now available for booking.',
    ),
    "updated": (
        "Room Updated",
        'The meeting room "{room}" has been updated. Please check the latest room details.',
    ),
    "deleted": (
        "Room Unavailable",
        'The meeting room "{room}" is no longer available for booking.',
    ),
}

USER_MESSAGES = {
    "welcome": (
        "Welcome to Room Booking System!",
        "Your account has been successfully created. You can now start booking "
        "meeting rooms and managing your schedule.",
    ),
    "role_changed": (
        "Role Updated",
        "Your role has been changed to {role}. Your access permissions have been "
        "updated accordingly.",
    ),
    "profile_updated": (
        "Profile Updated",
        "Your profile information has been successfully updated.",
    ),
}


def _fmt(value):
    return value.strftime("%Y-%m-%d %H:%M")


def notify_booking(db: Session, booking, action: str, room_name: str) -> Notification:
    title, template = BOOKING_MESSAGES[action]
    notification = Notification(
        user_id=booking.user_id,
        title=title,
        message=template.format(
            room=room_name, start=_fmt(booking.start_date_time), end=_fmt(booking.end_date_time)
        ),
        type="booking",
        related_id=str(booking.id),
        related_type="booking",
    )
    db.add(notification)
    db.commit()
    logger.debug(f"Created {action} notification for user {booking.user_id} and booking {booking.id}")
    return notification


def _broadcast(db: Session, user_ids: Iterable[int], title: str, message: str, kind: str,
               related_id=None, related_type=None) -> int:
    count = 0
    for user_id in user_ids:
        db.add(
            Notification(
                user_id=user_id,
                title=title,
                message=message,
                type=kind,
                related_id=related_id,
                related_type=related_type,
            )
        )
        count += 1
    db.commit()
    return count


def notify_room_change(db: Session, room, action: str, exclude_user_id: Optional[int] = None) -> int:
    title, template = ROOM_MESSAGES[action]
    query = db.query(User.id)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    user_ids = [row.id for row in query.all()]
    count = _broadcast(
        db, user_ids, title, template.format(room=room.name), "room", str(room.id), "room"
    )
    logger.debug(f"Created {action} room notifications for {count} users")
    return count


def notify_user(db: Session, user_id: int, action: str, new_role: Optional[str] = None) -> Notification:
    title, template = USER_MESSAGES[action]
    notification = Notification(
        user_id=user_id,
        title=title,
        message=template.format(role=new_role or "user"),
        type="user",
        related_id=str(user_id),
        related_type="user",
    )
    db.add(notification)
    db.commit()
    return notification


def notify_system(db: Session, title: str, message: str, exclude_user_id: Optional[int] = None) -> int:
    query = db.query(User.id)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return _broadcast(db, [row.id for row in query.all()], title, message, "system")
