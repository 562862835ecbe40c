"""
Reminder emails for bookings with ``remind_me`` set.

The scan is idempotent: each reminder is claimed with a conditional update on
``reminder_sent`` before the email goes out, so two overlapping scans (or a
rerun after a crash) never send the same reminder twice. A failed delivery
releases the claim and is retried by the next scan.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from meetingroom.config import DEFAULT_REMINDER_MINUTES, REMINDER_LOOKAHEAD_DAYS
from meetingroom.db import SessionLocal
from meetingroom.exceptions import MailDeliveryError
from meetingroom.models.booking import Booking, STATUS_CONFIRMED
from meetingroom.models.room import Room
from meetingroom.models.user import User
from meetingroom.utils.ics import booking_ics
from meetingroom.utils.mailer import Mailer, get_email_settings

logger = logging.getLogger(__name__)


def reminder_due_at(booking) -> datetime:
    minutes = booking.reminder_time if booking.reminder_time is not None else DEFAULT_REMINDER_MINUTES
    return booking.start_date_time - timedelta(minutes=minutes)


def upcoming_reminder_candidates(db: Session, now: datetime) -> List[Booking]:
    horizon = now + timedelta(days=REMINDER_LOOKAHEAD_DAYS)
    return (
        db.query(Booking)
        .filter(
            Booking.status == STATUS_CONFIRMED,
            Booking.remind_me.is_(True),
            Booking.reminder_sent.is_(False),
            Booking.start_date_time > now,
            Booking.start_date_time <= horizon,
        )
        .order_by(Booking.start_date_time)
        .all()
    )


def claim_reminder(db: Session, booking_id: int) -> bool:
    result = db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.reminder_sent.is_(False))
        .values(reminder_sent=True)
    )
    db.commit()
    return result.rowcount == 1


def release_reminder(db: Session, booking_id: int) -> None:
    db.execute(update(Booking).where(Booking.id == booking_id).values(reminder_sent=False))
    db.commit()


def time_until_text(minutes: int) -> str:
    hours, minutes = divmod(max(minutes, 0), 60)
    if hours > 0:
        text = f"{hours} hour{'s' if hours > 1 else ''}"
        if minutes > 0:
            text += f" and {minutes} minute{'s' if minutes > 1 else ''}"
        return text
    return f"{minutes} minute{'s' if minutes != 1 else ''}"


def reminder_body(booking, room, time_until: str) -> str:
    description = (
        f"<p><strong>Description:</strong> {booking.description}</p>" if booking.description else ""
    )
    return (
        "<div style=\"font-family: Arial, sans-serif;\">"
        "<h2>Meeting Reminder</h2>"
        f"<p>Your meeting starts in {time_until}</p>"
        f"<p><strong>Title:</strong> {booking.title}</p>"
        f"<p><strong>Room:</strong> {room.name}</p>"
        f"<p><strong>Date:</strong> {booking.start_date_time:%m/%d/%Y}</p>"
        f"<p><strong>Time:</strong> {booking.start_date_time:%I:%M %p} - {booking.end_date_time:%I:%M %p}</p>"
        f"{description}"
        "</div>"
    )


def send_reminder(db: Session, mailer, booking, now: datetime) -> None:
    user = db.query(User).filter(User.id == booking.user_id).first()
    room = db.query(Room).filter(Room.id == booking.room_id).first()
    if user is None or room is None:
        raise MailDeliveryError(f"Organizer or room missing for booking {booking.id}")

    minutes = int((booking.start_date_time - now).total_seconds() // 60)
    time_until = time_until_text(minutes)
    ics = booking_ics(booking, room.name, user.full_name, user.email)
    mailer.send(
        [user.email],
        f"Reminder: {booking.title} starts in {time_until}",
        reminder_body(booking, room, time_until),
        ics=ics,
        ics_filename="meeting-reminder.ics",
    )


def check_and_send_reminders(db: Session, mailer=None, now: Optional[datetime] = None) -> int:
    """Send every reminder that is due and not yet sent; returns how many went out."""
    now = now or datetime.utcnow()
    settings = get_email_settings(db)
    if settings is None or not settings.enable_reminders:
        logger.debug("Email reminders are disabled")
        return 0
    if mailer is None:
        mailer = Mailer(settings)

    sent = 0
    candidates = upcoming_reminder_candidates(db, now)
    logger.debug(f"Found {len(candidates)} upcoming booking(s) with reminders")
    for booking in candidates:
        if now < reminder_due_at(booking):
            logger.debug(f"Skipping booking {booking.id}: reminder not due yet")
            continue
        if not claim_reminder(db, booking.id):
            logger.debug(f"Skipping booking {booking.id}: reminder already claimed")
            continue
        try:
            send_reminder(db, mailer, booking, now)
        except MailDeliveryError as e:
            logger.error(f"Failed to send reminder for booking {booking.id}: {e}")
            release_reminder(db, booking.id)
            continue
        except Exception:
            # anything else from the mail stack must not lose the claim or stop the scan
            logger.exception(f"Unexpected error sending reminder for booking {booking.id}")
            release_reminder(db, booking.id)
            continue
        sent += 1
        logger.info(f"Sent reminder for booking {booking.id} - {booking.title}")
    return sent


def run_reminder_scan() -> int:
    """One scan with its own session, for the background loop."""
    db = SessionLocal()
    try:
        return check_and_send_reminders(db)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Reminder scan aborted by a storage error: {e}")
        return 0
    finally:
        db.close()
