import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from meetingroom.config import DAY_END_HOUR, DAY_START_HOUR
from meetingroom.exceptions import BookingConflictError
from meetingroom.models.booking import Booking, STATUS_CONFIRMED
from meetingroom.models.room import Room
from meetingroom.models.user import User
from meetingroom.utils.availability import RoomAvailability, free_slots, query_window, room_availability
from meetingroom.utils.conflicts import Conflict, find_conflicts
from meetingroom.utils.recurrence import Occurrence, Recurrence

logger = logging.getLogger(__name__)

_room_locks = defaultdict(threading.Lock)
_room_locks_guard = threading.Lock()


def _lock_for(room_id: int) -> threading.Lock:
    with _room_locks_guard:
        return _room_locks[room_id]


@contextmanager
def room_lock(db: Session, room_id: int):
    """
    Serialise check-then-write sequences on one room.

    The in-process lock covers concurrent requests in this worker; the row lock
    on the room covers other workers when the database supports FOR UPDATE.
    """
    lock = _lock_for(room_id)
    with lock:
        db.query(Room).filter(Room.id == room_id).with_for_update().first()
        yield


def confirmed_bookings_in_window(
    db: Session, room_id: int, window_start: datetime, window_end: datetime
) -> List[Booking]:
    return (
        db.query(Booking)
        .filter(
            Booking.room_id == room_id,
            Booking.status == STATUS_CONFIRMED,
            Booking.start_date_time < window_end,
            Booking.series_end_date_time > window_start,
        )
        .order_by(Booking.start_date_time)
        .all()
    )


def check_room_conflicts(
    db: Session,
    room_id: int,
    occurrences: Sequence[Occurrence],
    exclude_booking_id: Optional[int] = None,
) -> List[Conflict]:
    if not occurrences:
        return []
    window_start = min(o.start for o in occurrences)
    window_end = max(o.end for o in occurrences)
    existing = confirmed_bookings_in_window(db, room_id, window_start, window_end)
    return find_conflicts(occurrences, existing, exclude_booking_id=exclude_booking_id)


def save_booking(db: Session, booking: Booking, allow_override: bool = False) -> List[Conflict]:
    """
    Commit ``booking`` unless one of its occurrences clashes with a confirmed booking.

    The whole series is committed or nothing is. Raises ``BookingConflictError``
    with every clash when conflicts exist and ``allow_override`` is false.
    Returns the conflicts that were overridden (empty in the normal case).
    """
    if booking.status is None:
        booking.status = STATUS_CONFIRMED
    recurrence = Recurrence.for_booking(booking)
    occurrences = recurrence.occurrences()
    booking.series_end_date_time = occurrences[-1].end

    with room_lock(db, booking.room_id):
        conflicts = []
        if booking.status == STATUS_CONFIRMED:
            conflicts = check_room_conflicts(
                db, booking.room_id, occurrences, exclude_booking_id=booking.id
            )
        if conflicts and not allow_override:
            db.rollback()
            logger.info(
                f"Rejected booking for room_id: {booking.room_id}, {len(conflicts)} conflicting occurrence(s)"
            )
            raise BookingConflictError(conflicts)
        if conflicts:
            logger.warning(
                f"Admin override on room_id: {booking.room_id}, {len(conflicts)} conflict(s) ignored"
            )
        db.add(booking)
        db.commit()
    db.refresh(booking)
    return conflicts


def get_room_availability(
    db: Session, start: datetime, end: Optional[datetime] = None
) -> List[RoomAvailability]:
    window = query_window(start, end)
    rooms = db.query(Room).filter(Room.is_active.is_(True)).order_by(Room.name).all()
    bookings = (
        db.query(Booking)
        .filter(
            Booking.status == STATUS_CONFIRMED,
            Booking.start_date_time < window.end,
            Booking.series_end_date_time > window.start,
        )
        .all()
    )
    by_room = defaultdict(list)
    for booking in bookings:
        by_room[booking.room_id].append(booking)

    result = room_availability(rooms, by_room, window.start, window.end)
    organizer_ids = {r.organizer_id for r in result if r.organizer_id is not None}
    if organizer_ids:
        emails = dict(db.query(User.id, User.email).filter(User.id.in_(organizer_ids)).all())
        result = [r._replace(organizer_email=emails.get(r.organizer_id)) for r in result]
    return result


def get_available_slots(db: Session, room_id: int, day: date, duration: timedelta):
    day_start = datetime.combine(day, datetime.min.time()) + timedelta(hours=DAY_START_HOUR)
    day_end = datetime.combine(day, datetime.min.time()) + timedelta(hours=DAY_END_HOUR)
    busy = []
    for booking in confirmed_bookings_in_window(db, room_id, day_start, day_end):
        busy.extend(Recurrence.for_booking(booking).between(day_start, day_end))
    return free_slots(busy, day_start, day_end, duration)


def count_occurrences_starting(db: Session, window_start: datetime, window_end: datetime) -> int:
    bookings = (
        db.query(Booking)
        .filter(
            Booking.status == STATUS_CONFIRMED,
            Booking.start_date_time < window_end,
            Booking.series_end_date_time > window_start,
        )
        .all()
    )
    total = 0
    for booking in bookings:
        for occurrence in Recurrence.for_booking(booking).between(window_start, window_end):
            if occurrence.start >= window_start:
                total += 1
    return total
