from typing import List, Dict
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response, status
from datetime import datetime, timedelta, date
from sqlalchemy.orm import Session
from meetingroom.db import get_db
from meetingroom.exceptions import BookingConflictError, RecurrenceError
from meetingroom.models.booking import Booking, STATUS_CANCELLED, STATUS_PENDING
from meetingroom.models.room import Room
from meetingroom.models.user import User
from meetingroom.schemas.booking import (
    BookingCreate,
    BookingUpdate,
    BookingResponse,
    ConflictCheckRequest,
    ConflictCheckResponse,
    OccurrenceResponse,
)
from meetingroom.utils.audit import booking_snapshot, record_audit
from meetingroom.utils.auth import Actor, get_current_user
from meetingroom.utils.ics import booking_ics
from meetingroom.utils.mailer import mailer_for, send_quietly
from meetingroom.utils.notifications import notify_booking
from meetingroom.utils.recurrence import Recurrence
from meetingroom.utils.scheduler import check_room_conflicts, get_available_slots as find_free_slots, save_booking
import logging

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/bookings",
    tags=["bookings"],
)

# columns that accept an explicit null on update
NULLABLE_FIELDS = {"description", "repeat_config", "attachment_url", "attachment_name"}


def _get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        logger.error(f"Booking not found: {booking_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return booking


def _get_active_room(db: Session, room_id: int) -> Room:
    room = db.query(Room).filter(Room.id == room_id, Room.is_active.is_(True)).first()
    if not room:
        logger.error(f"Room not found: {room_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return room


def _check_capacity(room: Room, participants, organizer_email: str):
    attendees = len(set(participants or []) - {organizer_email}) + 1
    if room.capacity < attendees:
        logger.error(f"Room capacity insufficient: {room.capacity} < {attendees}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Room capacity insufficient")


def _conflict_exception(conflicts) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "message": "Booking conflict detected",
            "conflicts": [c.as_dict() for c in conflicts],
        },
    )


def _queue_booking_email(background_tasks: BackgroundTasks, db: Session, booking: Booking,
                         room: Room, action: str):
    mailer = mailer_for(db, "enable_booking_notifications")
    if mailer is None:
        return
    organizer = db.query(User).filter(User.id == booking.user_id).first()
    recipients = [organizer.email] + [p for p in booking.participants if p != organizer.email]
    body = (
        f"<p>The booking <strong>{booking.title}</strong> in {room.name} was {action}.</p>"
        f"<p>{booking.start_date_time:%Y-%m-%d %H:%M} - {booking.end_date_time:%H:%M} (UTC)</p>"
    )
    ics = booking_ics(booking, room.name, organizer.full_name, organizer.email)
    background_tasks.add_task(
        send_quietly, mailer, recipients, f"Booking {action}: {booking.title}", body, ics
    )


@router.post(
    "/",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new booking",
    description="Create a booking, optionally repeating, if none of its occurrences clash. Requires authentication."
)
def create_booking(
    booking: BookingCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    """
    Create a booking for a room.
    Requires authentication; viewers cannot book.

    - **room_id**: ID of the room to book.
    - **start_date_time** / **end_date_time**: first occurrence.
    - **repeat_type**, **repeat_config**, **custom_days**: repeat rule.
    - **override**: commit despite conflicts (admins only).

    The whole series is rejected with 409 and the list of clashes if any
    occurrence overlaps a confirmed booking in the same room.
    """
    logger.debug(f"Creating booking for user: {current_user.email}, room_id: {booking.room_id}")

    if current_user.is_viewer:
        logger.error(f"Viewer {current_user.email} tried to create a booking")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Viewers cannot create bookings")

    organizer_id, organizer_email = current_user.id, current_user.email
    if booking.user_id is not None and booking.user_id != current_user.id:
        if not current_user.is_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only admins can book on behalf of other users",
            )
        organizer = db.query(User).filter(User.id == booking.user_id).first()
        if not organizer:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        organizer_id, organizer_email = organizer.id, organizer.email

    room = _get_active_room(db, booking.room_id)
    _check_capacity(room, booking.participants, organizer_email)

    db_booking = Booking(
        **booking.model_dump(exclude={"user_id", "override", "repeat_config"}),
        repeat_config=booking.repeat_config.model_dump(exclude_none=True) if booking.repeat_config else None,
        user_id=organizer_id,
    )
    try:
        overridden = save_booking(db, db_booking, allow_override=booking.override and current_user.is_admin)
    except RecurrenceError as e:
        logger.error(f"Invalid repeat settings: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except BookingConflictError as e:
        raise _conflict_exception(e.conflicts)

    details = booking_snapshot(db_booking)
    if overridden:
        details["overridden_conflicts"] = [c.as_dict() for c in overridden]
    record_audit(db, current_user.id, "create", "booking", db_booking.id, details)
    notify_booking(db, db_booking, "pending" if db_booking.status == STATUS_PENDING else "created", room.name)
    _queue_booking_email(background_tasks, db, db_booking, room, "created")
    db.refresh(db_booking)
    logger.debug(f"Created booking: {db_booking.id}, series ends: {db_booking.series_end_date_time}")
    return db_booking

@router.get(
    "/",
    response_model=List[BookingResponse],
    summary="List bookings",
    description="Admins see every booking, other users see their own."
)
def get_bookings(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    """
    Retrieve a list of bookings, newest first.

    - **skip**: Number of bookings to skip.
    - **limit**: Maximum number of bookings to return.
    """
    query = db.query(Booking)
    if not current_user.is_admin:
        query = query.filter(Booking.user_id == current_user.id)
    bookings = query.order_by(Booking.start_date_time.desc()).offset(skip).limit(limit).all()
    logger.debug(f"Retrieved {len(bookings)} bookings")
    return bookings

@router.get(
    "/my",
    response_model=List[BookingResponse],
    summary="List my bookings",
)
def get_my_bookings(
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    """Bookings organised by the caller, newest first."""
    return (
        db.query(Booking)
        .filter(Booking.user_id == current_user.id)
        .order_by(Booking.start_date_time.desc())
        .all()
    )

@router.post(
    "/check-conflict",
    response_model=ConflictCheckResponse,
    summary="Check a booking for conflicts",
    description="Expand the repeat rule and report every clash without writing anything."
)
def check_conflict(
    request: ConflictCheckRequest,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    _get_active_room(db, request.room_id)
    try:
        recurrence = Recurrence(
            request.start_date_time,
            request.end_date_time,
            request.repeat_type,
            request.repeat_config.model_dump(exclude_none=True) if request.repeat_config else None,
            request.custom_days,
        )
    except RecurrenceError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    conflicts = check_room_conflicts(
        db, request.room_id, recurrence.occurrences(), exclude_booking_id=request.exclude_booking_id
    )
    logger.debug(f"Conflict check for room_id: {request.room_id} found {len(conflicts)} clash(es)")
    return {"has_conflict": bool(conflicts), "conflicts": [c.as_dict() for c in conflicts]}

@router.get(
    "/available_slots/",
    response_model=List[Dict[str, datetime]],
    summary="List available time slots",
    description="Retrieve available time slots for a room on a specific date. Requires authentication."
)
def get_available_slots(
    room_id: int,
    date: date,
    duration: int = 60,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    """
    List available time slots for a room.

    - **room_id**: ID of the room to check availability for.
    - **date**: Date to check availability (e.g., 2025-05-04).
    - **duration**: Duration of each slot in minutes (default: 60).

    Returns a list of available slots with start_time and end_time.
    """
    logger.debug(f"Fetching available slots for room_id: {room_id}, date: {date}, duration: {duration} minutes, user: {current_user.email}")

    if duration <= 0:
        logger.error(f"Invalid duration: {duration}, must be positive")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Duration must be positive")

    _get_active_room(db, room_id)
    slots = find_free_slots(db, room_id, date, timedelta(minutes=duration))
    logger.debug(f"Found {len(slots)} available slots for room_id: {room_id}")
    return slots

@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking by ID",
    description="Retrieve a specific booking by its ID. Organizer or admin only."
)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    booking = _get_booking(db, booking_id)
    if not current_user.can_manage(booking.user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    logger.debug(f"Retrieved booking: {booking_id}")
    return booking

@router.get(
    "/{booking_id}/occurrences",
    response_model=List[OccurrenceResponse],
    summary="List the occurrences of a booking",
)
def get_booking_occurrences(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    booking = _get_booking(db, booking_id)
    if not current_user.can_manage(booking.user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return [
        {"start_time": o.start, "end_time": o.end} for o in Recurrence.for_booking(booking)
    ]

@router.get(
    "/{booking_id}/ics",
    summary="Download a calendar invite",
    response_class=Response,
)
def get_booking_ics(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    booking = _get_booking(db, booking_id)
    if not current_user.can_manage(booking.user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    room = db.query(Room).filter(Room.id == booking.room_id).first()
    organizer = db.query(User).filter(User.id == booking.user_id).first()
    content = booking_ics(booking, room.name, organizer.full_name, organizer.email)
    return Response(
        content=content,
        media_type="text/calendar",
        headers={"Content-Disposition": f'attachment; filename="booking-{booking.id}.ics"'},
    )

@router.put(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Update a booking",
    description="Update a booking's details. Requires authentication; organizer or admin only."
)
def update_booking(
    booking_id: int,
    booking_update: BookingUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    """
    Update a booking's details.
    Requires authentication and ownership (or admin role).

    The booking never conflicts with itself, so edits that keep the room and
    time always pass the conflict check.
    """
    db_booking = _get_booking(db, booking_id)

    if not current_user.can_manage(db_booking.user_id):
        logger.error(f"User {current_user.email} not authorized to update booking {booking_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to update this booking")

    update_data = {
        key: value
        for key, value in booking_update.model_dump(exclude_unset=True, exclude={"override"}).items()
        if value is not None or key in NULLABLE_FIELDS
    }
    if "repeat_config" in update_data and booking_update.repeat_config is not None:
        update_data["repeat_config"] = booking_update.repeat_config.model_dump(exclude_none=True)

    room_id = update_data.get("room_id", db_booking.room_id)
    room = _get_active_room(db, room_id) if room_id != db_booking.room_id else (
        db.query(Room).filter(Room.id == room_id).first()
    )
    if "participants" in update_data or "room_id" in update_data:
        organizer = db.query(User).filter(User.id == db_booking.user_id).first()
        _check_capacity(room, update_data.get("participants", db_booking.participants), organizer.email)

    previous_start = db_booking.start_date_time
    previous_status = db_booking.status
    for key, value in update_data.items():
        setattr(db_booking, key, value)
    if db_booking.start_date_time != previous_start:
        db_booking.reminder_sent = False

    try:
        overridden = save_booking(
            db, db_booking, allow_override=booking_update.override and current_user.is_admin
        )
    except RecurrenceError as e:
        db.rollback()
        logger.error(f"Invalid update for booking {booking_id}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except BookingConflictError as e:
        raise _conflict_exception(e.conflicts)

    details = dict(update_data)
    if overridden:
        details["overridden_conflicts"] = [c.as_dict() for c in overridden]
    record_audit(db, current_user.id, "update", "booking", booking_id, details)
    if db_booking.status == STATUS_CANCELLED and previous_status != STATUS_CANCELLED:
        notify_booking(db, db_booking, "cancelled", room.name)
    else:
        notify_booking(db, db_booking, "updated", room.name)
        _queue_booking_email(background_tasks, db, db_booking, room, "updated")
    db.refresh(db_booking)
    logger.debug(f"Updated booking: {booking_id}, series ends: {db_booking.series_end_date_time}")
    return db_booking

@router.delete(
    "/{booking_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cancel a booking",
    description="Cancel a booking. The record is kept with status 'cancelled'. Organizer or admin only."
)
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    """
    Cancel a booking.
    Requires authentication and ownership (or admin role).

    - **booking_id**: ID of the booking to cancel.
    """
    db_booking = _get_booking(db, booking_id)

    if not current_user.can_manage(db_booking.user_id):
        logger.error(f"User {current_user.email} not authorized to cancel booking {booking_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to cancel this booking")

    if db_booking.status != STATUS_CANCELLED:
        db_booking.status = STATUS_CANCELLED
        db.commit()
        record_audit(db, current_user.id, "cancel", "booking", booking_id)
        room = db.query(Room).filter(Room.id == db_booking.room_id).first()
        notify_booking(db, db_booking, "cancelled", room.name)
    logger.debug(f"Cancelled booking: {booking_id}")
    return None
