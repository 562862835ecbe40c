from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from meetingroom.db import get_db
from meetingroom.models.room import Room
from meetingroom.schemas.room import RoomAvailabilityResponse, RoomCreate, RoomUpdate, RoomResponse
from meetingroom.utils.audit import record_audit
from meetingroom.utils.auth import Actor, get_current_user, require_admin
from meetingroom.utils.notifications import notify_room_change
from meetingroom.utils.scheduler import get_room_availability
from meetingroom.utils.validation_helpers import to_naive_utc


router = APIRouter(
    prefix="/rooms",
    tags=["rooms"],
)


def _get_room(db: Session, room_id: int) -> Room:
    room = db.query(Room).filter(Room.id == room_id).first()
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return room


@router.post("/", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
def create_room(room: RoomCreate, db: Session = Depends(get_db), current_user: Actor = Depends(require_admin)):
    """
    Create a new meeting room.
    Admin only. Every other user is notified.
    """
    db_room = Room(**room.model_dump())
    db.add(db_room)
    db.commit()
    db.refresh(db_room)
    record_audit(db, current_user.id, "create", "room", db_room.id, room.model_dump())
    notify_room_change(db, db_room, "created", exclude_user_id=current_user.id)
    db.refresh(db_room)
    return db_room


@router.get("/", response_model=List[RoomResponse])
def get_rooms(
    skip: int = 0,
    limit: int = 100,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    """
    Retrieve the active meeting rooms, ordered by name.
    Admins may pass **include_inactive** to see deactivated rooms too.
    """
    query = db.query(Room)
    if not (include_inactive and current_user.is_admin):
        query = query.filter(Room.is_active.is_(True))
    return query.order_by(Room.name).offset(skip).limit(limit).all()


@router.get("/availability", response_model=List[RoomAvailabilityResponse])
def get_availability(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    """
    Which active rooms are free at **start** (default: now), or for the whole
    interval [**start**, **end**) when **end** is given. Busy rooms report the
    occupying booking, its organizer and when it ends.
    """
    start = to_naive_utc(start) or datetime.utcnow()
    end = to_naive_utc(end)
    if end is not None and end <= start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End time must be after start time")
    return [r._asdict() for r in get_room_availability(db, start, end)]


@router.get("/{room_id}", response_model=RoomResponse)
def get_room(room_id: int, db: Session = Depends(get_db), current_user: Actor = Depends(get_current_user)):
    """
    Retrieve a specific meeting room by ID.
    """
    return _get_room(db, room_id)


@router.put("/{room_id}", response_model=RoomResponse)
def update_room(room_id: int, room_update: RoomUpdate, db: Session = Depends(get_db), current_user: Actor = Depends(require_admin)):
    """
    Update a meeting room's details.
    Admin only.
    """
    db_room = _get_room(db, room_id)

    update_data = room_update.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        if value is not None or key in ("location", "description", "image_url"):
            setattr(db_room, key, value)

    db.commit()
    record_audit(db, current_user.id, "update", "room", room_id, update_data)
    notify_room_change(db, db_room, "updated", exclude_user_id=current_user.id)
    db.refresh(db_room)
    return db_room


@router.delete("/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_room(room_id: int, db: Session = Depends(get_db), current_user: Actor = Depends(require_admin)):
    """
    Deactivate a meeting room.
    Admin only. The room and its bookings stay in the database for the audit trail.
    """
    db_room = _get_room(db, room_id)
    if not db_room.is_active:
        return None

    db_room.is_active = False
    db.commit()
    record_audit(db, current_user.id, "delete", "room", room_id)
    notify_room_change(db, db_room, "deleted", exclude_user_id=current_user.id)
    return None
