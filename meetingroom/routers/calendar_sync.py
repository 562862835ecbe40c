from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from meetingroom.db import get_db
from meetingroom.models.calendar_sync import CalendarSync
from meetingroom.schemas.calendar_sync import CalendarSyncResponse
from meetingroom.utils.audit import record_audit
from meetingroom.utils.auth import Actor, get_current_user

router = APIRouter(
    prefix="/calendar-sync",
    tags=["calendar sync"],
)


@router.get("/", response_model=List[CalendarSyncResponse])
def get_connections(db: Session = Depends(get_db), current_user: Actor = Depends(get_current_user)):
    return (
        db.query(CalendarSync)
        .filter(CalendarSync.user_id == current_user.id, CalendarSync.is_active.is_(True))
        .all()
    )


@router.delete("/{sync_id}", status_code=status.HTTP_204_NO_CONTENT)
def disconnect(sync_id: int, db: Session = Depends(get_db), current_user: Actor = Depends(get_current_user)):
    connection = (
        db.query(CalendarSync)
        .filter(CalendarSync.id == sync_id, CalendarSync.user_id == current_user.id)
        .first()
    )
    if not connection:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Calendar connection not found")
    connection.is_active = False
    db.commit()
    record_audit(db, current_user.id, "disconnect", "calendar_sync", sync_id, {"provider": connection.provider})
    return None
