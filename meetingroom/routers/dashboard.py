from datetime import datetime, timedelta

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from meetingroom.db import get_db
from meetingroom.models.booking import Booking, STATUS_CONFIRMED
from meetingroom.schemas.dashboard import DashboardStats
from meetingroom.utils.auth import Actor, get_current_user
from meetingroom.utils.scheduler import count_occurrences_starting, get_room_availability

router = APIRouter(
    prefix="/dashboard",
    tags=["dashboard"],
)


@router.get("/stats", response_model=DashboardStats)
def get_stats(db: Session = Depends(get_db), current_user: Actor = Depends(get_current_user)):
    """Room counts for right now plus today's and this week's booking volume."""
    now = datetime.utcnow()
    today_start = datetime.combine(now.date(), datetime.min.time())
    availability = get_room_availability(db, now)
    weekly = (
        db.query(Booking)
        .filter(
            Booking.status == STATUS_CONFIRMED,
            Booking.start_date_time >= now - timedelta(days=7),
        )
        .count()
    )
    return {
        "total_rooms": len(availability),
        "available_rooms": sum(1 for r in availability if r.is_available),
        "booked_today": count_occurrences_starting(db, today_start, today_start + timedelta(days=1)),
        "weekly_bookings": weekly,
    }
