import logging
from typing import Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from meetingroom.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def record_audit(
    db: Session,
    actor_id: int,
    action: str,
    resource_type: str,
    resource_id=None,
    details: Optional[dict] = None,
) -> AuditLog:
    """Append an audit entry for a state change that was just committed."""
    entry = AuditLog(
        user_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=jsonable_encoder(details) if details is not None else None,
    )
    db.add(entry)
    db.commit()
    logger.debug(f"Audit: user {actor_id} {action} {resource_type} {resource_id}")
    return entry


def booking_snapshot(booking) -> dict:
    return {
        "title": booking.title,
        "room_id": booking.room_id,
        "user_id": booking.user_id,
        "start_date_time": booking.start_date_time,
        "end_date_time": booking.end_date_time,
        "repeat_type": booking.repeat_type,
        "repeat_config": booking.repeat_config,
        "custom_days": booking.custom_days,
        "status": booking.status,
    }
