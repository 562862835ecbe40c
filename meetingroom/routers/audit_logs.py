from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from meetingroom.db import get_db
from meetingroom.models.audit_log import AuditLog
from meetingroom.schemas.audit_log import AuditLogResponse
from meetingroom.utils.auth import Actor, require_admin

router = APIRouter(
    prefix="/audit-logs",
    tags=["audit"],
)


@router.get("/", response_model=List[AuditLogResponse])
def get_audit_logs(
    limit: int = Query(default=100, ge=1, le=1000),
    resource_type: Optional[str] = None,
    user_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_admin),
):
    """Newest entries first. Admin only."""
    query = db.query(AuditLog)
    if resource_type:
        query = query.filter(AuditLog.resource_type == resource_type)
    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)
    return query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
