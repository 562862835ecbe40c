from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from meetingroom.db import get_db
from meetingroom.models.email_settings import EmailSettings
from meetingroom.schemas.email_settings import EmailSettingsResponse, EmailSettingsUpdate
from meetingroom.utils.audit import record_audit
from meetingroom.utils.auth import Actor, require_admin
from meetingroom.utils.mailer import get_email_settings

router = APIRouter(
    prefix="/email-settings",
    tags=["email settings"],
)


@router.get("/", response_model=EmailSettingsResponse)
def read_email_settings(db: Session = Depends(get_db), current_user: Actor = Depends(require_admin)):
    settings = get_email_settings(db)
    if settings is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Email settings not configured")
    return settings


@router.put("/", response_model=EmailSettingsResponse)
def update_email_settings(
    payload: EmailSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_admin),
):
    """Create or replace the SMTP configuration. Omit the password to keep the stored one."""
    settings = get_email_settings(db)
    data = payload.model_dump(exclude={"smtp_password"})
    if settings is None:
        if not payload.smtp_password:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="SMTP password is required")
        settings = EmailSettings(**data, smtp_password=payload.smtp_password)
        db.add(settings)
    else:
        for key, value in data.items():
            setattr(settings, key, value)
        if payload.smtp_password:
            settings.smtp_password = payload.smtp_password
    db.commit()
    db.refresh(settings)
    record_audit(db, current_user.id, "update", "email_settings", settings.id, data)
    db.refresh(settings)
    return settings
