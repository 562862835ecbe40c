from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EmailSettingsBase(BaseModel):
    smtp_host: str
    smtp_port: int = Field(gt=0, le=65535)
    smtp_username: str
    from_email: str
    from_name: str
    enable_booking_notifications: bool = True
    enable_reminders: bool = True
    enable_password_reset: bool = True


class EmailSettingsUpdate(EmailSettingsBase):
    # omitted on update keeps the stored password
    smtp_password: Optional[str] = None


class EmailSettingsResponse(EmailSettingsBase):
    id: int

    model_config = ConfigDict(from_attributes=True)
