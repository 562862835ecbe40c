from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CalendarSyncResponse(BaseModel):
    id: int
    provider: str
    calendar_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
