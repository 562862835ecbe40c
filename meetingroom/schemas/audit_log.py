from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class AuditLogResponse(BaseModel):
    id: int
    user_id: int
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    details: Optional[Any] = None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)
