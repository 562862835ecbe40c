from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RoomBase(BaseModel):
    name: str = Field(min_length=1)
    capacity: int = Field(gt=0)
    location: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    equipment: List[str] = []


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    capacity: Optional[int] = Field(default=None, gt=0)
    location: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    equipment: Optional[List[str]] = None
    is_active: Optional[bool] = None


class RoomResponse(RoomBase):
    id: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class RoomAvailabilityResponse(BaseModel):
    room_id: int
    room_name: str
    is_available: bool
    booking_id: Optional[int] = None
    organizer_id: Optional[int] = None
    organizer_email: Optional[str] = None
    busy_until: Optional[datetime] = None
