from datetime import date, datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from meetingroom.utils.validation_helpers import to_naive_utc, validate_emails, validate_time_range

RepeatType = Literal["none", "daily", "weekly", "custom"]
BookingStatus = Literal["confirmed", "cancelled", "pending"]


class RepeatConfig(BaseModel):
    interval: Optional[int] = Field(default=None, ge=1)
    occurrences: Optional[int] = Field(default=None, ge=1)
    end_date: Optional[str] = None

    @field_validator("end_date")
    @classmethod
    def check_end_date(cls, value):
        if value is None:
            return value
        try:
            return date.fromisoformat(value[:10]).isoformat()
        except ValueError:
            raise ValueError(f"Invalid end date: {value}")


class BookingBase(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    room_id: int
    start_date_time: datetime
    end_date_time: datetime
    participants: List[str] = []
    repeat_type: RepeatType = "none"
    repeat_config: Optional[RepeatConfig] = None
    custom_days: List[int] = []
    attachment_url: Optional[str] = None
    attachment_name: Optional[str] = None
    remind_me: bool = False
    reminder_time: int = Field(default=15, ge=0)

    @field_validator("start_date_time", "end_date_time")
    @classmethod
    def check_naive_utc(cls, value):
        return to_naive_utc(value)

    @field_validator("participants")
    @classmethod
    def check_participants(cls, value):
        return validate_emails(value)

    @model_validator(mode="after")
    def check_time_range(self):
        validate_time_range(self.start_date_time, self.end_date_time)
        return self


class BookingCreate(BookingBase):
    status: Literal["confirmed", "pending"] = "confirmed"
    # admins may book on behalf of another user
    user_id: Optional[int] = None
    override: bool = False


class BookingUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    room_id: Optional[int] = None
    start_date_time: Optional[datetime] = None
    end_date_time: Optional[datetime] = None
    participants: Optional[List[str]] = None
    repeat_type: Optional[RepeatType] = None
    repeat_config: Optional[RepeatConfig] = None
    custom_days: Optional[List[int]] = None
    attachment_url: Optional[str] = None
    attachment_name: Optional[str] = None
    remind_me: Optional[bool] = None
    reminder_time: Optional[int] = Field(default=None, ge=0)
    status: Optional[BookingStatus] = None
    override: bool = False

    @field_validator("start_date_time", "end_date_time")
    @classmethod
    def check_naive_utc(cls, value):
        return to_naive_utc(value)

    @field_validator("participants")
    @classmethod
    def check_participants(cls, value):
        return validate_emails(value)


class BookingResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    room_id: int
    user_id: int
    start_date_time: datetime
    end_date_time: datetime
    series_end_date_time: datetime
    participants: List[str]
    repeat_type: str
    repeat_config: Optional[Dict] = None
    custom_days: List[int]
    attachment_url: Optional[str] = None
    attachment_name: Optional[str] = None
    remind_me: bool
    reminder_time: int
    reminder_sent: bool
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConflictCheckRequest(BaseModel):
    room_id: int
    start_date_time: datetime
    end_date_time: datetime
    repeat_type: RepeatType = "none"
    repeat_config: Optional[RepeatConfig] = None
    custom_days: List[int] = []
    exclude_booking_id: Optional[int] = None

    @field_validator("start_date_time", "end_date_time")
    @classmethod
    def check_naive_utc(cls, value):
        return to_naive_utc(value)


class ConflictEntry(BaseModel):
    occurrence_start: datetime
    occurrence_end: datetime
    booking_id: int
    booking_title: str
    existing_start: datetime
    existing_end: datetime


class ConflictCheckResponse(BaseModel):
    has_conflict: bool
    conflicts: List[ConflictEntry]


class OccurrenceResponse(BaseModel):
    start_time: datetime
    end_time: datetime
