from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from meetingroom.utils.validation_helpers import validate_email

Role = Literal["admin", "user", "viewer"]


class UserBase(BaseModel):
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    employee_code: Optional[str] = None
    designation: Optional[str] = None
    department: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, value):
        return validate_email(value)


class UserCreate(UserBase):
    role: Role = "user"


class UserUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    employee_code: Optional[str] = None
    designation: Optional[str] = None
    department: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: Optional[Role] = None
    is_activated: Optional[bool] = None


class UserResponse(UserBase):
    id: int
    role: str
    profile_image_url: Optional[str] = None
    is_activated: bool
    must_change_password: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserCreatedResponse(UserResponse):
    activation_token: str
