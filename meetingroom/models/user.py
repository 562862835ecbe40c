from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String
from meetingroom.db import Base
from meetingroom.models.mixins import TimestampMixin

ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLE_VIEWER = "viewer"
ROLES = (ROLE_ADMIN, ROLE_USER, ROLE_VIEWER)


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    employee_code = Column(String, unique=True, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    designation = Column(String, nullable=True)
    department = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)
    role = Column(String(20), nullable=False, default=ROLE_USER)
    # set once the user picked a password through the activation link
    is_activated = Column(Boolean, nullable=False, default=False)
    must_change_password = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'user', 'viewer')", name="check_user_role"),
    )

    @property
    def full_name(self):
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.email
