import logging

from sqlalchemy.orm import Session

from meetingroom.config import DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD
from meetingroom.models.user import ROLE_ADMIN, User
from meetingroom.utils.auth import get_password_hash

logger = logging.getLogger(__name__)


def ensure_default_admin(db: Session) -> User:
    """Create the first administrator on an empty install."""
    email = DEFAULT_ADMIN_EMAIL.lower()
    admin = db.query(User).filter(User.email == email).first()
    if admin:
        logger.debug("Admin user already exists")
        return admin

    admin = User(
        email=email,
        password_hash=get_password_hash(DEFAULT_ADMIN_PASSWORD),
        first_name="Admin",
        last_name="User",
        role=ROLE_ADMIN,
        is_activated=True,
        must_change_password=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.warning(f"Default admin user created: {email}. Change the password after first login.")
    return admin
