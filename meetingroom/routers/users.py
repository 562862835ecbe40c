import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from meetingroom.config import BASE_URL
from meetingroom.db import get_db
from meetingroom.models.booking import Booking
from meetingroom.models.calendar_sync import CalendarSync
from meetingroom.models.notification import Notification
from meetingroom.models.password_reset import PURPOSE_ACTIVATION, PasswordResetToken
from meetingroom.models.user import User
from meetingroom.routers.auth import issue_one_time_token
from meetingroom.schemas.user import UserCreate, UserCreatedResponse, UserResponse, UserUpdate
from meetingroom.utils.audit import record_audit
from meetingroom.utils.auth import Actor, generate_token, get_password_hash, require_admin
from meetingroom.utils.mailer import mailer_for, send_quietly
from meetingroom.utils.notifications import notify_user

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["users"],
)


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get("/", response_model=List[UserResponse])
def get_users(db: Session = Depends(get_db), current_user: Actor = Depends(require_admin)):
    return db.query(User).order_by(User.first_name, User.email).all()


@router.post("/", response_model=UserCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user: UserCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_admin),
):
    """
    Create an account that the user activates through a one-time link.
    The random initial password is never shown to anyone.
    """
    if db.query(User).filter(User.email == user.email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    if user.employee_code and db.query(User).filter(User.employee_code == user.employee_code).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Employee code already registered")

    db_user = User(
        **user.model_dump(),
        password_hash=get_password_hash(generate_token()),
        is_activated=False,
        must_change_password=True,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)

    token = issue_one_time_token(db, db_user.id, PURPOSE_ACTIVATION)
    record_audit(db, current_user.id, "create", "user", db_user.id, user.model_dump())
    notify_user(db, db_user.id, "welcome")

    link = f"{BASE_URL}/activate?token={token.token}"
    background_tasks.add_task(
        send_quietly,
        mailer_for(db, "enable_password_reset"),
        [db_user.email],
        "Activate your meeting room account",
        f'<p>An account was created for you. <a href="{link}">Activate it</a> by choosing a password.</p>',
    )
    logger.info(f"Created user {db_user.id} with role {db_user.role}")
    db.refresh(db_user)
    return {**UserResponse.model_validate(db_user).model_dump(), "activation_token": token.token}


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    user_update: UserUpdate,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_admin),
):
    db_user = _get_user(db, user_id)
    update_data = user_update.model_dump(exclude_unset=True)
    code = update_data.get("employee_code")
    if code and db.query(User).filter(User.employee_code == code, User.id != user_id).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Employee code already registered")
    previous_role = db_user.role
    for key, value in update_data.items():
        if value is None and key in ("role", "is_activated"):
            continue
        setattr(db_user, key, value)
    db.commit()

    record_audit(db, current_user.id, "update", "user", user_id, update_data)
    if db_user.role != previous_role:
        notify_user(db, user_id, "role_changed", new_role=db_user.role)
    else:
        notify_user(db, user_id, "profile_updated")
    db.refresh(db_user)
    return db_user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(require_admin),
):
    """
    Delete an account. Users who organise bookings are kept so the bookings
    and audit trail stay consistent; deactivate them instead.
    """
    db_user = _get_user(db, user_id)
    if db_user.id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")
    if db.query(Booking).filter(Booking.user_id == user_id).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User organises bookings; deactivate the account instead",
        )
    for model in (Notification, PasswordResetToken, CalendarSync):
        db.query(model).filter(model.user_id == user_id).delete()
    db.delete(db_user)
    db.commit()
    record_audit(db, current_user.id, "delete", "user", user_id)
    return None
