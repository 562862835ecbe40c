import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from meetingroom.config import (
    ACTIVATION_TOKEN_EXPIRE_HOURS,
    BASE_URL,
    RESET_TOKEN_EXPIRE_MINUTES,
)
from meetingroom.db import get_db
from meetingroom.models.password_reset import (
    PURPOSE_ACTIVATION,
    PURPOSE_RESET,
    PasswordResetToken,
)
from meetingroom.models.user import User
from meetingroom.schemas.auth import (
    ForgotPasswordRequest,
    MessageResponse,
    PasswordChange,
    PasswordResetRequest,
    Token,
)
from meetingroom.schemas.user import UserResponse
from meetingroom.utils.audit import record_audit
from meetingroom.utils.auth import (
    Actor,
    create_access_token,
    generate_token,
    get_current_user,
    get_password_hash,
    verify_password,
)
from meetingroom.utils.mailer import mailer_for, send_quietly

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


def issue_one_time_token(db: Session, user_id: int, purpose: str) -> PasswordResetToken:
    """Create a single-use token, replacing any earlier one with the same purpose."""
    if purpose == PURPOSE_ACTIVATION:
        ttl = timedelta(hours=ACTIVATION_TOKEN_EXPIRE_HOURS)
    else:
        ttl = timedelta(minutes=RESET_TOKEN_EXPIRE_MINUTES)
    db.query(PasswordResetToken).filter(
        PasswordResetToken.user_id == user_id, PasswordResetToken.purpose == purpose
    ).delete()
    token = PasswordResetToken(
        user_id=user_id,
        token=generate_token(),
        purpose=purpose,
        expires_at=datetime.utcnow() + ttl,
    )
    db.add(token)
    db.commit()
    db.refresh(token)
    return token


def _consume_token(db: Session, raw_token: str, purpose: str) -> User:
    token = (
        db.query(PasswordResetToken)
        .filter(PasswordResetToken.token == raw_token, PasswordResetToken.purpose == purpose)
        .first()
    )
    if token is None or token.expires_at < datetime.utcnow():
        if token is not None:
            db.delete(token)
            db.commit()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired token")
    user = db.query(User).filter(User.id == token.user_id).first()
    db.delete(token)
    if user is None:
        db.commit()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired token")
    return user


@router.post("/login", response_model=Token)
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    Exchange email (as **username**) and password for a bearer token.
    Non-admin accounts must be activated first.
    """
    email = form_data.username.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(form_data.password, user.password_hash):
        logger.info(f"Failed login for {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_activated and user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Please activate your account using the link sent to your email before logging in",
        )

    record_audit(db, user.id, "login", "user", user.id, {"email": user.email})
    access_token = create_access_token({"sub": user.email, "role": user.role})
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "must_change_password": user.must_change_password,
    }


@router.post("/logout", response_model=MessageResponse)
def logout(db: Session = Depends(get_db), current_user: Actor = Depends(get_current_user)):
    """Tokens are stateless; the client discards its token and the logout is audited."""
    record_audit(db, current_user.id, "logout", "user", current_user.id)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
def me(db: Session = Depends(get_db), current_user: Actor = Depends(get_current_user)):
    return db.query(User).filter(User.id == current_user.id).first()


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    payload: PasswordChange,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    user = db.query(User).filter(User.id == current_user.id).first()
    if not verify_password(payload.current_password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    user.password_hash = get_password_hash(payload.new_password)
    user.must_change_password = False
    db.commit()
    record_audit(db, user.id, "change_password", "user", user.id)
    return {"message": "Password changed successfully"}


@router.post("/forgot-password", response_model=MessageResponse, status_code=status.HTTP_202_ACCEPTED)
def forgot_password(
    payload: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """
    Start a password reset. The answer is the same whether or not the email
    is registered.
    """
    message = {"message": "If the email is registered, a reset link has been sent"}
    user = db.query(User).filter(User.email == payload.email.strip().lower()).first()
    if user is None:
        return message

    token = issue_one_time_token(db, user.id, PURPOSE_RESET)
    mailer = mailer_for(db, "enable_password_reset")
    link = f"{BASE_URL}/reset-password?token={token.token}"
    background_tasks.add_task(
        send_quietly,
        mailer,
        [user.email],
        "Reset your password",
        f'<p>Use <a href="{link}">this link</a> to choose a new password. '
        f"It expires in {RESET_TOKEN_EXPIRE_MINUTES} minutes.</p>",
    )
    logger.info(f"Password reset requested for user {user.id}")
    return message


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(payload: PasswordResetRequest, db: Session = Depends(get_db)):
    user = _consume_token(db, payload.token, PURPOSE_RESET)
    user.password_hash = get_password_hash(payload.new_password)
    user.must_change_password = False
    db.commit()
    record_audit(db, user.id, "reset_password", "user", user.id)
    return {"message": "Password has been reset"}


@router.post("/activate", response_model=MessageResponse)
def activate(payload: PasswordResetRequest, db: Session = Depends(get_db)):
    """First login: the user sets their own password through the activation token."""
    user = _consume_token(db, payload.token, PURPOSE_ACTIVATION)
    user.password_hash = get_password_hash(payload.new_password)
    user.is_activated = True
    user.must_change_password = False
    db.commit()
    record_audit(db, user.id, "activate", "user", user.id)
    return {"message": "Account activated"}
