from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from meetingroom.db import get_db
from meetingroom.models.notification import Notification
from meetingroom.schemas.notification import NotificationResponse, UnreadCount
from meetingroom.utils.auth import Actor, get_current_user

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
)


def _get_own(db: Session, notification_id: int, actor: Actor) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == actor.id)
        .first()
    )
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification


@router.get("/", response_model=List[NotificationResponse])
def get_notifications(
    unread_only: bool = False,
    limit: int = 50,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


@router.get("/unread-count", response_model=UnreadCount)
def get_unread_count(db: Session = Depends(get_db), current_user: Actor = Depends(get_current_user)):
    count = (
        db.query(Notification)
        .filter(Notification.user_id == current_user.id, Notification.is_read.is_(False))
        .count()
    )
    return {"count": count}


@router.put("/read-all", response_model=UnreadCount)
def mark_all_read(db: Session = Depends(get_db), current_user: Actor = Depends(get_current_user)):
    db.query(Notification).filter(
        Notification.user_id == current_user.id, Notification.is_read.is_(False)
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.commit()
    return {"count": 0}


@router.put("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    notification = _get_own(db, notification_id, current_user)
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    db.delete(_get_own(db, notification_id, current_user))
    db.commit()
    return None
