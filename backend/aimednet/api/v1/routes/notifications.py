"""Notification routes and the fire-and-forget dispatch endpoint."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, col, func, select

from aimednet.api.v1.routes.auth import get_current_user
from aimednet.core.db import get_db_session
from aimednet.core.realtime import enqueue_notification, publish_change, row_payload
from aimednet.models.notification import Notification
from aimednet.models.user import User
from aimednet.schemas.auth import StatusResponse
from aimednet.schemas.counts import CountResponse
from aimednet.schemas.notifications import DispatchRequest, NotificationRead

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationRead])
def get_notifications(
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> list[Notification]:
    statement = (
        select(Notification)
        .where(Notification.user_id == current_user.id)
        .order_by(col(Notification.created_at).desc())
    )
    return db_session.exec(statement).all()


@router.get("/unread-count", response_model=CountResponse)
def get_unread_notification_count(
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> CountResponse:
    statement = select(func.count(Notification.id)).where(
        Notification.user_id == current_user.id,
        col(Notification.is_read).is_(False),
    )
    return CountResponse(count=db_session.exec(statement).one())


@router.post("/read-all", response_model=CountResponse)
def mark_all_notifications_as_read(
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> CountResponse:
    statement = select(Notification).where(
        Notification.user_id == current_user.id,
        col(Notification.is_read).is_(False),
    )
    unread = db_session.exec(statement).all()
    now = datetime.now(UTC)
    for notification in unread:
        notification.is_read = True
        notification.updated_at = now
        db_session.add(notification)
    db_session.commit()

    for notification in unread:
        db_session.refresh(notification)
        publish_change("notifications", "UPDATE", row_payload(notification))
    return CountResponse(count=len(unread))


@router.post("/dispatch", response_model=StatusResponse, status_code=status.HTTP_202_ACCEPTED)
def dispatch_notification(
    dispatch_request: DispatchRequest,
    current_user: User = Depends(get_current_user),
) -> StatusResponse:
    """
    Queue a downstream notification (e.g. email).

    Accepted even if queueing fails: the action that triggered it has already
    succeeded and must not be reported as failed.
    """
    payload = {**dispatch_request.payload, "actor_id": current_user.id}
    queued = enqueue_notification(dispatch_request.type, payload)
    return StatusResponse(message="queued" if queued else "dropped")


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_notification_as_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> Notification:
    notification = db_session.get(Notification, notification_id)
    if not notification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )
    if notification.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )

    if not notification.is_read:
        old = row_payload(notification)
        notification.is_read = True
        notification.updated_at = datetime.now(UTC)
        db_session.add(notification)
        db_session.commit()
        db_session.refresh(notification)
        publish_change("notifications", "UPDATE", row_payload(notification), old)
    return notification
