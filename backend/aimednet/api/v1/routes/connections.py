"""Connection request routes."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, col, func, select

from aimednet.api.v1.routes.auth import get_current_user
from aimednet.core.db import get_db_session
from aimednet.core.realtime import publish_change, row_payload
from aimednet.models.connection import (
    CONNECTION_ACCEPTED,
    CONNECTION_DECLINED,
    CONNECTION_PENDING,
    Connection,
)
from aimednet.models.notification import Notification
from aimednet.models.user import User
from aimednet.schemas.connections import ConnectionCreate, ConnectionRead
from aimednet.schemas.counts import CountResponse

router = APIRouter(prefix="/connections", tags=["connections"])


def _save_with_notification(
    db_session: Session, connection: Connection, notification: Notification | None
) -> None:
    """Commit a connection change together with the notification it causes."""
    db_session.add(connection)
    if notification is not None:
        db_session.add(notification)
    db_session.commit()
    db_session.refresh(connection)
    if notification is not None:
        db_session.refresh(notification)


@router.post("", response_model=ConnectionRead, status_code=status.HTTP_201_CREATED)
def request_connection(
    create_request: ConnectionCreate,
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> Connection:
    if create_request.addressee_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot connect with yourself",
        )
    addressee = db_session.get(User, create_request.addressee_id)
    if not addressee or not addressee.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    existing = db_session.exec(
        select(Connection).where(
            Connection.requester_id == current_user.id,
            Connection.addressee_id == addressee.id,
            col(Connection.status).in_([CONNECTION_PENDING, CONNECTION_ACCEPTED]),
        )
    ).first()
    if existing:
        return existing

    connection = Connection(requester_id=current_user.id, addressee_id=addressee.id)
    db_session.add(connection)
    db_session.flush()
    notification = Notification(
        user_id=addressee.id,
        actor_id=current_user.id,
        type="new_connection_request",
        entity_id=connection.id,
    )
    _save_with_notification(db_session, connection, notification)

    publish_change("connections", "INSERT", row_payload(connection))
    publish_change("notifications", "INSERT", row_payload(notification))
    return connection


@router.get("/pending", response_model=list[ConnectionRead])
def get_pending_requests(
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> list[Connection]:
    """Requests waiting for the current user's answer."""
    statement = select(Connection).where(
        Connection.addressee_id == current_user.id,
        Connection.status == CONNECTION_PENDING,
    )
    return db_session.exec(statement).all()


@router.get("/pending/count", response_model=CountResponse)
def get_pending_request_count(
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> CountResponse:
    statement = select(func.count(Connection.id)).where(
        Connection.addressee_id == current_user.id,
        Connection.status == CONNECTION_PENDING,
    )
    return CountResponse(count=db_session.exec(statement).one())


def _respond(
    connection_id: int, accept: bool, current_user: User, db_session: Session
) -> Connection:
    connection = db_session.get(Connection, connection_id)
    if not connection or connection.addressee_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Connection request not found",
        )
    if connection.status != CONNECTION_PENDING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Connection request already answered",
        )

    old = row_payload(connection)
    connection.status = CONNECTION_ACCEPTED if accept else CONNECTION_DECLINED
    connection.updated_at = datetime.now(UTC)
    notification = None
    if accept:
        notification = Notification(
            user_id=connection.requester_id,
            actor_id=current_user.id,
            type="connection_accepted",
            entity_id=connection.id,
        )
    _save_with_notification(db_session, connection, notification)

    publish_change("connections", "UPDATE", row_payload(connection), old)
    if notification is not None:
        publish_change("notifications", "INSERT", row_payload(notification))
    return connection


@router.post("/{connection_id}/accept", response_model=ConnectionRead)
def accept_connection(
    connection_id: int,
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> Connection:
    return _respond(connection_id, True, current_user, db_session)


@router.post("/{connection_id}/decline", response_model=ConnectionRead)
def decline_connection(
    connection_id: int,
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> Connection:
    return _respond(connection_id, False, current_user, db_session)
