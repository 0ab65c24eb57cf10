"""Direct-message routes. Message bodies arrive and leave encrypted."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, col, func, select

from aimednet.api.v1.routes.auth import get_current_user
from aimednet.core.db import get_db_session
from aimednet.core.realtime import publish_change, row_payload
from aimednet.crypto.cipher import validate_encrypted_format
from aimednet.models.conversation import Conversation, DirectMessage
from aimednet.models.notification import Notification
from aimednet.models.user import User
from aimednet.schemas.counts import CountResponse
from aimednet.schemas.messages import (
    ConversationRead,
    ConversationStart,
    DirectMessageCreate,
    DirectMessageRead,
    DirectMessageUpdate,
)

router = APIRouter(tags=["conversations"])


# ============================================================================
# HELPERS
# ============================================================================


def get_conversation_for_user(
    conversation_id: int, user: User, db_session: Session
) -> Conversation:
    """Load a conversation the user takes part in."""
    conversation = db_session.get(Conversation, conversation_id)
    if not conversation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )
    if not conversation.has_participant(user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )
    return conversation


def require_encrypted_body(content: str) -> None:
    if not validate_encrypted_format(content):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Message content must be an iv.ciphertext payload",
        )


def unread_in_conversation(
    conversation_id: int, user_id: int, db_session: Session
) -> int:
    statement = select(func.count(DirectMessage.id)).where(
        DirectMessage.conversation_id == conversation_id,
        DirectMessage.recipient_id == user_id,
        col(DirectMessage.is_read).is_(False),
    )
    return db_session.exec(statement).one()


# ============================================================================
# ENDPOINTS
# ============================================================================


@router.post("/conversations", response_model=ConversationRead)
def start_conversation(
    start_request: ConversationStart,
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> ConversationRead:
    """Return the conversation with `recipient_id`, creating it if needed."""
    if start_request.recipient_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot start a conversation with yourself",
        )

    recipient = db_session.get(User, start_request.recipient_id)
    if not recipient or not recipient.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Recipient not found",
        )

    user_a_id, user_b_id = sorted((current_user.id, recipient.id))
    conversation = db_session.exec(
        select(Conversation).where(
            Conversation.user_a_id == user_a_id,
            Conversation.user_b_id == user_b_id,
        )
    ).first()
    if not conversation:
        conversation = Conversation(user_a_id=user_a_id, user_b_id=user_b_id)
        db_session.add(conversation)
        db_session.commit()
        db_session.refresh(conversation)

    return ConversationRead(
        id=conversation.id,
        other_user_id=recipient.id,
        other_user_name=recipient.full_name,
        unread_count=unread_in_conversation(conversation.id, current_user.id, db_session),
        last_message_at=conversation.last_message_at,
    )


@router.get("/conversations", response_model=list[ConversationRead])
def get_inbox(
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> list[ConversationRead]:
    """Conversations of the current user, most recent activity first."""
    statement = select(Conversation).where(
        (Conversation.user_a_id == current_user.id)
        | (Conversation.user_b_id == current_user.id)
    )
    inbox = []
    for conversation in db_session.exec(statement).all():
        other = db_session.get(User, conversation.other_participant(current_user.id))
        inbox.append(
            ConversationRead(
                id=conversation.id,
                other_user_id=other.id,
                other_user_name=other.full_name,
                unread_count=unread_in_conversation(
                    conversation.id, current_user.id, db_session
                ),
                last_message_at=conversation.last_message_at,
            )
        )
    # SQLite hands datetimes back naive; compare without tzinfo
    return sorted(
        inbox,
        key=lambda c: (c.last_message_at or datetime.min).replace(tzinfo=None),
        reverse=True,
    )


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=list[DirectMessageRead],
)
def get_messages(
    conversation_id: int,
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
) -> list[DirectMessage]:
    """Messages of one conversation in send order (encrypted bodies)."""
    get_conversation_for_user(conversation_id, current_user, db_session)
    statement = (
        select(DirectMessage)
        .where(DirectMessage.conversation_id == conversation_id)
        .order_by(col(DirectMessage.created_at), col(DirectMessage.id))
        .offset(skip)
        .limit(limit)
    )
    return db_session.exec(statement).all()


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=DirectMessageRead,
    status_code=status.HTTP_201_CREATED,
)
def post_message(
    conversation_id: int,
    message_request: DirectMessageCreate,
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> DirectMessage:
    """
    Store an encrypted message and notify the recipient.

    The server checks only the payload shape; it cannot decrypt the body.
    """
    conversation = get_conversation_for_user(conversation_id, current_user, db_session)
    require_encrypted_body(message_request.content)

    if message_request.parent_message_id is not None:
        parent = db_session.get(DirectMessage, message_request.parent_message_id)
        if not parent or parent.conversation_id != conversation_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Parent message is not part of this conversation",
            )

    now = datetime.now(UTC)
    recipient_id = conversation.other_participant(current_user.id)
    message = DirectMessage(
        conversation_id=conversation_id,
        sender_id=current_user.id,
        recipient_id=recipient_id,
        parent_message_id=message_request.parent_message_id,
        content=message_request.content,
        created_at=now,
        updated_at=now,
    )
    notification = Notification(
        user_id=recipient_id,
        actor_id=current_user.id,
        type="new_direct_message",
        entity_id=conversation_id,
    )
    conversation.last_message_at = now
    db_session.add(message)
    db_session.add(conversation)
    db_session.add(notification)
    db_session.commit()
    db_session.refresh(message)
    db_session.refresh(notification)

    publish_change("direct_messages", "INSERT", row_payload(message))
    publish_change("notifications", "INSERT", row_payload(notification))
    return message


@router.patch("/messages/{message_id}", response_model=DirectMessageRead)
def edit_message(
    message_id: int,
    update: DirectMessageUpdate,
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> DirectMessage:
    """Replace the encrypted body of one of your own messages."""
    message = db_session.get(DirectMessage, message_id)
    if not message:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        )
    if message.sender_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )
    require_encrypted_body(update.content)

    old = row_payload(message)
    message.content = update.content
    message.is_edited = True
    message.updated_at = datetime.now(UTC)
    db_session.add(message)
    db_session.commit()
    db_session.refresh(message)

    publish_change("direct_messages", "UPDATE", row_payload(message), old)
    return message


@router.post(
    "/conversations/{conversation_id}/read",
    response_model=CountResponse,
)
def mark_conversation_as_read(
    conversation_id: int,
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> CountResponse:
    """Mark every message addressed to the current user as read."""
    get_conversation_for_user(conversation_id, current_user, db_session)
    statement = select(DirectMessage).where(
        DirectMessage.conversation_id == conversation_id,
        DirectMessage.recipient_id == current_user.id,
        col(DirectMessage.is_read).is_(False),
    )
    unread = db_session.exec(statement).all()
    now = datetime.now(UTC)
    for message in unread:
        message.is_read = True
        message.updated_at = now
        db_session.add(message)
    db_session.commit()

    for message in unread:
        db_session.refresh(message)
        publish_change("direct_messages", "UPDATE", row_payload(message))
    return CountResponse(count=len(unread))


@router.get("/messages/unread-count", response_model=CountResponse)
def get_unread_message_count(
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> CountResponse:
    statement = select(func.count(DirectMessage.id)).where(
        DirectMessage.recipient_id == current_user.id,
        col(DirectMessage.is_read).is_(False),
    )
    return CountResponse(count=db_session.exec(statement).one())
