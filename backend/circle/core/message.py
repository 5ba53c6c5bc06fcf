import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from circle.config import TTL_CHOICES
from circle.core.conversation import get_or_create_conversation, mark_conversation_read
from circle.models.base import utcnow
from circle.models.conversation import Conversation
from circle.models.message import Message
from circle.models.user import User

logger = logging.getLogger(__name__)


def validate_ttl(ttl_seconds: float) -> float:
    if ttl_seconds not in TTL_CHOICES:
        raise ValueError(f"TTL must be one of {list(TTL_CHOICES)}, got {ttl_seconds}")
    return float(ttl_seconds)


def send_message(
    db: Session,
    sender: User,
    recipient: User,
    content: str,
    is_encrypted: bool = False,
) -> Message:
    """Store a message in the sender/recipient conversation"""
    content = content.strip() if content else ""
    if not content:
        raise ValueError("Message cannot be empty")

    conversation = get_or_create_conversation(db, sender, recipient)

    message = Message(
        conversation_id=conversation.id,
        sender_id=sender.id,
        content=content,
        is_encrypted=is_encrypted,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def purge_expired_messages(db: Session, conversation_id: str | None = None) -> int:
    """Hard-delete messages whose read deadline has passed"""
    query = db.query(Message).filter(
        Message.expires_at.isnot(None),
        Message.expires_at <= utcnow(),
    )
    if conversation_id is not None:
        query = query.filter(Message.conversation_id == conversation_id)

    removed = query.delete(synchronize_session=False)
    db.commit()
    if removed:
        logger.info("🗑️ Purged %d expired message(s)", removed)
    return removed


def fetch_conversation_messages(
    db: Session, viewer: User, other: User
) -> tuple[Conversation, list[Message]]:
    """
    Messages between viewer and other, oldest first.

    Expired messages are purged before reading, so a client that skipped
    its own deletion never gets them back. Marks the conversation read.
    """
    conversation = get_or_create_conversation(db, viewer, other)
    purge_expired_messages(db, conversation.id)

    messages = (
        db.query(Message)
        .filter(Message.conversation_id == conversation.id)
        .order_by(Message.created_at.asc())
        .all()
    )

    mark_conversation_read(db, viewer, conversation)
    return conversation, messages


def mark_messages_read(
    db: Session, viewer: User, ids: list[str], ttl_seconds: float
) -> dict[str, datetime]:
    """
    Persist the deletion deadline of incoming messages the viewer has seen.

    Only messages without a deadline are stamped; a message read earlier
    keeps its original deadline so reloads resume the countdown instead
    of restarting it. The viewer's own messages are ignored.
    """
    ttl_seconds = validate_ttl(ttl_seconds)
    if not ids:
        return {}

    messages = (
        db.query(Message)
        .join(Conversation, Message.conversation_id == Conversation.id)
        .filter(
            Message.id.in_(ids),
            Message.sender_id != viewer.id,
            (Conversation.user_low_id == viewer.id) | (Conversation.user_high_id == viewer.id),
        )
        .all()
    )

    deadline = utcnow() + timedelta(seconds=ttl_seconds)
    stamped = {}
    for message in messages:
        if message.expires_at is None:
            message.expires_at = deadline
        stamped[message.id] = message.expires_at

    db.commit()
    return stamped


def delete_messages(db: Session, ids: list[str]) -> int:
    """Delete messages by id; unknown ids are skipped"""
    if not ids:
        return 0

    removed = (
        db.query(Message)
        .filter(Message.id.in_(ids))
        .delete(synchronize_session=False)
    )
    db.commit()
    return removed
