# circle/core/conversation.py

import logging
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from circle.models.base import utcnow
from circle.models.conversation import Conversation, ConversationRead
from circle.models.message import Message
from circle.models.user import User

logger = logging.getLogger(__name__)


def participant_pair(user_a: User, user_b: User) -> tuple[str, str]:
    """Sorted id pair: the store-level key of a conversation."""
    if user_a.id == user_b.id:
        raise ValueError("You cannot start a conversation with yourself")
    return tuple(sorted((user_a.id, user_b.id)))


def find_conversation(db: Session, user_a: User, user_b: User) -> Conversation | None:
    low, high = participant_pair(user_a, user_b)
    return (
        db.query(Conversation)
        .filter(Conversation.user_low_id == low, Conversation.user_high_id == high)
        .first()
    )


def get_or_create_conversation(db: Session, user_a: User, user_b: User) -> Conversation:
    """
    Return the conversation between two users, creating it on first contact.

    The unique constraint on the pair decides races: the losing insert
    rolls back and reads the row the other request created.
    """
    conversation = find_conversation(db, user_a, user_b)
    if conversation:
        return conversation

    low, high = participant_pair(user_a, user_b)
    conversation = Conversation(user_low_id=low, user_high_id=high)
    db.add(conversation)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Conversation %s/%s created concurrently, reusing it", low, high)
        conversation = find_conversation(db, user_a, user_b)
        if conversation is None:
            raise
        return conversation

    db.refresh(conversation)
    logger.info("💬 Conversation created: %s <-> %s", user_a.pseudonym, user_b.pseudonym)
    return conversation


def mark_conversation_read(db: Session, user: User, conversation: Conversation) -> None:
    marker = db.get(ConversationRead, (user.id, conversation.id))
    if marker is None:
        db.add(ConversationRead(user_id=user.id, conversation_id=conversation.id))
    else:
        marker.last_read = utcnow()
    db.commit()


def _live(query, now: datetime):
    return query.filter(or_(Message.expires_at.is_(None), Message.expires_at > now))


def list_conversations(db: Session, user: User) -> list[dict]:
    """
    Conversation summaries for a user, most recent activity first.
    """
    now = utcnow()
    conversations = (
        db.query(Conversation)
        .filter(or_(Conversation.user_low_id == user.id, Conversation.user_high_id == user.id))
        .all()
    )

    summaries = []
    for conversation in conversations:
        other = conversation.other_participant(user.id)

        messages = _live(
            db.query(Message).filter(Message.conversation_id == conversation.id), now
        )
        last = messages.order_by(Message.created_at.desc()).first()

        incoming = messages.filter(Message.sender_id != user.id)
        marker = db.get(ConversationRead, (user.id, conversation.id))
        if marker is not None:
            incoming = incoming.filter(Message.created_at > marker.last_read)

        summaries.append({
            "conversationId": conversation.id,
            "otherParticipant": other.pseudonym,
            "otherDisplayName": other.display_name or other.pseudonym,
            "lastMessage": last.content if last else None,
            "lastMessageEncrypted": last.is_encrypted if last else False,
            "lastMessageTime": last.created_at if last else None,
            "unreadCount": incoming.count(),
        })

    # Empty conversations sort last
    summaries.sort(
        key=lambda s: s["lastMessageTime"] or datetime.min,
        reverse=True,
    )
    return summaries
