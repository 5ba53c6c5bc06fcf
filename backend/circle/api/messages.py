import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from circle.config import SEND_MESSAGE_LIMIT
from circle.core.message import (
    delete_messages,
    fetch_conversation_messages,
    mark_messages_read,
    send_message,
)
from circle.core.rate_limit import limiter
from circle.core.user import get_user_by_pseudonym, get_user_by_wallet
from circle.infra.postgres import get_db
from circle.models.base import to_iso_utc
from circle.models.message import Message
from circle.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages")


class SendMessageSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender_wallet: str = Field(alias="senderWallet", min_length=1)
    recipient_pseudonym: str = Field(alias="recipientPseudonym", min_length=1)
    content: str = Field(min_length=1)
    is_encrypted: bool = Field(default=False, alias="isEncrypted")


class MarkReadSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    wallet_address: str = Field(alias="walletAddress", min_length=1)
    ids: list[str]
    ttl_seconds: float = Field(alias="ttlSeconds")


class DeleteMessagesSchema(BaseModel):
    ids: list[str]


def serialize_message(message: Message, viewer: User) -> dict:
    return {
        "id": message.id,
        "conversationId": message.conversation_id,
        "content": message.content,
        "senderPseudonym": message.sender.pseudonym,
        "createdAt": to_iso_utc(message.created_at),
        "isOwn": message.sender_id == viewer.id,
        "isEncrypted": message.is_encrypted,
        "expiresAt": to_iso_utc(message.expires_at),
    }


def _require_user(user: User | None, detail: str) -> User:
    if user is None:
        raise HTTPException(status_code=404, detail=detail)
    return user


@router.post("/send")
@limiter.limit(SEND_MESSAGE_LIMIT)
def send_message_endpoint(request: Request, payload: SendMessageSchema, db: Session = Depends(get_db)):
    sender = _require_user(get_user_by_wallet(db, payload.sender_wallet), "Sender user not found")
    recipient = _require_user(
        get_user_by_pseudonym(db, payload.recipient_pseudonym), "Recipient user not found"
    )

    try:
        message = send_message(db, sender, recipient, payload.content, payload.is_encrypted)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("❌ ERROR in send_message")
        raise HTTPException(status_code=500, detail="Failed to send message")

    logger.info("💬 Message %s: %s -> %s", message.id, sender.pseudonym, recipient.pseudonym)
    return serialize_message(message, sender)


@router.get("")
def get_messages_endpoint(
    wallet_address: str,
    other_user_pseudonym: str,
    db: Session = Depends(get_db),
):
    viewer = _require_user(get_user_by_wallet(db, wallet_address), "Current user not found")
    other = _require_user(get_user_by_pseudonym(db, other_user_pseudonym), "Other user not found")

    try:
        _, messages = fetch_conversation_messages(db, viewer, other)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("❌ ERROR in get_messages")
        raise HTTPException(status_code=500, detail="Failed to fetch messages")

    return [serialize_message(m, viewer) for m in messages]


@router.post("/read")
def mark_read_endpoint(payload: MarkReadSchema, db: Session = Depends(get_db)):
    viewer = _require_user(get_user_by_wallet(db, payload.wallet_address), "Current user not found")

    try:
        stamped = mark_messages_read(db, viewer, payload.ids, payload.ttl_seconds)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return [{"id": mid, "expiresAt": to_iso_utc(expires_at)} for mid, expires_at in stamped.items()]


@router.post("/delete")
def delete_messages_endpoint(payload: DeleteMessagesSchema, db: Session = Depends(get_db)):
    if not payload.ids:
        raise HTTPException(status_code=400, detail="IDs array is required")

    removed = delete_messages(db, payload.ids)
    logger.info("🗑️ Deleted %d of %d message(s)", removed, len(payload.ids))
    return {"status": "deleted", "removed": removed}
