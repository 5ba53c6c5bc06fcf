# circle/core/user.py

import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from circle.models.conversation import Conversation, ConversationRead
from circle.models.user import User

logger = logging.getLogger(__name__)


def normalize_wallet(wallet_address: str) -> str:
    return wallet_address.strip().lower()


def get_user_by_wallet(db: Session, wallet_address: str) -> User | None:
    return (
        db.query(User)
        .filter(User.wallet_address == normalize_wallet(wallet_address))
        .first()
    )


def get_user_by_pseudonym(db: Session, pseudonym: str) -> User | None:
    return db.query(User).filter(User.pseudonym == pseudonym.strip()).first()


def register_user(
    db: Session,
    wallet_address: str,
    pseudonym: str,
    display_name: str | None = None,
    bio: str | None = None,
    public_key: bytes | None = None,
) -> User:
    """
    Create a new user.

    Raises ValueError when the wallet is already registered or the
    pseudonym is taken.
    """
    wallet_address = normalize_wallet(wallet_address)
    pseudonym = pseudonym.strip()
    if not wallet_address or not pseudonym:
        raise ValueError("Wallet address and pseudonym are required")

    if get_user_by_wallet(db, wallet_address):
        raise ValueError("User already exists")
    if get_user_by_pseudonym(db, pseudonym):
        raise ValueError("Pseudonym already taken")

    user = User(
        wallet_address=wallet_address,
        pseudonym=pseudonym,
        display_name=display_name or pseudonym,
        bio=bio,
        public_key=public_key,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def get_public_key(db: Session, pseudonym: str) -> bytes | None:
    """Get a user's public key by pseudonym"""
    user = get_user_by_pseudonym(db, pseudonym)
    if user is None:
        return None
    return user.public_key


def delete_user(db: Session, wallet_address: str) -> bool:
    """
    Killswitch: remove the user and everything attached to it.

    Messages go with their conversations (ORM cascade), so both sides of
    every conversation lose the history. Returns False for unknown wallets.
    """
    user = get_user_by_wallet(db, wallet_address)
    if user is None:
        return False

    conversations = (
        db.query(Conversation)
        .filter(or_(Conversation.user_low_id == user.id, Conversation.user_high_id == user.id))
        .all()
    )
    conversation_ids = [c.id for c in conversations]

    db.query(ConversationRead).filter(
        or_(
            ConversationRead.user_id == user.id,
            ConversationRead.conversation_id.in_(conversation_ids),
        )
    ).delete(synchronize_session=False)

    for conversation in conversations:
        db.delete(conversation)
    db.delete(user)
    db.commit()

    logger.info(
        "🗑️ Wiped user %s (%d conversations)", user.pseudonym, len(conversation_ids)
    )
    return True
