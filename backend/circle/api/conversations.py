# circle/api/conversations.py

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from circle.core.conversation import list_conversations
from circle.core.user import get_user_by_wallet
from circle.infra.postgres import get_db
from circle.models.base import to_iso_utc

router = APIRouter(prefix="/conversations")


@router.get("")
def list_conversations_endpoint(wallet_address: str, db: Session = Depends(get_db)):
    """Conversations of a wallet, most recent activity first"""
    user = get_user_by_wallet(db, wallet_address)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    summaries = list_conversations(db, user)
    for summary in summaries:
        summary["lastMessageTime"] = to_iso_utc(summary["lastMessageTime"])
    return summaries
