# circle/api/users.py

import base64
import binascii
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from circle.core.user import (
    delete_user,
    get_public_key,
    get_user_by_pseudonym,
    get_user_by_wallet,
    register_user,
)
from circle.infra.postgres import get_db
from circle.models.base import to_iso_utc, utcnow
from circle.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users")


class RegisterUserSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    wallet_address: str = Field(alias="walletAddress", min_length=1)
    pseudonym: str = Field(min_length=1, max_length=50)
    display_name: Optional[str] = Field(default=None, alias="displayName", max_length=100)
    bio: Optional[str] = None
    public_key: Optional[str] = Field(default=None, alias="publicKey")


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "walletAddress": user.wallet_address,
        "pseudonym": user.pseudonym,
        "displayName": user.display_name,
        "bio": user.bio,
        "hasPublicKey": user.public_key is not None,
        "createdAt": to_iso_utc(user.created_at),
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register_user_endpoint(payload: RegisterUserSchema, db: Session = Depends(get_db)):
    public_key = None
    if payload.public_key:
        try:
            public_key = base64.b64decode(payload.public_key, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=400, detail="publicKey must be base64")
        if len(public_key) != 32:
            raise HTTPException(status_code=400, detail="publicKey must be a raw 32-byte X25519 key")

    try:
        user = register_user(
            db,
            payload.wallet_address,
            payload.pseudonym,
            display_name=payload.display_name,
            bio=payload.bio,
            public_key=public_key,
        )
    except ValueError as e:
        logger.info("Registration rejected for %s: %s", payload.pseudonym, e)
        raise HTTPException(status_code=409, detail=str(e))

    logger.info("✅ User %s registered", user.pseudonym)
    return serialize_user(user)


@router.get("")
def get_user(
    pseudonym: Optional[str] = None,
    wallet_address: Optional[str] = None,
    db: Session = Depends(get_db),
):
    if pseudonym:
        user = get_user_by_pseudonym(db, pseudonym)
    elif wallet_address:
        user = get_user_by_wallet(db, wallet_address)
    else:
        raise HTTPException(status_code=400, detail="Pseudonym or wallet_address is required")

    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return serialize_user(user)


@router.get("/{pseudonym}/public-key")
def get_user_public_key(pseudonym: str, db: Session = Depends(get_db)):
    if get_user_by_pseudonym(db, pseudonym) is None:
        raise HTTPException(status_code=404, detail="User not found")

    public_key = get_public_key(db, pseudonym)
    public_key_b64 = base64.b64encode(public_key).decode() if public_key else None
    return {"publicKey": public_key_b64}


@router.delete("")
def delete_user_endpoint(wallet_address: str, db: Session = Depends(get_db)):
    """Killswitch: delete the user, its conversations and their messages"""
    if not delete_user(db, wallet_address):
        raise HTTPException(status_code=404, detail="User not found")
    return {"status": "deleted", "deletedAt": to_iso_utc(utcnow())}
