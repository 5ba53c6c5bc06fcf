# circle/models/base.py

from datetime import datetime, timezone
from typing import Optional
import uuid

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp; sqlite drops tzinfo so everything is stored naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso_utc(value: Optional[datetime]) -> Optional[str]:
    """ISO 8601 with an explicit +00:00 offset, for stored naive UTC values."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())
