# circle/models/user.py

from sqlalchemy import Column, DateTime, LargeBinary, String, Text

from circle.models.base import Base, new_id, utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)

    # Always stored lower-cased
    wallet_address = Column(String(100), unique=True, nullable=False, index=True)
    pseudonym = Column(String(50), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=True)
    bio = Column(Text, nullable=True)

    # Raw 32-byte X25519 key, optional: clients without a key send plaintext
    public_key = Column(LargeBinary, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
