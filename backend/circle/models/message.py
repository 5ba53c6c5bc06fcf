# circle/models/message.py

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from circle.models.base import Base, new_id, utcnow


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=new_id)
    conversation_id = Column(
        String(36), ForeignKey("conversations.id"), nullable=False, index=True
    )
    sender_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    # Base64 AES-GCM payload when is_encrypted, plain text otherwise
    content = Column(Text, nullable=False)
    is_encrypted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    # NULL until the recipient reads it; never moved once set
    expires_at = Column(DateTime, nullable=True, index=True)

    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("User")
