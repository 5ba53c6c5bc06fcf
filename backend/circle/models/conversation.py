# circle/models/conversation.py

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from circle.models.base import Base, new_id, utcnow


class Conversation(Base):
    """
    A conversation between exactly two users.

    The pair is stored sorted (user_low_id < user_high_id) so the unique
    constraint covers the unordered pair: simultaneous first contact from
    both sides cannot create two rows.
    """
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_conversation_pair"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_low_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    user_high_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user_low = relationship("User", foreign_keys=[user_low_id])
    user_high = relationship("User", foreign_keys=[user_high_id])
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
    )

    def other_participant(self, user_id: str):
        return self.user_high if self.user_low_id == user_id else self.user_low


class ConversationRead(Base):
    __tablename__ = "conversation_reads"

    user_id = Column(String(36), ForeignKey("users.id"), primary_key=True)
    conversation_id = Column(String(36), ForeignKey("conversations.id"), primary_key=True)
    last_read = Column(DateTime, default=utcnow, nullable=False)
