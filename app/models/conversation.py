"""
Conversation log model.

Append-only record of every outbound and inbound candidate message. Used for
audit and as context for the AI classifier; rows are never updated.
"""

import enum
from sqlalchemy import Column, Integer, ForeignKey, Enum, String, Text, DateTime, func
from sqlalchemy.orm import relationship
from app.core.database import Base, JSONType


class MessageDirection(str, enum.Enum):
    OUTBOUND = "outbound"
    INBOUND = "inbound"


class ConversationEntry(Base):
    __tablename__ = "candidate_conversations"

    id = Column(Integer, primary_key=True, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), nullable=False, index=True)
    direction = Column(Enum(MessageDirection), nullable=False)
    message_type = Column(String, nullable=False, index=True)
    content = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    candidate = relationship("Candidate", back_populates="conversations")

    def __repr__(self):
        return f"<ConversationEntry(candidate_id={self.candidate_id}, type='{self.message_type}')>"
