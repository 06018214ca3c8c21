"""
Outreach queue model.

An outreach item is a scheduled, manager-reviewable outbound message. Unlike
an AutomationJob its content can be edited, rescheduled or cancelled while it
is still SCHEDULED; SENT, CANCELLED and FAILED are terminal.
"""

import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Enum, Text, DateTime, func
from sqlalchemy.orm import relationship
from app.core.database import Base


class DeliveryMethod(str, enum.Enum):
    TELEGRAM = "telegram"
    EMAIL = "email"


class OutreachItemStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    PROCESSING = "processing"  # Claimed by a sender, transient
    SENT = "sent"
    CANCELLED = "cancelled"
    FAILED = "failed"


class OutreachQueueItem(Base):
    __tablename__ = "outreach_queue"

    id = Column(Integer, primary_key=True, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), nullable=False, index=True)
    request_id = Column(Integer, ForeignKey("requests.id"), nullable=True, index=True)

    intro_message = Column(Text, nullable=False)
    test_task_message = Column(Text, nullable=True)  # Set for test-task deliveries

    delivery_method = Column(Enum(DeliveryMethod), nullable=False)
    scheduled_for = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(Enum(OutreachItemStatus), default=OutreachItemStatus.SCHEDULED, nullable=False, index=True)

    # Audit
    edited_by = Column(String, nullable=True)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    external_message_id = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, default=0, nullable=False)
    claimed_at = Column(DateTime(timezone=True), nullable=True)  # Set when a sender takes the item

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    candidate = relationship("Candidate")

    @property
    def is_test_task(self) -> bool:
        return bool(self.test_task_message)

    @property
    def message_text(self) -> str:
        return self.test_task_message or self.intro_message

    def __repr__(self):
        return f"<OutreachQueueItem(id={self.id}, candidate_id={self.candidate_id}, status={self.status})>"
