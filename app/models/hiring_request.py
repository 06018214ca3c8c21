import enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, Text, func
from sqlalchemy.orm import relationship
from app.core.database import Base, JSONType


class HiringRequestStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"


class HiringRequest(Base):
    """
    A hiring request (open position) created by a manager.

    Carries the configuration the automation handlers need: the approved
    outreach template, questionnaire composition and the test-task link.
    """
    __tablename__ = "requests"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    status = Column(Enum(HiringRequestStatus), default=HiringRequestStatus.ACTIVE, nullable=False)

    # Outreach template must be approved by a manager before automated sends
    outreach_template = Column(Text, nullable=True)
    outreach_template_approved = Column(Boolean, default=False, nullable=False)

    # Questionnaire: random questions per competency plus explicit question ids
    questionnaire_competency_ids = Column(JSONType, nullable=True)
    questionnaire_question_ids = Column(JSONType, nullable=True)

    # Test task
    test_task_url = Column(String, nullable=True)
    test_task_deadline_days = Column(Integer, nullable=True)
    test_task_evaluation_criteria = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    matches = relationship("CandidateRequestMatch", back_populates="request", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<HiringRequest(id={self.id}, title='{self.title}')>"
