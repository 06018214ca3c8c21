"""
Candidate database model.

Represents an applicant moving through the hiring pipeline. The automation
subsystem mutates stage, outreach, questionnaire and test-task fields but
never deletes candidates.
"""

from sqlalchemy import Column, Integer, String, Enum, Text, Float, DateTime, BigInteger, func
from sqlalchemy.orm import relationship
import enum
from app.core.database import Base, JSONType
from app.models.pipeline import PipelineStage


class CandidateSource(str, enum.Enum):
    WARM = "warm"   # Applied through the public form
    COLD = "cold"   # Sourced by a manager


class OutreachStatus(str, enum.Enum):
    NOT_SCHEDULED = "not_scheduled"
    SCHEDULED = "scheduled"
    SENT = "sent"
    CANCELLED = "cancelled"
    DECLINED = "declined"


class QuestionnaireStatus(str, enum.Enum):
    NOT_SENT = "not_sent"
    SENT = "sent"
    COMPLETED = "completed"


class TestTaskStatus(str, enum.Enum):
    """
    Test-task lifecycle:

    NOT_SENT -> SCHEDULED -> SENT -> EVALUATING -> EVALUATED -> APPROVED | REJECTED

    A submission whose AI evaluation fails falls back to SUBMITTED for
    manual review.
    """
    NOT_SENT = "not_sent"
    SCHEDULED = "scheduled"
    SENT = "sent"
    SUBMITTED = "submitted"
    EVALUATING = "evaluating"
    EVALUATED = "evaluated"
    APPROVED = "approved"
    REJECTED = "rejected"


class Candidate(Base):
    """
    A candidate in the hiring funnel.

    `test_task_extensions_count` never exceeds MAX_TEST_TASK_EXTENSIONS; the
    extension service is the only writer of it and of `test_task_current_deadline`.
    """
    __tablename__ = "candidates"

    id = Column(Integer, primary_key=True, index=True)

    # Identity and contact channels
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    telegram_username = Column(String, nullable=True, index=True)
    telegram_chat_id = Column(BigInteger, nullable=True)
    preferred_contact_methods = Column(JSONType, nullable=True)  # e.g. ["telegram", "email"]

    source = Column(Enum(CandidateSource), default=CandidateSource.WARM, nullable=False)
    about_text = Column(Text, nullable=True)
    why_company = Column(Text, nullable=True)
    key_skills = Column(JSONType, nullable=True)

    pipeline_stage = Column(
        Enum(PipelineStage),
        default=PipelineStage.NEW,
        nullable=False,
        index=True
    )

    # AI evaluation
    ai_score = Column(Float, nullable=True)
    ai_category = Column(String, nullable=True)
    ai_summary = Column(Text, nullable=True)
    ai_strengths = Column(JSONType, nullable=True)
    ai_concerns = Column(JSONType, nullable=True)

    # Outreach
    outreach_status = Column(Enum(OutreachStatus), default=OutreachStatus.NOT_SCHEDULED, nullable=False)
    outreach_sent_at = Column(DateTime(timezone=True), nullable=True)

    questionnaire_status = Column(Enum(QuestionnaireStatus), default=QuestionnaireStatus.NOT_SENT, nullable=False)

    # Test task
    test_task_status = Column(Enum(TestTaskStatus), default=TestTaskStatus.NOT_SENT, nullable=False, index=True)
    test_task_sent_at = Column(DateTime(timezone=True), nullable=True)
    test_task_original_deadline = Column(DateTime(timezone=True), nullable=True)
    test_task_current_deadline = Column(DateTime(timezone=True), nullable=True)
    test_task_extensions_count = Column(Integer, default=0, nullable=False)
    test_task_submitted_at = Column(DateTime(timezone=True), nullable=True)
    test_task_submission_text = Column(Text, nullable=True)
    test_task_candidate_feedback = Column(String, nullable=True)
    test_task_late_by_hours = Column(Integer, nullable=True)
    test_task_ai_score = Column(Float, nullable=True)
    test_task_ai_evaluation = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    matches = relationship("CandidateRequestMatch", back_populates="candidate", cascade="all, delete-orphan")
    conversations = relationship(
        "ConversationEntry",
        back_populates="candidate",
        order_by="ConversationEntry.id"
    )

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self):
        return f"<Candidate(id={self.id}, stage={self.pipeline_stage})>"
