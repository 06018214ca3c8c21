"""
Soft-skills questionnaire models.

Competencies group questions; a QuestionnaireResponse is the tokenized,
expiring questionnaire instance sent to one candidate for one request. The
question list is snapshotted at send time so later edits do not change it.
"""

import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Boolean, Enum, Float, Text, DateTime, func
from sqlalchemy.orm import relationship
from app.core.database import Base, JSONType


class SoftSkillCompetency(Base):
    __tablename__ = "soft_skill_competencies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)

    questions = relationship("QuestionnaireQuestion", back_populates="competency")


class QuestionnaireQuestion(Base):
    __tablename__ = "questionnaire_questions"

    id = Column(Integer, primary_key=True, index=True)
    competency_id = Column(Integer, ForeignKey("soft_skill_competencies.id"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    competency = relationship("SoftSkillCompetency", back_populates="questions")


class QuestionnaireResponseStatus(str, enum.Enum):
    SENT = "sent"
    COMPLETED = "completed"


class QuestionnaireResponse(Base):
    __tablename__ = "questionnaire_responses"

    id = Column(Integer, primary_key=True, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), nullable=False, index=True)
    request_id = Column(Integer, ForeignKey("requests.id"), nullable=False)
    token = Column(String, nullable=False, unique=True, index=True)
    status = Column(Enum(QuestionnaireResponseStatus), default=QuestionnaireResponseStatus.SENT, nullable=False)

    # [{"question_id", "competency_id", "competency_name", "text"}]
    questions = Column(JSONType, nullable=False)
    answers = Column(JSONType, nullable=True)

    # AI grading, filled in after submission
    ai_score = Column(Float, nullable=True)
    ai_evaluation = Column(JSONType, nullable=True)

    sent_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
