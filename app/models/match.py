"""
Candidate-to-request match model.

Links a candidate to a hiring request with the AI match score, the workflow
status and the manager's final decision. `final_decision` is written once.
"""

import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Float, Enum, Text, DateTime, BigInteger, UniqueConstraint, func
from sqlalchemy.orm import relationship
from app.core.database import Base


class MatchStatus(str, enum.Enum):
    NEW = "new"
    REVIEWED = "reviewed"
    INTERVIEW = "interview"
    HIRED = "hired"
    REJECTED = "rejected"
    ON_HOLD = "on_hold"


class FinalDecision(str, enum.Enum):
    INVITE = "invite"
    REJECT = "reject"


class CandidateRequestMatch(Base):
    __tablename__ = "candidate_request_matches"
    __table_args__ = (
        UniqueConstraint("candidate_id", "request_id", name="uq_match_candidate_request"),
    )

    id = Column(Integer, primary_key=True, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    request_id = Column(Integer, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True)

    match_score = Column(Float, nullable=True, index=True)
    match_explanation = Column(Text, nullable=True)
    status = Column(Enum(MatchStatus), default=MatchStatus.NEW, nullable=False)

    final_decision = Column(Enum(FinalDecision), nullable=True)
    final_decision_at = Column(DateTime(timezone=True), nullable=True)
    final_decision_by = Column(String, nullable=True)

    outreach_telegram_message_id = Column(BigInteger, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    candidate = relationship("Candidate", back_populates="matches")
    request = relationship("HiringRequest", back_populates="matches")

    def __repr__(self):
        return f"<CandidateRequestMatch(candidate_id={self.candidate_id}, request_id={self.request_id}, score={self.match_score})>"
