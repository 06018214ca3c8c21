"""
CRUD operations for CandidateRequestMatch.
"""

from typing import Optional
from sqlalchemy.orm import Session
from app.models.match import CandidateRequestMatch


def get(db: Session, candidate_id: int, request_id: int) -> Optional[CandidateRequestMatch]:
    return db.query(CandidateRequestMatch).filter(
        CandidateRequestMatch.candidate_id == candidate_id,
        CandidateRequestMatch.request_id == request_id
    ).first()


def get_best_match(
    db: Session,
    candidate_id: int,
    min_score: Optional[float] = None
) -> Optional[CandidateRequestMatch]:
    """
    Highest-scoring match for a candidate.

    Args:
        db: Database session
        candidate_id: Candidate ID
        min_score: Optional lower bound on match_score

    Returns:
        Best CandidateRequestMatch or None
    """
    query = db.query(CandidateRequestMatch).filter(
        CandidateRequestMatch.candidate_id == candidate_id,
        CandidateRequestMatch.match_score.isnot(None)
    )
    if min_score is not None:
        query = query.filter(CandidateRequestMatch.match_score >= min_score)

    return query.order_by(
        CandidateRequestMatch.match_score.desc(),
        CandidateRequestMatch.id.asc()
    ).first()
