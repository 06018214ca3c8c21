"""
Manager final decision on a candidate/request match.

A decision is written once. Repeating the same decision is a no-op that
returns the already-queued follow-up; a different decision is a conflict.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import DecisionConflictError, NotFoundError
from app.core.timeutils import as_utc
from app.crud import automation_job as job_crud
from app.crud import candidate as candidate_crud
from app.crud import match as match_crud
from app.models.automation_job import ActionType, AutomationJob
from app.models.match import FinalDecision, MatchStatus
from app.models.pipeline import PipelineStage, transition
from app.schemas.automation import FinalDecisionResponse

logger = logging.getLogger(__name__)

FOLLOW_UP_ACTIONS = {
    FinalDecision.INVITE: ActionType.SEND_INVITE,
    FinalDecision.REJECT: ActionType.SEND_REJECTION,
}


def _follow_up_job_id(db: Session, candidate_id: int, request_id: int, action_type: ActionType) -> Optional[int]:
    job = db.query(AutomationJob.id).filter(
        AutomationJob.candidate_id == candidate_id,
        AutomationJob.request_id == request_id,
        AutomationJob.action_type == action_type
    ).order_by(AutomationJob.id.desc()).first()
    return job.id if job else None


def record_final_decision(
    db: Session,
    candidate_id: int,
    request_id: int,
    decision: FinalDecision,
    decided_by: Optional[str],
    now: datetime
) -> FinalDecisionResponse:
    """
    Record invite/reject on the match and queue the candidate message.

    An invite is sent on the next automation tick; a rejection waits
    REJECTION_DELAY_HOURS first.

    Args:
        db: Database session
        candidate_id: Candidate ID
        request_id: Hiring request ID
        decision: INVITE or REJECT
        decided_by: Manager identifier
        now: Decision time

    Returns:
        FinalDecisionResponse with the follow-up job id

    Raises:
        NotFoundError: Candidate or match does not exist
        DecisionConflictError: A different decision is already recorded
        InvalidStageTransitionError: The candidate's stage cannot take the decision
    """
    candidate = candidate_crud.get_by_id(db, candidate_id)
    if candidate is None:
        raise NotFoundError(f"Candidate {candidate_id} not found")

    match = match_crud.get(db, candidate_id, request_id)
    if match is None:
        raise NotFoundError(f"Match for candidate {candidate_id} and request {request_id} not found")

    action_type = FOLLOW_UP_ACTIONS[decision]

    if match.final_decision is not None:
        if match.final_decision != decision:
            raise DecisionConflictError(
                f"Final decision '{match.final_decision.value}' already recorded for candidate {candidate_id}"
            )
        logger.info(f"Final decision '{decision.value}' already recorded for candidate {candidate_id}, no-op")
        return FinalDecisionResponse(
            decision=decision.value,
            job_id=_follow_up_job_id(db, candidate_id, request_id, action_type),
            already_recorded=True,
            final_decision_at=as_utc(match.final_decision_at)
        )

    invite = decision == FinalDecision.INVITE
    transition(candidate, PipelineStage.INTERVIEW if invite else PipelineStage.REJECTED)

    match.final_decision = decision
    match.final_decision_at = as_utc(now)
    match.final_decision_by = decided_by
    match.status = MatchStatus.INTERVIEW if invite else MatchStatus.REJECTED
    db.commit()

    scheduled_for = None if invite else as_utc(now) + timedelta(hours=settings.REJECTION_DELAY_HOURS)
    job_id = job_crud.enqueue(db, action_type, candidate_id, request_id, scheduled_for=scheduled_for)

    logger.info(
        f"Final decision '{decision.value}' recorded for candidate {candidate_id} by {decided_by}, "
        f"job {job_id} scheduled for {scheduled_for.isoformat() if scheduled_for else 'now'}"
    )
    return FinalDecisionResponse(
        decision=decision.value,
        job_id=job_id,
        final_decision_at=as_utc(now)
    )
