import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.deps import get_manager_id, get_now
from app.models.match import FinalDecision
from app.schemas.automation import FinalDecisionRequest, FinalDecisionResponse
from app.services.decisions import record_final_decision

router = APIRouter(prefix="/candidates", tags=["Decisions"])
logger = logging.getLogger(__name__)


@router.post("/{candidate_id}/final-decision", response_model=FinalDecisionResponse)
def final_decision(
    candidate_id: int,
    request: FinalDecisionRequest,
    db: Session = Depends(get_db),
    manager_id: str = Depends(get_manager_id),
    now: datetime = Depends(get_now)
):
    """
    Record the manager's invite/reject decision for a candidate on a request.

    - `invite`: queues `send_invite` for the next automation tick
    - `reject`: queues `send_rejection` 24 hours later

    Repeating the same decision returns the existing record
    (`already_recorded=true`); a different decision returns 409.
    """
    return record_final_decision(
        db,
        candidate_id=candidate_id,
        request_id=request.request_id,
        decision=FinalDecision(request.decision.value),
        decided_by=manager_id,
        now=now
    )
