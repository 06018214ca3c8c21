import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.deps import get_message_generator, get_now
from app.core.exceptions import NotFoundError
from app.crud import candidate as candidate_crud
from app.schemas.ai import CandidateAnalysis
from app.schemas.outreach import AnalysisResultResponse
from app.services.message_generator import MessageGenerator
from app.services.outreach_service import handle_analysis_result

router = APIRouter(prefix="/candidates", tags=["Candidates"])
logger = logging.getLogger(__name__)


@router.post("/{candidate_id}/analysis-complete", response_model=AnalysisResultResponse)
def analysis_complete(
    candidate_id: int,
    analysis: CandidateAnalysis,
    db: Session = Depends(get_db),
    generator: MessageGenerator = Depends(get_message_generator),
    now: datetime = Depends(get_now)
):
    """
    Receive a finished AI profile analysis and start outreach.

    - strong candidate, approved template, Telegram chat: `send_outreach` job (`job_id`)
    - otherwise a warm intro at a human-like time (`outreach_id`), when eligible
    """
    candidate = candidate_crud.get_by_id(db, candidate_id)
    if candidate is None:
        raise NotFoundError(f"Candidate {candidate_id} not found")

    outreach_id, job_id = handle_analysis_result(db, candidate, analysis, generator, now)
    logger.info(f"Analysis of candidate {candidate_id} recorded: outreach={outreach_id} job={job_id}")
    return AnalysisResultResponse(outreach_id=outreach_id, job_id=job_id)
