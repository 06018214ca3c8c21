"""
Periodic trigger endpoints.

An external scheduler (platform cron, or Celery Beat through the worker
tasks) calls these to run one automation or outreach tick. Both accept GET
and POST and authenticate with the cron secret.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.deps import (
    get_dispatcher,
    get_message_generator,
    get_now,
    get_outreach_processor,
    get_pacer,
    verify_cron_secret,
)
from app.core.pacing import Pacer
from app.crud import automation_job as job_crud
from app.schemas.automation import AutomationJobResponse, BatchResultResponse
from app.services.automation_handlers import AutomationContext
from app.services.automation_scheduler import tick
from app.services.message_generator import MessageGenerator
from app.services.messaging import MessageDispatcher
from app.services.outreach_service import OutreachProcessor

router = APIRouter(prefix="/cron", tags=["Triggers"], dependencies=[Depends(verify_cron_secret)])
logger = logging.getLogger(__name__)


@router.api_route("/process-automation", methods=["GET", "POST"], response_model=BatchResultResponse)
def process_automation(
    db: Session = Depends(get_db),
    dispatcher: MessageDispatcher = Depends(get_dispatcher),
    generator: MessageGenerator = Depends(get_message_generator),
    pacer: Pacer = Depends(get_pacer),
    now: datetime = Depends(get_now)
):
    """
    Run one automation tick: requeue failed jobs per the retry policy, then
    claim and execute up to AUTOMATION_BATCH_SIZE due jobs.
    """
    context = AutomationContext(dispatcher=dispatcher, generator=generator, now=now)
    result = tick(db, now=now, context=context, pacer=pacer)
    return BatchResultResponse(**result.as_dict())


@router.api_route("/process-outreach", methods=["GET", "POST"], response_model=BatchResultResponse)
def process_outreach(
    db: Session = Depends(get_db),
    processor: OutreachProcessor = Depends(get_outreach_processor),
    now: datetime = Depends(get_now)
):
    """Send up to OUTREACH_BATCH_SIZE due outreach items."""
    result = processor.tick(db, now)
    return BatchResultResponse(**result.as_dict())


@router.post("/jobs/{job_id}/cancel", response_model=AutomationJobResponse)
def cancel_job(job_id: int, db: Session = Depends(get_db)):
    """Cancel an automation job that has not started yet."""
    job = job_crud.get_by_id(db, job_id)
    if not job:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found", "message": f"Job {job_id} not found"}
        )

    if not job_crud.cancel_job(db, job_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "precondition_failed", "message": f"Job {job_id} is {job.status.value}, not pending"}
        )

    db.refresh(job)
    logger.info(f"Cancelled automation job {job_id}")
    return job
