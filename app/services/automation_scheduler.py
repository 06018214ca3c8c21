"""
Periodic dispatcher for automation jobs.

`tick` is the whole scheduler: it takes the reference time and its
collaborators explicitly, so the Celery task, the HTTP trigger and the
tests all drive the same code. Per tick:

    recover_stuck -> requeue_failed -> fetch_due(limit) -> for each job:
        claim -> HANDLERS[action_type] -> complete | fail -> pacer.pause()

A claim that loses (job taken by an overlapping tick, or the candidate
already has a job in flight) is counted as skipped. One job's failure
never stops the batch.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.pacing import Pacer
from app.crud import automation_job as job_crud
from app.models.automation_job import ActionType
from app.services.automation_handlers import HANDLERS, AutomationContext, Handler

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    recovered: int = 0
    requeued: int = 0
    dead_lettered: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
            "recovered": self.recovered,
            "requeued": self.requeued,
            "dead_lettered": self.dead_lettered,
            "errors": list(self.errors),
        }


def tick(
    db: Session,
    now: datetime,
    context: AutomationContext,
    pacer: Pacer,
    batch_limit: Optional[int] = None,
    registry: Optional[Dict[ActionType, Handler]] = None,
    max_retries: Optional[int] = None,
    processing_timeout_minutes: Optional[int] = None
) -> BatchResult:
    """
    Process one bounded batch of due automation jobs.

    Args:
        db: Database session
        now: Reference time (due check, claim/complete timestamps)
        context: Collaborators passed to every handler
        pacer: Pause policy between jobs
        batch_limit: Max jobs per tick (defaults to AUTOMATION_BATCH_SIZE)
        registry: Handler per action type (defaults to HANDLERS)
        max_retries: Requeue limit for failed jobs (defaults to AUTOMATION_MAX_RETRIES)
        processing_timeout_minutes: Age after which a PROCESSING job counts as
            crashed (defaults to PROCESSING_TIMEOUT_MINUTES)

    Returns:
        BatchResult; partial counts are kept if the tick aborts midway
    """
    batch_limit = batch_limit or settings.AUTOMATION_BATCH_SIZE
    registry = registry if registry is not None else HANDLERS
    max_retries = settings.AUTOMATION_MAX_RETRIES if max_retries is None else max_retries
    if processing_timeout_minutes is None:
        processing_timeout_minutes = settings.PROCESSING_TIMEOUT_MINUTES
    result = BatchResult()

    try:
        result.recovered = job_crud.recover_stuck(db, now, processing_timeout_minutes)
        result.requeued, result.dead_lettered = job_crud.requeue_failed(db, max_retries)

        jobs = job_crud.fetch_due(db, now, batch_limit)
        logger.info(f"Automation tick: {len(jobs)} due job(s)")

        for index, job in enumerate(jobs):
            job_id = job.id
            if not job_crud.claim(db, job_id, now):
                logger.info(f"Automation job {job_id} not claimed (taken or candidate busy), skipping")
                result.skipped += 1
                continue

            result.processed += 1
            db.refresh(job)
            try:
                handler = registry.get(ActionType(job.action_type))
                if handler is None:
                    raise ValueError(f"Unknown action type: {job.action_type}")

                handler(db, job, context)
                db.commit()
                job_crud.complete(db, job_id, now)
                result.successful += 1
                logger.info(f"Automation job {job_id} ({job.action_type.value}) completed")

            except Exception as e:
                db.rollback()
                error = str(e) or e.__class__.__name__
                job_crud.fail(db, job_id, error, now)
                result.failed += 1
                result.errors.append(f"Job {job_id}: {error}")
                logger.error(f"Automation job {job_id} failed: {error}", exc_info=True)

            if index < len(jobs) - 1:
                pacer.pause()

    except Exception as e:
        db.rollback()
        result.errors.append(f"Tick aborted: {e}")
        logger.error(f"Automation tick aborted: {e}", exc_info=True)

    logger.info(
        f"Automation tick finished: processed={result.processed} successful={result.successful} "
        f"failed={result.failed} skipped={result.skipped}"
    )
    return result
