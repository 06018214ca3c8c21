"""
CRUD operations for AutomationJob.

This module is the only writer of `status` and `retry_count`. Every state
change is a conditional UPDATE (compare-and-swap on the current status), so
overlapping scheduler ticks can never move the same job twice.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import update, select, or_
from sqlalchemy.orm import Session, aliased

from app.core.timeutils import as_utc
from app.models.automation_job import (
    AutomationJob,
    AutomationJobStatus,
    ActionType,
    ACTIVE_JOB_STATUSES,
)

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 2000
PROCESSING_TIMEOUT_ERROR = "Processing timed out"


def enqueue(
    db: Session,
    action_type: ActionType,
    candidate_id: int,
    request_id: int,
    scheduled_for: Optional[datetime] = None,
    payload: Optional[dict] = None
) -> int:
    """
    Add a job to the queue.

    A job with the same action, candidate and request that is still pending
    or processing is not duplicated; its id is returned instead.

    Args:
        db: Database session
        action_type: Handler to run
        candidate_id: Candidate the job acts on
        request_id: Hiring request the job belongs to
        scheduled_for: Earliest execution time, None for immediately
        payload: Optional handler parameters

    Returns:
        Id of the new (or already active) job
    """
    existing = db.query(AutomationJob).filter(
        AutomationJob.action_type == action_type,
        AutomationJob.candidate_id == candidate_id,
        AutomationJob.request_id == request_id,
        AutomationJob.status.in_(ACTIVE_JOB_STATUSES)
    ).first()

    if existing:
        logger.info(
            f"Job {action_type.value} for candidate {candidate_id} already queued "
            f"as job {existing.id}, skipping enqueue"
        )
        return existing.id

    job = AutomationJob(
        action_type=action_type,
        candidate_id=candidate_id,
        request_id=request_id,
        scheduled_for=as_utc(scheduled_for),
        payload=payload,
        status=AutomationJobStatus.PENDING,
        retry_count=0
    )
    db.add(job)
    db.commit()
    db.refresh(job)

    logger.info(
        f"Enqueued job {job.id} ({action_type.value}) for candidate {candidate_id}, "
        f"scheduled_for={job.scheduled_for}"
    )
    return job.id


def get_by_id(db: Session, job_id: int) -> Optional[AutomationJob]:
    return db.query(AutomationJob).filter(AutomationJob.id == job_id).first()


def get_for_candidate(db: Session, candidate_id: int) -> List[AutomationJob]:
    return db.query(AutomationJob).filter(
        AutomationJob.candidate_id == candidate_id
    ).order_by(AutomationJob.id.asc()).all()


def fetch_due(db: Session, now: datetime, limit: int) -> List[AutomationJob]:
    """
    Pending jobs whose schedule time has passed (or is unset), oldest first.

    Args:
        db: Database session
        now: Reference time
        limit: Maximum number of jobs to return

    Returns:
        List of due AutomationJob instances
    """
    return db.query(AutomationJob).filter(
        AutomationJob.status == AutomationJobStatus.PENDING,
        or_(
            AutomationJob.scheduled_for.is_(None),
            AutomationJob.scheduled_for <= as_utc(now)
        )
    ).order_by(
        AutomationJob.created_at.asc(),
        AutomationJob.id.asc()
    ).limit(limit).all()


def claim(db: Session, job_id: int, now: datetime) -> bool:
    """
    Atomically move a job from PENDING to PROCESSING.

    The update only matches while the job is still pending and no other job
    for the same candidate is processing, so at most one caller wins and a
    candidate never has two jobs in flight.

    Returns:
        True if this caller claimed the job
    """
    other = aliased(AutomationJob)
    candidate_busy = (
        select(other.id)
        .where(
            other.candidate_id == AutomationJob.candidate_id,
            other.status == AutomationJobStatus.PROCESSING
        )
        .correlate(AutomationJob)
        .exists()
    )

    stmt = (
        update(AutomationJob)
        .where(
            AutomationJob.id == job_id,
            AutomationJob.status == AutomationJobStatus.PENDING,
            ~candidate_busy
        )
        .values(status=AutomationJobStatus.PROCESSING, claimed_at=as_utc(now))
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()

    claimed = result.rowcount == 1
    if claimed:
        logger.info(f"Claimed job {job_id}")
    else:
        logger.info(f"Job {job_id} not claimed (already taken or candidate busy)")
    return claimed


def complete(db: Session, job_id: int, now: datetime) -> bool:
    stmt = (
        update(AutomationJob)
        .where(
            AutomationJob.id == job_id,
            AutomationJob.status == AutomationJobStatus.PROCESSING
        )
        .values(status=AutomationJobStatus.COMPLETED, executed_at=as_utc(now), last_error=None)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()

    if result.rowcount == 1:
        logger.info(f"Job {job_id} completed")
        return True
    logger.warning(f"Job {job_id} could not be completed: not in PROCESSING")
    return False


def fail(db: Session, job_id: int, error: str, now: datetime) -> bool:
    """
    Mark a processing job as FAILED, incrementing its retry counter.

    Args:
        db: Database session
        job_id: Job to fail
        error: Error message to persist
        now: Failure time

    Returns:
        True if the job was in PROCESSING and is now FAILED
    """
    stmt = (
        update(AutomationJob)
        .where(
            AutomationJob.id == job_id,
            AutomationJob.status == AutomationJobStatus.PROCESSING
        )
        .values(
            status=AutomationJobStatus.FAILED,
            retry_count=AutomationJob.retry_count + 1,
            last_error=(error or "Unknown error")[:MAX_ERROR_LENGTH],
            executed_at=as_utc(now)
        )
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()

    if result.rowcount == 1:
        logger.warning(f"Job {job_id} failed: {error}")
        return True
    logger.warning(f"Job {job_id} could not be failed: not in PROCESSING")
    return False


def cancel_job(db: Session, job_id: int) -> bool:
    """Cancel a job that has not started yet. Returns False if it is no longer pending."""
    stmt = (
        update(AutomationJob)
        .where(
            AutomationJob.id == job_id,
            AutomationJob.status == AutomationJobStatus.PENDING
        )
        .values(status=AutomationJobStatus.CANCELLED)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()

    if result.rowcount == 1:
        logger.info(f"Job {job_id} cancelled")
        return True
    return False


def recover_stuck(db: Session, now: datetime, timeout_minutes: int) -> int:
    """
    Fail PROCESSING jobs claimed more than `timeout_minutes` ago.

    A worker that dies between claim and complete leaves its job in
    PROCESSING, which also blocks every later job for that candidate. Such
    jobs are moved to FAILED with the retry counter bumped, so
    `requeue_failed` retries or dead-letters them like any other failure.

    Returns:
        Number of jobs recovered
    """
    cutoff = as_utc(now) - timedelta(minutes=timeout_minutes)
    recovered = db.execute(
        update(AutomationJob)
        .where(
            AutomationJob.status == AutomationJobStatus.PROCESSING,
            or_(AutomationJob.claimed_at.is_(None), AutomationJob.claimed_at < cutoff)
        )
        .values(
            status=AutomationJobStatus.FAILED,
            last_error=PROCESSING_TIMEOUT_ERROR,
            retry_count=AutomationJob.retry_count + 1
        )
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()

    if recovered:
        logger.warning(f"Recovered {recovered} job(s) stuck in PROCESSING since before {cutoff.isoformat()}")
    return recovered


def requeue_failed(db: Session, max_retries: int) -> Tuple[int, int]:
    """
    Apply the retry policy to FAILED jobs.

    Jobs below `max_retries` attempts go back to PENDING; jobs at or above
    the limit move to DEAD_LETTER. A limit of 0 disables automatic requeue
    and leaves failed jobs for manual handling.

    Returns:
        (requeued, dead_lettered) counts
    """
    if max_retries <= 0:
        return 0, 0

    requeued = db.execute(
        update(AutomationJob)
        .where(
            AutomationJob.status == AutomationJobStatus.FAILED,
            AutomationJob.retry_count < max_retries
        )
        .values(status=AutomationJobStatus.PENDING, claimed_at=None)
        .execution_options(synchronize_session=False)
    ).rowcount

    dead_lettered = db.execute(
        update(AutomationJob)
        .where(
            AutomationJob.status == AutomationJobStatus.FAILED,
            AutomationJob.retry_count >= max_retries
        )
        .values(status=AutomationJobStatus.DEAD_LETTER)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()

    if requeued or dead_lettered:
        logger.info(f"Retry policy: requeued={requeued}, dead_lettered={dead_lettered}")
    return requeued, dead_lettered
