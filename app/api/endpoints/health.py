"""
Health check and monitoring endpoints.

Provides status for the database and the automation/outreach queues.
"""

import logging
from typing import Dict, Any
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from sqlalchemy import text, func

from app.core.database import get_db
from app.core.timeutils import utcnow
from app.models.automation_job import AutomationJob, AutomationJobStatus
from app.models.outreach import OutreachQueueItem, OutreachItemStatus

router = APIRouter(tags=["Health"])
logger = logging.getLogger(__name__)


@router.get("/health", status_code=status.HTTP_200_OK)
def health_check() -> Dict[str, str]:
    """
    Basic health check endpoint.

    Returns 200 OK if the service is running.
    """
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat()
    }


@router.get("/health/detailed", status_code=status.HTTP_200_OK)
def detailed_health_check(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """
    Detailed health check with dependency status.

    Checks database connectivity and reports how many automation jobs and
    outreach items are waiting, stuck in processing, failed or dead-lettered.
    """
    health_status = {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "checks": {}
    }

    try:
        db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful"
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = {
            "status": "unhealthy",
            "message": f"Database error: {str(e)}"
        }
        return health_status

    job_counts = dict(
        db.query(AutomationJob.status, func.count(AutomationJob.id)).group_by(AutomationJob.status).all()
    )
    item_counts = dict(
        db.query(OutreachQueueItem.status, func.count(OutreachQueueItem.id)).group_by(OutreachQueueItem.status).all()
    )

    health_status["checks"]["automation_queue"] = {
        "pending": job_counts.get(AutomationJobStatus.PENDING, 0),
        "processing": job_counts.get(AutomationJobStatus.PROCESSING, 0),
        "failed": job_counts.get(AutomationJobStatus.FAILED, 0),
        "dead_letter": job_counts.get(AutomationJobStatus.DEAD_LETTER, 0),
    }
    health_status["checks"]["outreach_queue"] = {
        "scheduled": item_counts.get(OutreachItemStatus.SCHEDULED, 0),
        "processing": item_counts.get(OutreachItemStatus.PROCESSING, 0),
        "failed": item_counts.get(OutreachItemStatus.FAILED, 0),
    }

    return health_status
