"""
CRUD operations for OutreachQueueItem.

Status moves are conditional updates: an item is only claimed, edited or
cancelled while it is still SCHEDULED.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.core.timeutils import as_utc
from app.models.outreach import OutreachQueueItem, OutreachItemStatus, DeliveryMethod

logger = logging.getLogger(__name__)

ACTIVE_ITEM_STATUSES = (
    OutreachItemStatus.SCHEDULED,
    OutreachItemStatus.PROCESSING,
    OutreachItemStatus.SENT,
)

PROCESSING_TIMEOUT_ERROR = "Processing timed out"


def create(
    db: Session,
    candidate_id: int,
    request_id: Optional[int],
    intro_message: str,
    delivery_method: DeliveryMethod,
    scheduled_for: datetime,
    test_task_message: Optional[str] = None
) -> OutreachQueueItem:
    """
    Schedule a new outreach item.

    Args:
        db: Database session
        candidate_id: Recipient candidate
        request_id: Related hiring request, if any
        intro_message: Intro text (also a short label for test-task items)
        delivery_method: Resolved channel
        scheduled_for: Send time
        test_task_message: Test-task text; marks the item as a test-task delivery

    Returns:
        Created OutreachQueueItem
    """
    item = OutreachQueueItem(
        candidate_id=candidate_id,
        request_id=request_id,
        intro_message=intro_message,
        test_task_message=test_task_message,
        delivery_method=delivery_method,
        scheduled_for=as_utc(scheduled_for),
        status=OutreachItemStatus.SCHEDULED,
        retry_count=0
    )
    db.add(item)
    db.commit()
    db.refresh(item)

    logger.info(
        f"Outreach item {item.id} scheduled for candidate {candidate_id} "
        f"via {delivery_method.value} at {item.scheduled_for}"
    )
    return item


def get_by_id(db: Session, item_id: int) -> Optional[OutreachQueueItem]:
    return db.query(OutreachQueueItem).filter(OutreachQueueItem.id == item_id).first()


def get_due_items(db: Session, now: datetime, limit: int) -> List[OutreachQueueItem]:
    """Scheduled items whose send time has passed, earliest first."""
    return db.query(OutreachQueueItem).filter(
        OutreachQueueItem.status == OutreachItemStatus.SCHEDULED,
        OutreachQueueItem.scheduled_for <= as_utc(now)
    ).order_by(
        OutreachQueueItem.scheduled_for.asc(),
        OutreachQueueItem.id.asc()
    ).limit(limit).all()


def get_scheduled_for_candidate(db: Session, candidate_id: int) -> List[OutreachQueueItem]:
    return db.query(OutreachQueueItem).filter(
        OutreachQueueItem.candidate_id == candidate_id,
        OutreachQueueItem.status == OutreachItemStatus.SCHEDULED
    ).order_by(OutreachQueueItem.scheduled_for.asc()).all()


def has_active_item(db: Session, candidate_id: int) -> bool:
    """Whether the candidate already has outreach scheduled, in flight or sent."""
    return db.query(OutreachQueueItem.id).filter(
        OutreachQueueItem.candidate_id == candidate_id,
        OutreachQueueItem.status.in_(ACTIVE_ITEM_STATUSES)
    ).first() is not None


def claim_for_sending(db: Session, item_id: int, now: datetime) -> bool:
    """Atomically move an item from SCHEDULED to PROCESSING, stamping the claim time."""
    result = db.execute(
        update(OutreachQueueItem)
        .where(
            OutreachQueueItem.id == item_id,
            OutreachQueueItem.status == OutreachItemStatus.SCHEDULED
        )
        .values(status=OutreachItemStatus.PROCESSING, claimed_at=as_utc(now))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def mark_sent(db: Session, item_id: int, now: datetime, message_id: Optional[str] = None) -> bool:
    result = db.execute(
        update(OutreachQueueItem)
        .where(
            OutreachQueueItem.id == item_id,
            OutreachQueueItem.status == OutreachItemStatus.PROCESSING
        )
        .values(
            status=OutreachItemStatus.SENT,
            sent_at=as_utc(now),
            external_message_id=message_id,
            error_message=None
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def mark_failed(db: Session, item_id: int, error: str) -> bool:
    result = db.execute(
        update(OutreachQueueItem)
        .where(
            OutreachQueueItem.id == item_id,
            OutreachQueueItem.status == OutreachItemStatus.PROCESSING
        )
        .values(
            status=OutreachItemStatus.FAILED,
            error_message=(error or "Unknown error")[:2000],
            retry_count=OutreachQueueItem.retry_count + 1
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def recover_stuck(db: Session, now: datetime, timeout_minutes: int) -> int:
    """
    Fail items left in PROCESSING for longer than `timeout_minutes`.

    Whether the message went out is unknown, so the item is not resent; it
    becomes FAILED with an error the manager can see.

    Returns:
        Number of items recovered
    """
    cutoff = as_utc(now) - timedelta(minutes=timeout_minutes)
    result = db.execute(
        update(OutreachQueueItem)
        .where(
            OutreachQueueItem.status == OutreachItemStatus.PROCESSING,
            or_(OutreachQueueItem.claimed_at.is_(None), OutreachQueueItem.claimed_at < cutoff)
        )
        .values(
            status=OutreachItemStatus.FAILED,
            error_message=PROCESSING_TIMEOUT_ERROR,
            retry_count=OutreachQueueItem.retry_count + 1
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()

    if result.rowcount:
        logger.warning(f"Recovered {result.rowcount} outreach item(s) stuck in PROCESSING")
    return result.rowcount


def cancel(db: Session, item_ids: List[int]) -> int:
    """
    Cancel the given items where they are still SCHEDULED.

    Returns:
        Number of items cancelled
    """
    if not item_ids:
        return 0
    result = db.execute(
        update(OutreachQueueItem)
        .where(
            OutreachQueueItem.id.in_(item_ids),
            OutreachQueueItem.status == OutreachItemStatus.SCHEDULED
        )
        .values(status=OutreachItemStatus.CANCELLED)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def update_content(
    db: Session,
    item_id: int,
    edited_by: str,
    now: datetime,
    message: Optional[str] = None,
    scheduled_for: Optional[datetime] = None
) -> bool:
    """
    Edit a scheduled item's text and/or send time, stamping the audit fields.

    The message replaces whichever text is delivered: the test-task message
    for test-task items, the intro otherwise.

    Returns:
        True if the item was still SCHEDULED and got updated
    """
    item = get_by_id(db, item_id)
    if item is None:
        return False

    values = {"edited_by": edited_by, "edited_at": as_utc(now)}
    if message is not None:
        if item.is_test_task:
            values["test_task_message"] = message
        else:
            values["intro_message"] = message
    if scheduled_for is not None:
        values["scheduled_for"] = as_utc(scheduled_for)

    result = db.execute(
        update(OutreachQueueItem)
        .where(
            OutreachQueueItem.id == item_id,
            OutreachQueueItem.status == OutreachItemStatus.SCHEDULED
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1
