"""
Manager operations on queued outreach: scheduling a drafted intro, cancel,
edit, send now and drafting an intro on demand. Only SCHEDULED items can be
changed.
"""

import logging
import random
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import MissingContactDetailError, NotFoundError, PreconditionFailedError
from app.core.timeutils import as_utc
from app.crud import candidate as candidate_crud
from app.crud import match as match_crud
from app.crud import outreach as outreach_crud
from app.models.candidate import Candidate, OutreachStatus, TestTaskStatus
from app.models.hiring_request import HiringRequest
from app.models.outreach import DeliveryMethod, OutreachItemStatus, OutreachQueueItem
from app.schemas.outreach import GenerateMessageResponse
from app.services.message_generator import MessageGenerator
from app.services.messaging import DeliveryResult, resolve_delivery_method, telegram_identity
from app.services.outreach_service import OutreachProcessor, human_send_time

logger = logging.getLogger(__name__)

NOT_SCHEDULED_MESSAGE = "Outreach not found or already processed"


def _get_scheduled_item(db: Session, outreach_id: int) -> OutreachQueueItem:
    item = outreach_crud.get_by_id(db, outreach_id)
    if item is None:
        raise NotFoundError(f"Outreach item {outreach_id} not found")
    if item.status != OutreachItemStatus.SCHEDULED:
        raise PreconditionFailedError(
            f"{NOT_SCHEDULED_MESSAGE} (status: {item.status.value})"
        )
    return item


def _after_cancel(db: Session, candidate_id: int, test_task_cancelled: bool) -> None:
    candidate = candidate_crud.get_by_id(db, candidate_id)
    if candidate is None:
        return
    candidate.outreach_status = OutreachStatus.CANCELLED
    # A cancelled test task was never delivered, so it can be scheduled again
    if test_task_cancelled and candidate.test_task_status == TestTaskStatus.SCHEDULED:
        candidate.test_task_status = TestTaskStatus.NOT_SENT
        candidate.test_task_original_deadline = None
        candidate.test_task_current_deadline = None
    db.commit()


def cancel_outreach(
    db: Session,
    outreach_id: Optional[int] = None,
    candidate_id: Optional[int] = None
) -> int:
    """
    Cancel one scheduled item, or every scheduled item of a candidate.

    Args:
        db: Database session
        outreach_id: Item to cancel
        candidate_id: Candidate whose scheduled items are cancelled

    Returns:
        Number of items cancelled (at least 1)

    Raises:
        NotFoundError: Nothing matched
        PreconditionFailedError: The item is not SCHEDULED any more
    """
    if outreach_id is not None:
        items = [_get_scheduled_item(db, outreach_id)]
    elif candidate_id is not None:
        items = outreach_crud.get_scheduled_for_candidate(db, candidate_id)
        if not items:
            raise NotFoundError(f"No scheduled outreach found for candidate {candidate_id}")
    else:
        raise PreconditionFailedError("outreach_id or candidate_id is required")

    target_candidate = items[0].candidate_id
    test_task_cancelled = any(item.is_test_task for item in items)
    cancelled = outreach_crud.cancel(db, [item.id for item in items])
    if cancelled == 0:
        raise PreconditionFailedError(NOT_SCHEDULED_MESSAGE)

    _after_cancel(db, target_candidate, test_task_cancelled)
    logger.info(f"Cancelled {cancelled} outreach item(s) for candidate {target_candidate}")
    return cancelled


def edit_outreach(
    db: Session,
    outreach_id: int,
    edited_by: str,
    now: datetime,
    message: Optional[str] = None,
    scheduled_for: Optional[datetime] = None
) -> OutreachQueueItem:
    """
    Change the text and/or send time of a scheduled item.

    Raises:
        NotFoundError: Item does not exist
        PreconditionFailedError: Item is not SCHEDULED any more
    """
    _get_scheduled_item(db, outreach_id)
    if not outreach_crud.update_content(db, outreach_id, edited_by, now, message=message, scheduled_for=scheduled_for):
        raise PreconditionFailedError(NOT_SCHEDULED_MESSAGE)

    item = outreach_crud.get_by_id(db, outreach_id)
    db.refresh(item)
    logger.info(f"Outreach item {outreach_id} edited by {edited_by}")
    return item


def send_now(db: Session, outreach_id: int, processor: OutreachProcessor, now: datetime) -> DeliveryResult:
    """
    Send a scheduled item immediately, ignoring its send time.

    Raises:
        NotFoundError: Item does not exist
        PreconditionFailedError: Item is not SCHEDULED any more
    """
    item = _get_scheduled_item(db, outreach_id)
    logger.info(f"Sending outreach item {outreach_id} now")
    result = processor.process_item(db, item, now)
    if result.skipped:
        raise PreconditionFailedError(NOT_SCHEDULED_MESSAGE)
    return result


def generate_intro_message(db: Session, candidate: Candidate, generator: MessageGenerator) -> GenerateMessageResponse:
    """
    Draft a warm intro for a candidate without queueing it.

    Raises:
        MissingContactDetailError: The candidate cannot be contacted
    """
    method = resolve_delivery_method(candidate)

    request = None
    match_score = None
    match = match_crud.get_best_match(db, candidate.id, min_score=settings.MIN_MATCH_SCORE_FOR_INTRO)
    if match is not None:
        request = db.query(HiringRequest).filter(HiringRequest.id == match.request_id).first()
        match_score = match.match_score if request is not None else None

    logger.info(f"Generating outreach message for candidate {candidate.id}")
    message = generator.warm_intro(candidate, request=request, match_score=match_score)

    return GenerateMessageResponse(
        message=message,
        delivery_method=method.value,
        request_id=request.id if request is not None else None,
        match_score=match_score
    )


def schedule_intro(
    db: Session,
    candidate_id: int,
    message: str,
    now: datetime,
    delivery_method: Optional[DeliveryMethod] = None,
    send_now: bool = False,
    rng: Optional[random.Random] = None
) -> OutreachQueueItem:
    """
    Queue a manager-approved intro for a candidate.

    The item is linked to the best match scoring at least
    MIN_MATCH_SCORE_FOR_INTRO. It is due at `now` when sending immediately,
    otherwise at a human-like time after `now`.

    Raises:
        NotFoundError: Candidate does not exist
        PreconditionFailedError: Outreach is already scheduled, in flight or sent
        MissingContactDetailError: The chosen channel cannot reach the candidate
    """
    candidate = candidate_crud.get_by_id(db, candidate_id)
    if candidate is None:
        raise NotFoundError(f"Candidate {candidate_id} not found")

    if outreach_crud.has_active_item(db, candidate_id):
        raise PreconditionFailedError("Outreach already scheduled or sent for this candidate")

    method = delivery_method or resolve_delivery_method(candidate)
    if method == DeliveryMethod.TELEGRAM and not telegram_identity(candidate):
        raise MissingContactDetailError(f"Candidate {candidate_id} has no Telegram contact")
    if method == DeliveryMethod.EMAIL and not candidate.email:
        raise MissingContactDetailError(f"Candidate {candidate_id} has no email address for delivery")

    match = match_crud.get_best_match(db, candidate_id, min_score=settings.MIN_MATCH_SCORE_FOR_INTRO)
    scheduled_for = as_utc(now) if send_now else human_send_time(now, rng)

    item = outreach_crud.create(
        db,
        candidate_id=candidate_id,
        request_id=match.request_id if match is not None else None,
        intro_message=message,
        delivery_method=method,
        scheduled_for=scheduled_for
    )
    candidate.outreach_status = OutreachStatus.SCHEDULED
    db.commit()

    logger.info(f"Intro for candidate {candidate_id} queued as item {item.id}, send_now={send_now}")
    return item
