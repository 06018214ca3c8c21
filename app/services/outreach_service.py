"""
Outreach delivery: scheduling intro messages after AI analysis and sending
due queue items.

Item lifecycle:

    SCHEDULED --claim--> PROCESSING --send ok--> SENT
        |                     |
        |                     +--send failed or timed out--> FAILED (no automatic retry)
        +--manager--> CANCELLED

Test-task items carry `test_task_message`; sending one also moves the
candidate to `test_sent`. Intro items move the candidate to `outreach_sent`.
"""

import logging
import random
from datetime import datetime, time, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import HiringAutomationError, MissingContactDetailError
from app.core.pacing import Pacer
from app.core.timeutils import as_utc, hiring_tz
from app.crud import automation_job as job_crud
from app.crud import conversation as conversation_crud
from app.crud import match as match_crud
from app.crud import outreach as outreach_crud
from app.models.automation_job import ActionType
from app.models.candidate import Candidate, CandidateSource, OutreachStatus, TestTaskStatus
from app.models.conversation import MessageDirection
from app.models.hiring_request import HiringRequest, HiringRequestStatus
from app.models.outreach import OutreachQueueItem
from app.models.pipeline import PipelineStage, check_transition, transition
from app.schemas.ai import CandidateAnalysis
from app.services import email_service
from app.services.automation_scheduler import BatchResult
from app.services.message_generator import MessageGenerator
from app.services.messaging import DeliveryResult, MessageDispatcher, resolve_delivery_method

logger = logging.getLogger(__name__)

WORKDAY_START_HOUR = 7
WORKDAY_CUTOFF_HOUR = 15
MORNING_SEND_HOUR = 10
NOT_SCHEDULED_ERROR = "Outreach item is no longer scheduled"


def human_send_time(submitted_at: datetime, rng: Optional[random.Random] = None) -> datetime:
    """
    When to send the intro so it does not look automated (hiring timezone).

    07:00-14:59 submissions go out 3-4 hours later, night submissions the
    same day between 10:00 and 11:00, evening submissions the next day
    between 10:00 and 11:00.
    """
    rng = rng or random.Random()
    submitted_at = as_utc(submitted_at)
    tz = hiring_tz()
    local = submitted_at.astimezone(tz)

    if WORKDAY_START_HOUR <= local.hour < WORKDAY_CUTOFF_HOUR:
        return submitted_at + timedelta(seconds=rng.uniform(3 * 3600, 4 * 3600))

    day = local.date() if local.hour < WORKDAY_START_HOUR else local.date() + timedelta(days=1)
    send_local = datetime.combine(day, time(MORNING_SEND_HOUR, rng.randint(0, 59)), tzinfo=tz)
    return as_utc(send_local)


def schedule_outreach_after_analysis(
    db: Session,
    candidate: Candidate,
    analysis: CandidateAnalysis,
    generator: MessageGenerator,
    request: Optional[HiringRequest] = None,
    match_score: Optional[float] = None,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None
) -> Optional[OutreachQueueItem]:
    """
    Queue a warm intro for a freshly analysed candidate.

    Only warm candidates scoring at least MIN_SCORE_FOR_OUTREACH are
    contacted, and only once: an existing scheduled, processing or sent
    item blocks a second one.

    Args:
        db: Database session
        candidate: Analysed candidate
        analysis: AI evaluation result
        generator: Message generator for the intro text
        request: Best-matching hiring request, if any
        match_score: Its match score
        now: Fallback submission time when the candidate has no created_at
        rng: Random source for the send time

    Returns:
        Created OutreachQueueItem, or None when skipped
    """
    if analysis.score < settings.MIN_SCORE_FOR_OUTREACH:
        logger.info(f"Outreach: skipping candidate {candidate.id}, score {analysis.score} < {settings.MIN_SCORE_FOR_OUTREACH}")
        return None

    if candidate.source != CandidateSource.WARM:
        logger.info(f"Outreach: skipping cold candidate {candidate.id}")
        return None

    if outreach_crud.has_active_item(db, candidate.id):
        logger.info(f"Outreach: already exists for candidate {candidate.id}")
        return None

    try:
        method = resolve_delivery_method(candidate)
    except MissingContactDetailError as e:
        logger.warning(f"Outreach: cannot schedule for candidate {candidate.id}: {e.message}")
        return None

    intro = generator.warm_intro(candidate, analysis, request, match_score)
    submitted_at = candidate.created_at or now
    scheduled_for = human_send_time(submitted_at, rng)

    item = outreach_crud.create(
        db,
        candidate_id=candidate.id,
        request_id=request.id if request is not None else None,
        intro_message=intro,
        delivery_method=method,
        scheduled_for=scheduled_for
    )

    candidate.outreach_status = OutreachStatus.SCHEDULED
    db.commit()
    return item


def _template_target(db: Session, candidate: Candidate) -> Optional[HiringRequest]:
    """Best-matching request whose approved template can go out automatically."""
    if not candidate.telegram_chat_id:
        return None
    match = match_crud.get_best_match(db, candidate.id)
    if match is None:
        return None
    request = db.query(HiringRequest).filter(HiringRequest.id == match.request_id).first()
    if request is None or request.status != HiringRequestStatus.ACTIVE:
        return None
    if not request.outreach_template or not request.outreach_template_approved:
        return None
    return request


def handle_analysis_result(
    db: Session,
    candidate: Candidate,
    analysis: CandidateAnalysis,
    generator: MessageGenerator,
    now: datetime,
    rng: Optional[random.Random] = None
) -> Tuple[Optional[int], Optional[int]]:
    """
    Record a finished AI analysis and start outreach.

    The analysis is stored on the candidate, who moves to ANALYZED. A strong
    candidate reachable on Telegram whose best request has an approved
    template gets the template through the automation queue; otherwise a
    warm intro is scheduled. Never both.

    Returns:
        (outreach item id, automation job id); at most one is set

    Raises:
        InvalidStageTransitionError: Candidate already left the pipeline
    """
    candidate.ai_score = analysis.score
    candidate.ai_category = analysis.category
    candidate.ai_summary = analysis.summary
    candidate.ai_strengths = analysis.strengths
    candidate.ai_concerns = analysis.concerns
    transition(candidate, PipelineStage.ANALYZED)
    db.commit()

    if analysis.score >= settings.MIN_SCORE_FOR_OUTREACH:
        request = _template_target(db, candidate)
        if request is not None:
            job_id = job_crud.enqueue(db, ActionType.SEND_OUTREACH, candidate.id, request.id)
            logger.info(f"Analysis: template outreach queued for candidate {candidate.id} as job {job_id}")
            return None, job_id

    request, match_score = None, None
    match = match_crud.get_best_match(db, candidate.id, min_score=settings.MIN_MATCH_SCORE_FOR_INTRO)
    if match is not None:
        request = db.query(HiringRequest).filter(HiringRequest.id == match.request_id).first()
        match_score = match.match_score

    item = schedule_outreach_after_analysis(
        db, candidate, analysis, generator,
        request=request, match_score=match_score, now=now, rng=rng
    )
    return (item.id if item is not None else None), None


class OutreachProcessor:
    """Sends due outreach queue items over the candidate's channel."""

    def __init__(self, dispatcher: MessageDispatcher, pacer: Pacer):
        self.dispatcher = dispatcher
        self.pacer = pacer

    def _fail(self, db: Session, item_id: int, error: str) -> DeliveryResult:
        outreach_crud.mark_failed(db, item_id, error)
        logger.warning(f"Outreach item {item_id} failed: {error}")
        return DeliveryResult(success=False, error=error)

    def process_item(self, db: Session, item: OutreachQueueItem, now: datetime) -> DeliveryResult:
        """
        Claim and send one item.

        Args:
            db: Database session
            item: Item in SCHEDULED status
            now: Send time recorded on success

        Returns:
            DeliveryResult; an item another caller already claimed comes
            back with `skipped` set and is left untouched
        """
        item_id = item.id
        if not outreach_crud.claim_for_sending(db, item_id, now):
            logger.info(f"Outreach item {item_id} is no longer scheduled, skipping")
            return DeliveryResult(success=False, error=NOT_SCHEDULED_ERROR, skipped=True)

        db.refresh(item)
        candidate = db.query(Candidate).filter(Candidate.id == item.candidate_id).first()
        if candidate is None:
            return self._fail(db, item_id, "Candidate not found")

        is_test_task = item.is_test_task
        target_stage = PipelineStage.TEST_SENT if is_test_task else PipelineStage.OUTREACH_SENT

        try:
            check_transition(candidate, target_stage)
            text = item.message_text
            if is_test_task:
                text = f"{text}\n\nЗдати тестове завдання: {settings.APP_URL}/submit-test?id={candidate.id}"
                request = None
                if item.request_id:
                    request = db.query(HiringRequest).filter(HiringRequest.id == item.request_id).first()
                subject = email_service.test_task_subject(candidate.first_name, request.title if request else None)
            else:
                subject = email_service.intro_subject(candidate.first_name)

            result = self.dispatcher.send(candidate, item.delivery_method, text, subject=subject)
        except HiringAutomationError as e:
            return self._fail(db, item_id, e.message)
        except Exception as e:
            logger.error(f"Unexpected error sending outreach item {item_id}: {e}", exc_info=True)
            return self._fail(db, item_id, str(e) or e.__class__.__name__)

        if not result.success:
            return self._fail(db, item_id, result.error or "Failed to send message")

        outreach_crud.mark_sent(db, item_id, now, result.message_id)

        transition(candidate, target_stage)
        if is_test_task:
            candidate.test_task_status = TestTaskStatus.SENT
            candidate.test_task_sent_at = as_utc(now)
            message_type = "test_task"
        else:
            candidate.outreach_status = OutreachStatus.SENT
            candidate.outreach_sent_at = as_utc(now)
            message_type = "outreach"

        conversation_crud.append(
            db, candidate.id, MessageDirection.OUTBOUND, message_type, text,
            meta={
                "outreach_id": item_id,
                "delivery_method": item.delivery_method.value,
                "message_id": result.message_id,
                "edited_by": item.edited_by,
            }
        )
        logger.info(f"Outreach item {item_id} sent to candidate {candidate.id} via {item.delivery_method.value}")
        return result

    def process_batch(self, db: Session, items: List[OutreachQueueItem], now: datetime) -> BatchResult:
        """Send items one by one, pausing between sends; failures do not stop the batch."""
        result = BatchResult()
        for index, item in enumerate(items):
            item_id = item.id
            try:
                outcome = self.process_item(db, item, now)
            except Exception as e:
                db.rollback()
                outcome = DeliveryResult(success=False, error=str(e))
                logger.error(f"Outreach item {item_id} crashed: {e}", exc_info=True)

            if outcome.skipped:
                result.skipped += 1
            else:
                result.processed += 1
                if outcome.success:
                    result.successful += 1
                else:
                    result.failed += 1
                    result.errors.append(f"Item {item_id}: {outcome.error}")

            if index < len(items) - 1:
                self.pacer.pause()
        return result

    def tick(self, db: Session, now: datetime, limit: Optional[int] = None) -> BatchResult:
        """Fail items stuck in processing, then fetch due items and process them as one batch."""
        limit = limit or settings.OUTREACH_BATCH_SIZE
        try:
            recovered = outreach_crud.recover_stuck(db, now, settings.PROCESSING_TIMEOUT_MINUTES)
            items = outreach_crud.get_due_items(db, now, limit)
        except Exception as e:
            db.rollback()
            logger.error(f"Outreach tick aborted: {e}", exc_info=True)
            return BatchResult(errors=[f"Tick aborted: {e}"])

        logger.info(f"Outreach tick: {len(items)} due item(s)")
        result = self.process_batch(db, items, now)
        result.recovered = recovered
        logger.info(
            f"Outreach tick finished: processed={result.processed} "
            f"successful={result.successful} failed={result.failed} skipped={result.skipped}"
        )
        return result
