"""
Test-task lifecycle: scheduling, deadline extensions, submission and the
manager's approve/reject decision.

Deadline extension state machine:

    extensions_count >= MAX  -> deny (max_extensions_reached), parser not called
    parse not reasonable     -> deny (exceeds_limit)
    otherwise                -> grant: move current deadline, extensions_count += 1

Every outcome is written to the conversation log. Policy denials are
returned as values, not raised.
"""

import logging
import random
from datetime import datetime, time, timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import NotFoundError, PreconditionFailedError
from app.core.timeutils import as_utc, hiring_tz
from app.crud import conversation as conversation_crud
from app.crud import match as match_crud
from app.crud import outreach as outreach_crud
from app.models.candidate import Candidate, TestTaskStatus
from app.models.conversation import MessageDirection
from app.models.hiring_request import HiringRequest
from app.models.match import CandidateRequestMatch, MatchStatus
from app.models.pipeline import PipelineStage, transition
from app.schemas.test_task import (
    DecideTestTaskResponse,
    ExtendDeadlineResponse,
    ScheduleTestTaskResponse,
    SubmitTestTaskResponse,
    TaskDecision,
)
from app.services import email_service
from app.services.deadline_parser import DeadlineParser
from app.services.message_generator import MessageGenerator
from app.services.messaging import MessageDispatcher, resolve_delivery_method

logger = logging.getLogger(__name__)

DEADLINE_HOUR = 18
MIN_HUMAN_DELAY_MINUTES = 15
MAX_HUMAN_DELAY_MINUTES = 24

MAX_EXTENSIONS_MESSAGE = (
    "На жаль, дедлайн вже був продовжений двічі. Якщо вам потрібен особливий виняток, "
    "напишіть нам окремо, і ми обговоримо індивідуально."
)
EXCEEDS_LIMIT_MESSAGE = (
    "На жаль, не можу продовжити дедлайн більше ніж на {days} днів. "
    "Якщо вам потрібно більше часу, зв'яжіться з нами напряму."
)
GRANT_MESSAGE = "Звісно! Продовжую дедлайн до {date}. Успіхів з виконанням!"
SUBMISSION_THANKS = "Дякуємо за виконання тестового завдання! Ми перевіримо його найближчим часом."

UK_WEEKDAYS = ("понеділок", "вівторок", "середа", "четвер", "п'ятниця", "субота", "неділя")
UK_MONTHS_GENITIVE = (
    "січня", "лютого", "березня", "квітня", "травня", "червня",
    "липня", "серпня", "вересня", "жовтня", "листопада", "грудня",
)

SUBMISSION_PREVIEW_LENGTH = 500


def compute_test_task_deadline(start: datetime, days: int) -> datetime:
    """Deadline `days` calendar days after `start`, at 18:00 in the hiring timezone (returned in UTC)."""
    tz = hiring_tz()
    local_day = as_utc(start).astimezone(tz).date() + timedelta(days=days)
    return as_utc(datetime.combine(local_day, time(DEADLINE_HOUR, 0), tzinfo=tz))


def format_deadline_long(deadline: datetime) -> str:
    """e.g. "четвер, 12 лютого 2026 р. о 20:00" in the hiring timezone."""
    local = as_utc(deadline).astimezone(hiring_tz())
    return (
        f"{UK_WEEKDAYS[local.weekday()]}, {local.day} {UK_MONTHS_GENITIVE[local.month - 1]} "
        f"{local.year} р. о {local:%H:%M}"
    )


def find_best_request(db: Session, candidate_id: int) -> Tuple[CandidateRequestMatch, HiringRequest]:
    """
    The candidate's highest-scoring match and its request.

    Raises:
        PreconditionFailedError: The candidate is not matched to any request
    """
    match = match_crud.get_best_match(db, candidate_id)
    if match is None:
        raise PreconditionFailedError("No request match found")
    request = db.query(HiringRequest).filter(HiringRequest.id == match.request_id).first()
    if request is None:
        raise NotFoundError(f"Request {match.request_id} not found")
    return match, request


def extend_deadline(
    db: Session,
    candidate: Candidate,
    request_text: str,
    parser: DeadlineParser,
    now: datetime
) -> ExtendDeadlineResponse:
    """
    Handle a candidate's request for more time on the test task.

    Args:
        db: Database session
        candidate: Candidate asking for the extension
        request_text: The candidate's free-text request
        parser: Deadline negotiation engine
        now: Reference time

    Returns:
        ExtendDeadlineResponse with the message to send back

    Raises:
        PreconditionFailedError: The candidate has no test-task deadline
    """
    if not candidate.test_task_current_deadline:
        raise PreconditionFailedError("No test task deadline set")

    count = candidate.test_task_extensions_count or 0
    current_deadline = as_utc(candidate.test_task_current_deadline)

    if count >= settings.MAX_TEST_TASK_EXTENSIONS:
        conversation_crud.append(
            db, candidate.id, MessageDirection.OUTBOUND, "deadline_extension_denied", MAX_EXTENSIONS_MESSAGE,
            meta={"reason": "max_extensions_reached", "extensions_count": count}
        )
        logger.info(f"Deadline extension denied for candidate {candidate.id}: max extensions reached")
        return ExtendDeadlineResponse(
            granted=False,
            reason="max_extensions_reached",
            message=MAX_EXTENSIONS_MESSAGE,
            extensions_count=count
        )

    extension = parser.parse(request_text, current_deadline, now)

    if not extension.is_reasonable or extension.requested_date is None:
        message = EXCEEDS_LIMIT_MESSAGE.format(days=parser.max_extension_days)
        conversation_crud.append(
            db, candidate.id, MessageDirection.OUTBOUND, "deadline_extension_denied", message,
            meta={
                "reason": "exceeds_max_days",
                "requested_days": extension.additional_days,
                "parser_reason": extension.reason,
            }
        )
        logger.info(f"Deadline extension denied for candidate {candidate.id}: {extension.reason}")
        return ExtendDeadlineResponse(
            granted=False,
            reason="exceeds_limit",
            message=message,
            extension_days=extension.additional_days,
            extensions_count=count
        )

    new_deadline = as_utc(extension.requested_date)
    candidate.test_task_current_deadline = new_deadline
    candidate.test_task_extensions_count = count + 1

    message = GRANT_MESSAGE.format(date=format_deadline_long(new_deadline))
    conversation_crud.append(
        db, candidate.id, MessageDirection.OUTBOUND, "deadline_extension_granted", message,
        meta={
            "old_deadline": current_deadline.isoformat(),
            "new_deadline": new_deadline.isoformat(),
            "extension_days": extension.additional_days,
        }
    )
    logger.info(
        f"Deadline extended for candidate {candidate.id}: {current_deadline.isoformat()} -> "
        f"{new_deadline.isoformat()} ({candidate.test_task_extensions_count}/{settings.MAX_TEST_TASK_EXTENSIONS})"
    )
    return ExtendDeadlineResponse(
        granted=True,
        message=message,
        new_deadline=new_deadline,
        extension_days=extension.additional_days,
        extensions_count=candidate.test_task_extensions_count
    )


def schedule_test_task(
    db: Session,
    candidate: Candidate,
    generator: MessageGenerator,
    now: datetime,
    message: Optional[str] = None,
    send_immediately: bool = False,
    rng: Optional[random.Random] = None
) -> ScheduleTestTaskResponse:
    """
    Queue the test task as an outreach item.

    Unless `send_immediately`, the send time is 15-24 minutes out so the
    reply does not look automated. The deadline counts from the send time.
    """
    if candidate.test_task_status not in (None, TestTaskStatus.NOT_SENT):
        raise PreconditionFailedError(f"Test task already {candidate.test_task_status.value}")

    _, request = find_best_request(db, candidate.id)
    if not request.test_task_url:
        raise PreconditionFailedError("No test task configured for this request")

    method = resolve_delivery_method(candidate)

    rng = rng or random.Random()
    send_at = now if send_immediately else now + timedelta(
        minutes=rng.randint(MIN_HUMAN_DELAY_MINUTES, MAX_HUMAN_DELAY_MINUTES)
    )
    deadline_days = request.test_task_deadline_days or settings.DEFAULT_TEST_TASK_DEADLINE_DAYS
    deadline = compute_test_task_deadline(send_at, deadline_days)

    text = message or generator.test_task_message(candidate, request, request.test_task_url, deadline)

    candidate.test_task_status = TestTaskStatus.SCHEDULED
    candidate.test_task_original_deadline = deadline
    candidate.test_task_current_deadline = deadline
    db.commit()

    item = outreach_crud.create(
        db,
        candidate_id=candidate.id,
        request_id=request.id,
        intro_message=f"Тестове завдання: {request.title}",
        test_task_message=text,
        delivery_method=method,
        scheduled_for=send_at
    )
    logger.info(f"Test task for candidate {candidate.id} scheduled as outreach item {item.id} at {send_at.isoformat()}")

    return ScheduleTestTaskResponse(outreach_id=item.id, send_at=send_at, deadline=deadline)


def submit_test_task(
    db: Session,
    candidate: Candidate,
    submission_text: str,
    now: datetime,
    candidate_feedback: Optional[str] = None
) -> SubmitTestTaskResponse:
    """
    Record a test-task submission and how late it was.

    Lateness is whole hours past the current deadline; on-time submissions
    store no lateness. The submission is left in EVALUATING for the AI
    grader; the caller hands it off once this returns.
    """
    if not submission_text or not submission_text.strip():
        raise PreconditionFailedError("Submission text is required")

    now = as_utc(now)
    deadline = as_utc(candidate.test_task_current_deadline)
    late_by_hours = 0
    if deadline and now > deadline:
        late_by_hours = int((now - deadline).total_seconds() // 3600)

    transition(candidate, PipelineStage.TEST_DONE)
    candidate.test_task_status = TestTaskStatus.EVALUATING
    candidate.test_task_submitted_at = now
    candidate.test_task_submission_text = submission_text
    candidate.test_task_candidate_feedback = candidate_feedback
    candidate.test_task_late_by_hours = late_by_hours or None

    preview = submission_text[:SUBMISSION_PREVIEW_LENGTH]
    if len(submission_text) > SUBMISSION_PREVIEW_LENGTH:
        preview += "..."
    conversation_crud.append(
        db, candidate.id, MessageDirection.INBOUND, "test_task_submission",
        f"[TEST TASK SUBMISSION]\n\n{preview}",
        meta={
            "full_submission_length": len(submission_text),
            "submitted_on_time": late_by_hours == 0,
            "late_by_hours": late_by_hours,
        }
    )
    logger.info(f"Test task submitted by candidate {candidate.id}, late_by_hours={late_by_hours}")

    return SubmitTestTaskResponse(
        status="submitted_late" if late_by_hours else "submitted_on_time",
        late_by_hours=late_by_hours or None,
        message=SUBMISSION_THANKS
    )


def decide_test_task(
    db: Session,
    candidate: Candidate,
    decision: TaskDecision,
    message: str,
    dispatcher: MessageDispatcher,
    decided_by: Optional[str] = None
) -> DecideTestTaskResponse:
    """
    Deliver the manager's approve/reject message and record the verdict.

    Delivery failure does not block the verdict; it is recorded in the
    conversation metadata and the response.
    """
    method = resolve_delivery_method(candidate)
    result = dispatcher.send(
        candidate, method, message,
        subject=email_service.decision_subject(candidate.first_name)
    )

    approved = decision == TaskDecision.APPROVED
    candidate.test_task_status = TestTaskStatus.APPROVED if approved else TestTaskStatus.REJECTED
    new_match_status = MatchStatus.INTERVIEW if approved else MatchStatus.REJECTED
    for match in candidate.matches:
        match.status = new_match_status

    conversation_crud.append(
        db, candidate.id, MessageDirection.OUTBOUND, "test_task_decision", message,
        meta={
            "decision": decision.value,
            "delivery_method": method.value,
            "delivered": result.success,
            "delivery_error": result.error,
            "decided_by": decided_by,
        }
    )
    logger.info(f"Test task {decision.value} for candidate {candidate.id}, delivered={result.success}")

    return DecideTestTaskResponse(decision=decision, delivered=result.success, delivery_method=method.value)


def generate_decision_message(
    db: Session,
    candidate: Candidate,
    decision: TaskDecision,
    generator: MessageGenerator
) -> str:
    """Draft (not send) the approval or rejection text for a test task."""
    request = None
    match = match_crud.get_best_match(db, candidate.id)
    if match is not None:
        request = db.query(HiringRequest).filter(HiringRequest.id == match.request_id).first()
    return generator.decision_message(candidate, request, approved=decision == TaskDecision.APPROVED)
