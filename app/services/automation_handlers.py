"""
Automation job handlers, one per ActionType.

Each handler loads the job's candidate and request, validates that the
pipeline move is legal before any external side effect, sends the message
over the resolved channel, updates candidate state and appends an
`automated: true` entry to the conversation log. Handlers raise on failure;
the scheduler turns the exception into a failed job.
"""

import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import DeliveryFailedError, NotFoundError, PreconditionFailedError
from app.crud import conversation as conversation_crud
from app.crud import match as match_crud
from app.models.automation_job import ActionType, AutomationJob
from app.models.candidate import Candidate, OutreachStatus, QuestionnaireStatus, TestTaskStatus
from app.models.conversation import MessageDirection
from app.models.hiring_request import HiringRequest
from app.models.outreach import DeliveryMethod
from app.models.pipeline import PipelineStage, check_transition, transition
from app.models.questionnaire import (
    QuestionnaireQuestion,
    QuestionnaireResponse,
    QuestionnaireResponseStatus,
    SoftSkillCompetency,
)
from app.services import email_service
from app.services.message_generator import MessageGenerator
from app.services.messaging import MessageDispatcher, resolve_delivery_method
from app.services.telegram_service import outreach_keyboard
from app.services.test_task_service import compute_test_task_deadline

logger = logging.getLogger(__name__)

INVITE_MESSAGE = (
    "Вітаємо! Ми уважно розглянули вашу кандидатуру і раді запросити вас на інтерв'ю з нашою командою. "
    "Найближчим часом з вами зв'яжеться менеджер для узгодження часу. До зустрічі!"
)

REJECTION_MESSAGE = (
    "Дякуємо за час і зусилля, які ви вклали в наш процес відбору. "
    "На жаль, цього разу ми рухаємось з іншими кандидатами. Бажаємо успіхів у пошуку!"
)

MIN_QUESTIONS_PER_COMPETENCY = 3
MAX_QUESTIONS_PER_COMPETENCY = 4


@dataclass
class AutomationContext:
    """Collaborators and the reference time shared by all handlers in one tick."""
    dispatcher: MessageDispatcher
    generator: MessageGenerator
    now: datetime
    rng: random.Random = field(default_factory=random.Random)


Handler = Callable[[Session, AutomationJob, AutomationContext], None]


def _load(db: Session, job: AutomationJob) -> Tuple[Candidate, HiringRequest]:
    candidate = db.query(Candidate).filter(Candidate.id == job.candidate_id).first()
    request = db.query(HiringRequest).filter(HiringRequest.id == job.request_id).first()
    if not candidate or not request:
        raise NotFoundError("Candidate or request not found")
    return candidate, request


def _deliver(ctx: AutomationContext, candidate: Candidate, method: DeliveryMethod, text: str, **kwargs):
    result = ctx.dispatcher.send(candidate, method, text, **kwargs)
    if not result.success:
        raise DeliveryFailedError(result.error or f"Delivery via {method.value} failed")
    return result


def handle_send_outreach(db: Session, job: AutomationJob, ctx: AutomationContext) -> None:
    """Send the approved, AI-personalized outreach template with yes/no buttons."""
    candidate, request = _load(db, job)

    # Inline buttons need a chat the bot can write to
    if not candidate.telegram_chat_id:
        raise PreconditionFailedError("No Telegram chat id, manual outreach required")
    if not request.outreach_template or not request.outreach_template_approved:
        raise PreconditionFailedError("Outreach template not approved for this request")
    check_transition(candidate, PipelineStage.OUTREACH_SENT)

    text = ctx.generator.personalized_outreach(request.outreach_template, candidate, request)
    result = _deliver(
        ctx, candidate, DeliveryMethod.TELEGRAM, text,
        reply_markup=outreach_keyboard(candidate.id, request.id)
    )

    match = match_crud.get(db, candidate.id, request.id)
    if match and result.message_id and result.message_id.isdigit():
        match.outreach_telegram_message_id = int(result.message_id)

    transition(candidate, PipelineStage.OUTREACH_SENT)
    candidate.outreach_status = OutreachStatus.SENT
    candidate.outreach_sent_at = ctx.now

    conversation_crud.append(
        db, candidate.id, MessageDirection.OUTBOUND, "outreach", text,
        meta={"automated": True, "request_id": request.id, "telegram_message_id": result.message_id}
    )
    logger.info(f"Automation: outreach sent to candidate {candidate.id} for request {request.id}")


def select_questions(db: Session, request: HiringRequest, rng: random.Random) -> List[dict]:
    """
    Build the questionnaire for a request.

    Picks 3-4 random active questions from each configured competency, then
    adds explicitly configured questions, dropping duplicates.

    Returns:
        Question snapshots: question_id, competency_id, competency_name, text
    """
    competency_ids = request.questionnaire_competency_ids or []
    question_ids = request.questionnaire_question_ids or []
    names: Dict[int, str] = {}
    picked: List[QuestionnaireQuestion] = []

    if competency_ids:
        for competency in db.query(SoftSkillCompetency).filter(SoftSkillCompetency.id.in_(competency_ids)):
            names[competency.id] = competency.name

        active = db.query(QuestionnaireQuestion).filter(
            QuestionnaireQuestion.competency_id.in_(competency_ids),
            QuestionnaireQuestion.is_active.is_(True)
        ).order_by(QuestionnaireQuestion.id).all()

        for competency_id in competency_ids:
            pool = [q for q in active if q.competency_id == competency_id]
            count = min(len(pool), rng.randint(MIN_QUESTIONS_PER_COMPETENCY, MAX_QUESTIONS_PER_COMPETENCY))
            picked.extend(rng.sample(pool, count))

    if question_ids:
        explicit = db.query(QuestionnaireQuestion).filter(
            QuestionnaireQuestion.id.in_(question_ids),
            QuestionnaireQuestion.is_active.is_(True)
        ).order_by(QuestionnaireQuestion.id).all()
        missing_names = {q.competency_id for q in explicit} - set(names)
        if missing_names:
            for competency in db.query(SoftSkillCompetency).filter(SoftSkillCompetency.id.in_(missing_names)):
                names[competency.id] = competency.name
        picked.extend(explicit)

    seen = set()
    questions = []
    for question in picked:
        if question.id in seen:
            continue
        seen.add(question.id)
        questions.append({
            "question_id": question.id,
            "competency_id": question.competency_id,
            "competency_name": names.get(question.competency_id, ""),
            "text": question.text,
        })
    return questions


def handle_send_questionnaire(db: Session, job: AutomationJob, ctx: AutomationContext) -> None:
    candidate, request = _load(db, job)

    if not request.questionnaire_competency_ids and not request.questionnaire_question_ids:
        raise PreconditionFailedError("No questionnaire competencies/questions configured for this request")
    check_transition(candidate, PipelineStage.QUESTIONNAIRE_SENT)
    method = resolve_delivery_method(candidate)

    questions = select_questions(db, request, ctx.rng)
    if not questions:
        raise PreconditionFailedError("No active questions found for configured competencies")

    token = str(uuid.uuid4())
    url = f"{settings.APP_URL}/questionnaire/{token}"
    text = (
        f"Ось ваша анкета: {url}\n\n"
        f"Дедлайн: {settings.QUESTIONNAIRE_EXPIRY_DAYS} днів. Якщо є питання, пишіть сюди."
    )
    _deliver(ctx, candidate, method, text, subject=f"{candidate.first_name}, анкета від Vamos")

    db.add(QuestionnaireResponse(
        candidate_id=candidate.id,
        request_id=request.id,
        token=token,
        status=QuestionnaireResponseStatus.SENT,
        questions=questions,
        sent_at=ctx.now,
        expires_at=ctx.now + timedelta(days=settings.QUESTIONNAIRE_EXPIRY_DAYS)
    ))
    transition(candidate, PipelineStage.QUESTIONNAIRE_SENT)
    candidate.questionnaire_status = QuestionnaireStatus.SENT

    conversation_crud.append(
        db, candidate.id, MessageDirection.OUTBOUND, "questionnaire_sent",
        f"Надіслано анкету soft skills ({len(questions)} питань)",
        meta={"automated": True, "request_id": request.id, "token": token, "questions_count": len(questions)}
    )
    logger.info(f"Automation: questionnaire ({len(questions)} questions) sent to candidate {candidate.id}")


def handle_send_test_task(db: Session, job: AutomationJob, ctx: AutomationContext) -> None:
    candidate, request = _load(db, job)

    if not request.test_task_url:
        raise PreconditionFailedError("No test task URL configured for this request")

    if candidate.test_task_status and candidate.test_task_status != TestTaskStatus.NOT_SENT:
        logger.info(
            f"Automation: test task already {candidate.test_task_status.value} "
            f"for candidate {candidate.id}, skipping"
        )
        return

    check_transition(candidate, PipelineStage.TEST_SENT)
    method = resolve_delivery_method(candidate)

    deadline_days = request.test_task_deadline_days or settings.DEFAULT_TEST_TASK_DEADLINE_DAYS
    deadline = compute_test_task_deadline(ctx.now, deadline_days)
    text = ctx.generator.test_task_message(candidate, request, request.test_task_url, deadline)
    _deliver(
        ctx, candidate, method, text,
        subject=email_service.test_task_subject(candidate.first_name, request.title)
    )

    transition(candidate, PipelineStage.TEST_SENT)
    candidate.test_task_status = TestTaskStatus.SENT
    candidate.test_task_sent_at = ctx.now
    candidate.test_task_original_deadline = deadline
    candidate.test_task_current_deadline = deadline

    conversation_crud.append(
        db, candidate.id, MessageDirection.OUTBOUND, "test_task", text,
        meta={"automated": True, "deadline": deadline.isoformat(), "deadline_days": deadline_days}
    )
    logger.info(f"Automation: test task sent to candidate {candidate.id}, deadline {deadline.isoformat()}")


def _send_final_decision(
    db: Session,
    job: AutomationJob,
    ctx: AutomationContext,
    text: str,
    stage: PipelineStage,
    decision: str
) -> None:
    candidate, _ = _load(db, job)
    check_transition(candidate, stage)
    method = resolve_delivery_method(candidate)

    _deliver(ctx, candidate, method, text, subject=email_service.decision_subject(candidate.first_name))

    transition(candidate, stage)
    conversation_crud.append(
        db, candidate.id, MessageDirection.OUTBOUND, "final_decision", text,
        meta={"automated": True, "decision": decision, "request_id": job.request_id}
    )
    logger.info(f"Automation: {decision} sent to candidate {candidate.id}")


def handle_send_invite(db: Session, job: AutomationJob, ctx: AutomationContext) -> None:
    _send_final_decision(db, job, ctx, INVITE_MESSAGE, PipelineStage.INTERVIEW, "invite")


def handle_send_rejection(db: Session, job: AutomationJob, ctx: AutomationContext) -> None:
    _send_final_decision(db, job, ctx, REJECTION_MESSAGE, PipelineStage.REJECTED, "reject")


HANDLERS: Dict[ActionType, Handler] = {
    ActionType.SEND_OUTREACH: handle_send_outreach,
    ActionType.SEND_QUESTIONNAIRE: handle_send_questionnaire,
    ActionType.SEND_TEST_TASK: handle_send_test_task,
    ActionType.SEND_INVITE: handle_send_invite,
    ActionType.SEND_REJECTION: handle_send_rejection,
}
