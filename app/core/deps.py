"""
FastAPI dependencies: trigger authentication, manager identity and the
external collaborators (AI, messaging, pacing, clock, grading queue).

Collaborators are built per request from settings so tests can replace
them with `app.dependency_overrides`.
"""

import hmac
import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query, status

from app.core.config import settings
from app.core.pacing import FixedDelayPacer, Pacer
from app.core.timeutils import utcnow
from app.services.ai_client import AICompleter, build_ai_completer
from app.services.deadline_parser import DeadlineParser
from app.services.email_service import EmailSender
from app.services.evaluator import EvaluationQueue
from app.services.inbound import InboundMessageHandler
from app.services.message_generator import MessageGenerator
from app.services.messaging import MessageDispatcher
from app.services.outreach_service import OutreachProcessor
from app.services.response_classifier import ResponseClassifier
from app.services.telegram_service import TelegramSender
from app.tasks.evaluation_tasks import CeleryEvaluationQueue

logger = logging.getLogger(__name__)

DEFAULT_MANAGER_ID = "manager"


def verify_cron_secret(
    authorization: Optional[str] = Header(None),
    secret: Optional[str] = Query(None)
) -> None:
    """
    Authenticate a trigger call by `Authorization: Bearer <CRON_SECRET>` or
    `?secret=<CRON_SECRET>`. No secret configured means the triggers are open.

    Raises:
        HTTPException 401: Secret configured and not presented
    """
    if not settings.CRON_SECRET:
        return

    presented = None
    if authorization and authorization.startswith("Bearer "):
        presented = authorization[len("Bearer "):]
    elif secret:
        presented = secret

    if not presented or not hmac.compare_digest(presented, settings.CRON_SECRET):
        logger.warning("Rejected trigger call with missing or invalid secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "message": "Invalid or missing cron secret"}
        )


def get_manager_id(x_manager_id: Optional[str] = Header(None)) -> str:
    """Manager identity stamped on edits and decisions."""
    return x_manager_id or DEFAULT_MANAGER_ID


def get_now() -> datetime:
    return utcnow()


def get_completer() -> AICompleter:
    return build_ai_completer()


def get_telegram_sender() -> TelegramSender:
    return TelegramSender()


def get_dispatcher(telegram: TelegramSender = Depends(get_telegram_sender)) -> MessageDispatcher:
    return MessageDispatcher(telegram=telegram, email=EmailSender())


def get_pacer() -> Pacer:
    return FixedDelayPacer(settings.INTER_ITEM_DELAY_SECONDS)


def get_evaluation_queue() -> EvaluationQueue:
    return CeleryEvaluationQueue()


def get_message_generator(completer: AICompleter = Depends(get_completer)) -> MessageGenerator:
    return MessageGenerator(completer)


def get_deadline_parser(completer: AICompleter = Depends(get_completer)) -> DeadlineParser:
    return DeadlineParser(completer)


def get_outreach_processor(
    dispatcher: MessageDispatcher = Depends(get_dispatcher),
    pacer: Pacer = Depends(get_pacer)
) -> OutreachProcessor:
    return OutreachProcessor(dispatcher, pacer)


def get_inbound_handler(
    telegram: TelegramSender = Depends(get_telegram_sender),
    completer: AICompleter = Depends(get_completer),
    evaluations: EvaluationQueue = Depends(get_evaluation_queue)
) -> InboundMessageHandler:
    return InboundMessageHandler(
        telegram=telegram,
        classifier=ResponseClassifier(completer),
        parser=DeadlineParser(completer),
        generator=MessageGenerator(completer),
        evaluations=evaluations
    )
