"""
Celery tasks for the periodic triggers.

Each task opens its own database session, builds the production
collaborators and runs one tick.
"""

import logging

from app.core.celery_app import celery_app
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.pacing import FixedDelayPacer
from app.core.timeutils import utcnow
from app.services.ai_client import build_ai_completer
from app.services.automation_handlers import AutomationContext
from app.services.automation_scheduler import tick
from app.services.email_service import EmailSender
from app.services.message_generator import MessageGenerator
from app.services.messaging import MessageDispatcher
from app.services.outreach_service import OutreachProcessor
from app.services.telegram_service import TelegramSender

logger = logging.getLogger(__name__)


def _dispatcher() -> MessageDispatcher:
    return MessageDispatcher(telegram=TelegramSender(), email=EmailSender())


@celery_app.task(name="app.tasks.automation_tasks.process_automation_queue", bind=True)
def process_automation_queue(self):
    """
    Run one automation tick.

    Returns:
        dict: BatchResult counts
    """
    logger.info(f"[Task {self.request.id}] Processing automation queue")
    db = SessionLocal()
    try:
        context = AutomationContext(
            dispatcher=_dispatcher(),
            generator=MessageGenerator(build_ai_completer()),
            now=utcnow()
        )
        result = tick(
            db,
            now=context.now,
            context=context,
            pacer=FixedDelayPacer(settings.INTER_ITEM_DELAY_SECONDS),
            batch_limit=settings.AUTOMATION_BATCH_SIZE
        )
        logger.info(f"[Task {self.request.id}] Automation queue done: {result.as_dict()}")
        return result.as_dict()
    finally:
        db.close()


@celery_app.task(name="app.tasks.automation_tasks.process_outreach_queue", bind=True)
def process_outreach_queue(self):
    """
    Send due outreach queue items.

    Returns:
        dict: BatchResult counts
    """
    logger.info(f"[Task {self.request.id}] Processing outreach queue")
    db = SessionLocal()
    try:
        processor = OutreachProcessor(_dispatcher(), FixedDelayPacer(settings.INTER_ITEM_DELAY_SECONDS))
        result = processor.tick(db, utcnow(), settings.OUTREACH_BATCH_SIZE)
        logger.info(f"[Task {self.request.id}] Outreach queue done: {result.as_dict()}")
        return result.as_dict()
    finally:
        db.close()
