"""
Inbound Telegram updates: candidate replies and inline-button callbacks.

Text replies are logged, classified and routed:

    positive_ready              -> schedule the test task
    request_deadline_extension  -> deadline extension state machine
    test_task_submission        -> record the submission, ask for feedback
    positive_with_questions,
    questions_about_job         -> AI answer
    negative                    -> mark outreach declined
    unclear                     -> acknowledgement

Domain errors raised while routing are logged and answered with the
acknowledgement; the webhook itself always succeeds.
"""

import logging
import random
import re
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import HiringAutomationError
from app.crud import candidate as candidate_crud
from app.crud import conversation as conversation_crud
from app.crud import match as match_crud
from app.models.candidate import Candidate, OutreachStatus, TestTaskStatus
from app.models.conversation import MessageDirection
from app.models.hiring_request import HiringRequest
from app.models.pipeline import PipelineStage, can_transition
from app.schemas.ai import ResponseCategory
from app.services import test_task_service
from app.services.deadline_parser import DeadlineParser
from app.services.evaluator import EvaluationQueue
from app.services.message_generator import MessageGenerator
from app.services.response_classifier import ResponseClassifier
from app.services.telegram_service import TelegramSender, feedback_keyboard

logger = logging.getLogger(__name__)

UNKNOWN_PROFILE_MESSAGE = "Вибачте, не можу знайти ваш профіль. Будь ласка, спочатку подайте заявку через форму."
TEST_TASK_COMING_MESSAGE = "Чудово! Незабаром надішлю вам тестове завдання."
FEEDBACK_REQUEST_MESSAGE = "Дякую за виконання! Поділіться враженнями про тестове завдання:"
DECLINED_MESSAGE = "Дякуємо за відповідь! Якщо передумаєте, завжди можете написати нам."
ACKNOWLEDGE_MESSAGE = "Дякую за повідомлення! Ми переглянемо і відповімо найближчим часом."
FEEDBACK_THANKS_MESSAGE = "Дякуємо за фідбек! Ми перевіримо ваше тестове найближчим часом і зв'яжемося з вами."

FEEDBACK_LABELS = {
    "easy": "Легко",
    "ok": "Нормально",
    "hard": "Складно",
    "very_hard": "Дуже складно",
}

FEEDBACK_PATTERN = re.compile(r"^feedback_(easy|ok|hard|very_hard)_(\d+)$")
OUTREACH_PATTERN = re.compile(r"^outreach_(yes|no):(\d+):(\d+)$")


def start_message(first_name: str) -> str:
    return (
        f"Привіт, {first_name}! Я Vamos Hiring Bot.\n\n"
        "Шукаєте роботу в інноваційній команді? Натисніть кнопку нижче!"
    )


def apply_keyboard() -> dict:
    return {
        "inline_keyboard": [[
            {"text": "Подати заявку", "web_app": {"url": f"{settings.APP_URL}/apply"}},
        ]]
    }


class InboundMessageHandler:
    """Routes Telegram updates to the hiring workflow."""

    def __init__(
        self,
        telegram: TelegramSender,
        classifier: ResponseClassifier,
        parser: DeadlineParser,
        generator: MessageGenerator,
        rng: Optional[random.Random] = None,
        evaluations: Optional[EvaluationQueue] = None
    ):
        self.telegram = telegram
        self.classifier = classifier
        self.parser = parser
        self.generator = generator
        self.evaluations = evaluations
        self.rng = rng or random.Random()

    def _reply(self, chat_id: int, text: str, reply_markup: Optional[dict] = None) -> None:
        result = self.telegram.send(str(chat_id), text, reply_markup=reply_markup)
        if not result.success:
            logger.warning(f"Reply to chat {chat_id} failed: {result.error}")

    def handle_update(self, db: Session, update: dict, now: datetime) -> None:
        """Entry point for one webhook update."""
        callback = update.get("callback_query")
        if callback:
            self.handle_callback(db, callback, now)
            return

        message = update.get("message") or {}
        if message.get("text"):
            self.handle_message(db, message, now)

    def handle_message(self, db: Session, message: dict, now: datetime) -> None:
        chat_id = message["chat"]["id"]
        sender = message.get("from") or {}
        text = message["text"]

        if text.startswith("/start"):
            self._reply(chat_id, start_message(sender.get("first_name", "")), reply_markup=apply_keyboard())
            return

        candidate = None
        if sender.get("username"):
            candidate = candidate_crud.get_by_telegram_username(db, sender["username"])
        if candidate is None:
            logger.info(f"Telegram message from unknown user {sender.get('username')}")
            self._reply(chat_id, UNKNOWN_PROFILE_MESSAGE)
            return

        candidate_crud.set_telegram_chat_id(db, candidate, chat_id)
        conversation_crud.append(db, candidate.id, MessageDirection.INBOUND, "candidate_response", text)

        has_received_test_task = candidate.test_task_status == TestTaskStatus.SENT
        classification = self.classifier.classify(
            text,
            has_received_test_task=has_received_test_task,
            test_task_deadline=candidate.test_task_current_deadline,
            now=now
        )
        logger.info(
            f"Candidate {candidate.id} reply classified as {classification.category.value} "
            f"(confidence {classification.confidence})"
        )

        try:
            self._route(db, candidate, chat_id, text, classification.category, now)
        except HiringAutomationError as e:
            db.rollback()
            logger.warning(f"Could not act on reply from candidate {candidate.id}: {e.message}")
            self._reply(chat_id, ACKNOWLEDGE_MESSAGE)

    def _route(
        self,
        db: Session,
        candidate: Candidate,
        chat_id: int,
        text: str,
        category: ResponseCategory,
        now: datetime
    ) -> None:
        if category == ResponseCategory.POSITIVE_READY:
            test_task_service.schedule_test_task(db, candidate, self.generator, now, rng=self.rng)
            self._reply(chat_id, TEST_TASK_COMING_MESSAGE)

        elif category == ResponseCategory.REQUEST_DEADLINE_EXTENSION:
            outcome = test_task_service.extend_deadline(db, candidate, text, self.parser, now)
            self._reply(chat_id, outcome.message)

        elif category == ResponseCategory.TEST_TASK_SUBMISSION:
            test_task_service.submit_test_task(db, candidate, text, now)
            if self.evaluations is not None:
                self.evaluations.test_task(candidate.id)
            self._reply(chat_id, FEEDBACK_REQUEST_MESSAGE, reply_markup=feedback_keyboard(candidate.id))

        elif category in (ResponseCategory.POSITIVE_WITH_QUESTIONS, ResponseCategory.QUESTIONS_ABOUT_JOB):
            request = None
            match = match_crud.get_best_match(db, candidate.id)
            if match is not None:
                request = db.query(HiringRequest).filter(HiringRequest.id == match.request_id).first()
            answer = self.generator.answer_question(text, candidate, request)
            self._reply(chat_id, answer)
            conversation_crud.append(db, candidate.id, MessageDirection.OUTBOUND, "ai_reply", answer)

        elif category == ResponseCategory.NEGATIVE:
            self._decline(db, candidate)
            self._reply(chat_id, DECLINED_MESSAGE)

        else:
            self._reply(chat_id, ACKNOWLEDGE_MESSAGE)

    def _decline(self, db: Session, candidate: Candidate) -> None:
        candidate.outreach_status = OutreachStatus.DECLINED
        if can_transition(candidate.pipeline_stage or PipelineStage.NEW, PipelineStage.OUTREACH_DECLINED):
            candidate.pipeline_stage = PipelineStage.OUTREACH_DECLINED
        db.commit()
        logger.info(f"Candidate {candidate.id} declined outreach")

    def handle_callback(self, db: Session, callback: dict, now: datetime) -> None:
        data = callback.get("data") or ""
        chat_id = ((callback.get("message") or {}).get("chat") or {}).get("id")

        feedback = FEEDBACK_PATTERN.match(data)
        if feedback:
            self.telegram.answer_callback_query(callback["id"], "Дякуємо за фідбек!")
            candidate = candidate_crud.get_by_id(db, int(feedback.group(2)))
            if candidate is None:
                return
            candidate.test_task_candidate_feedback = FEEDBACK_LABELS[feedback.group(1)]
            db.commit()
            logger.info(f"Candidate {candidate.id} rated the test task: {feedback.group(1)}")
            if chat_id:
                self._reply(chat_id, FEEDBACK_THANKS_MESSAGE)
            return

        outreach = OUTREACH_PATTERN.match(data)
        if outreach:
            self.telegram.answer_callback_query(callback["id"])
            candidate = candidate_crud.get_by_id(db, int(outreach.group(2)))
            if candidate is None or not chat_id:
                return
            conversation_crud.append(
                db, candidate.id, MessageDirection.INBOUND, "outreach_reply", outreach.group(1),
                meta={"request_id": int(outreach.group(3))}
            )
            category = ResponseCategory.POSITIVE_READY if outreach.group(1) == "yes" else ResponseCategory.NEGATIVE
            try:
                self._route(db, candidate, chat_id, "", category, now)
            except HiringAutomationError as e:
                db.rollback()
                logger.warning(f"Could not act on outreach button from candidate {candidate.id}: {e.message}")
                self._reply(chat_id, ACKNOWLEDGE_MESSAGE)
            return

        logger.info(f"Ignoring unknown callback data: {data}")
