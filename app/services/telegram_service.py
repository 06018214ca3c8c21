"""
Telegram Bot API sender.

Thin httpx wrapper over `sendMessage` and `answerCallbackQuery`. Transport
errors and Bot API rejections are returned as failed DeliveryResults, never
raised, so a single bad recipient cannot break a batch.
"""

import logging
from typing import Optional

import httpx

from app.core.config import settings
from app.services.messaging import DeliveryResult

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"


def outreach_keyboard(candidate_id: int, request_id: int) -> dict:
    """Inline yes/no buttons attached to automated outreach."""
    return {
        "inline_keyboard": [[
            {
                "text": "✅ Так, цікаво дізнатись більше",
                "callback_data": f"outreach_yes:{candidate_id}:{request_id}",
            },
            {
                "text": "❌ Дякую, не зараз",
                "callback_data": f"outreach_no:{candidate_id}:{request_id}",
            },
        ]]
    }


def feedback_keyboard(candidate_id: int) -> dict:
    """Difficulty feedback buttons shown after a test-task submission."""
    return {
        "inline_keyboard": [
            [
                {"text": "Легко", "callback_data": f"feedback_easy_{candidate_id}"},
                {"text": "Нормально", "callback_data": f"feedback_ok_{candidate_id}"},
            ],
            [
                {"text": "Складно", "callback_data": f"feedback_hard_{candidate_id}"},
                {"text": "Дуже складно", "callback_data": f"feedback_very_hard_{candidate_id}"},
            ],
        ]
    }


class TelegramSender:
    def __init__(self, bot_token: Optional[str] = None, timeout: Optional[float] = None):
        self.bot_token = bot_token if bot_token is not None else settings.TELEGRAM_BOT_TOKEN
        self.timeout = timeout or settings.TELEGRAM_REQUEST_TIMEOUT_SECONDS

    def _call(self, method: str, payload: dict) -> dict:
        url = f"{TELEGRAM_API_BASE}/bot{self.bot_token}/{method}"
        with httpx.Client(timeout=self.timeout) as client:
            response = client.post(url, json=payload)
        return response.json()

    def send(self, identity: str, text: str, reply_markup: Optional[dict] = None, **options) -> DeliveryResult:
        """
        Send a text message.

        Args:
            identity: Numeric chat id or "@username"
            text: Message body
            reply_markup: Optional inline keyboard

        Returns:
            DeliveryResult with the Telegram message id on success
        """
        if not self.bot_token:
            return DeliveryResult(success=False, error="TELEGRAM_BOT_TOKEN is not configured")

        chat_id = int(identity) if identity.lstrip("-").isdigit() else identity
        payload = {"chat_id": chat_id, "text": text}
        if reply_markup:
            payload["reply_markup"] = reply_markup

        try:
            data = self._call("sendMessage", payload)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Telegram sendMessage to {identity} failed: {e}")
            return DeliveryResult(success=False, error=f"Telegram request failed: {e}")

        if not data.get("ok"):
            description = data.get("description", "unknown error")
            logger.error(f"Telegram rejected message to {identity}: {description}")
            return DeliveryResult(success=False, error=f"Telegram API error: {description}")

        message_id = data.get("result", {}).get("message_id")
        return DeliveryResult(success=True, message_id=str(message_id) if message_id is not None else None)

    def answer_callback_query(self, callback_query_id: str, text: str = "OK") -> None:
        if not self.bot_token:
            return
        try:
            self._call("answerCallbackQuery", {"callback_query_id": callback_query_id, "text": text})
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"answerCallbackQuery failed: {e}")
