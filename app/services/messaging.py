"""
Messaging channel contract and routing.

Senders implement `send(identity, text) -> DeliveryResult`; the identity is
channel specific (Telegram chat id or "@username", email address).
`MessageDispatcher` picks the sender and identity for a candidate given a
resolved `DeliveryMethod`.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from app.core.exceptions import MissingContactDetailError
from app.models.candidate import Candidate
from app.models.outreach import DeliveryMethod

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False  # Not attempted, someone else owns the message


class MessageSender(Protocol):
    def send(self, identity: str, text: str, **options) -> DeliveryResult:
        ...


def resolve_delivery_method(candidate: Candidate) -> DeliveryMethod:
    """
    Pick exactly one channel for a candidate.

    Telegram is used when the candidate listed it as a preferred contact
    method and has a Telegram handle; everything else goes by email.

    Raises:
        MissingContactDetailError: Email was chosen but the candidate has no email
    """
    preferred = [str(method).lower() for method in (candidate.preferred_contact_methods or [])]
    has_telegram = bool(candidate.telegram_username or candidate.telegram_chat_id)

    if "telegram" in preferred and has_telegram:
        return DeliveryMethod.TELEGRAM

    if not candidate.email:
        raise MissingContactDetailError(
            f"Candidate {candidate.id} has no email address for delivery"
        )
    return DeliveryMethod.EMAIL


def telegram_identity(candidate: Candidate) -> Optional[str]:
    if candidate.telegram_chat_id:
        return str(candidate.telegram_chat_id)
    if candidate.telegram_username:
        return "@" + candidate.telegram_username.lstrip("@")
    return None


class MessageDispatcher:
    """Routes a message for a candidate to the sender of the resolved channel."""

    def __init__(self, telegram: MessageSender, email: MessageSender):
        self.telegram = telegram
        self.email = email

    def send(
        self,
        candidate: Candidate,
        method: DeliveryMethod,
        text: str,
        subject: Optional[str] = None,
        **options
    ) -> DeliveryResult:
        """
        Deliver `text` to the candidate over `method`.

        Raises:
            MissingContactDetailError: The channel's contact detail is missing
        """
        if method == DeliveryMethod.TELEGRAM:
            identity = telegram_identity(candidate)
            if not identity:
                raise MissingContactDetailError(f"Candidate {candidate.id} has no Telegram chat id or username")
            result = self.telegram.send(identity, text, **options)
        else:
            if not candidate.email:
                raise MissingContactDetailError(f"Candidate {candidate.id} has no email address")
            result = self.email.send(candidate.email, text, subject=subject)

        if result.success:
            logger.info(f"Delivered message to candidate {candidate.id} via {method.value} (id={result.message_id})")
        else:
            logger.warning(f"Delivery to candidate {candidate.id} via {method.value} failed: {result.error}")
        return result
