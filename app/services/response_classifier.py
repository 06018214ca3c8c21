"""
Response classification.

Maps a free-text candidate reply to one intent category. Classification
never raises: any AI failure or malformed answer degrades to `unclear` with
confidence 0.5, and a deadline-extension verdict is downgraded to `unclear`
when the candidate has not received a test task.
"""

import logging
from datetime import datetime
from typing import Optional

from app.core.exceptions import AIServiceError
from app.core.timeutils import utcnow
from app.schemas.ai import ClassificationResult, ExtractedInfo, ResponseCategory
from app.services import prompts
from app.services.ai_client import AICompleter, decode_json_object

logger = logging.getLogger(__name__)


def fallback_classification() -> ClassificationResult:
    return ClassificationResult(
        category=ResponseCategory.UNCLEAR,
        confidence=0.5,
        extracted_info=ExtractedInfo()
    )


class ResponseClassifier:
    def __init__(self, completer: AICompleter):
        self.completer = completer

    def classify(
        self,
        message_text: str,
        has_received_test_task: bool,
        test_task_deadline: Optional[datetime] = None,
        now: Optional[datetime] = None
    ) -> ClassificationResult:
        """
        Classify a candidate message.

        Args:
            message_text: Raw message from the candidate
            has_received_test_task: Whether a test task is currently out
            test_task_deadline: Current deadline, for context
            now: Reference time (defaults to current UTC time)

        Returns:
            ClassificationResult; the fallback on any failure
        """
        if not message_text or not message_text.strip():
            return fallback_classification()

        prompt = prompts.classification_prompt(
            message_text,
            has_received_test_task=has_received_test_task,
            test_task_deadline=test_task_deadline,
            now=now or utcnow()
        )

        try:
            raw = self.completer.complete(prompt, system=prompts.SYSTEM_JSON)
        except AIServiceError as e:
            logger.warning(f"Classification unavailable, defaulting to unclear: {e}")
            return fallback_classification()

        result = decode_json_object(raw, ClassificationResult, fallback_classification())

        if result.category == ResponseCategory.REQUEST_DEADLINE_EXTENSION and not has_received_test_task:
            logger.info("Deadline extension classified without an active test task, downgrading to unclear")
            return result.model_copy(update={"category": ResponseCategory.UNCLEAR})

        return result
