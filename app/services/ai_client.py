"""
AI capability adapter.

The rest of the code depends on the narrow `AICompleter` protocol (prompt in,
free text out). `OpenAICompleter` is the production implementation; tests
inject a stub. Structured answers are decoded with `decode_json_object`,
which validates against a pydantic model and falls back to a documented
default instead of raising.
"""

import json
import logging
import re
from typing import Optional, Protocol, Type, TypeVar

from openai import OpenAI, OpenAIError
from pydantic import BaseModel

from app.core.config import settings
from app.core.exceptions import AIServiceError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# First "{" through last "}" in the response
_JSON_BLOCK_RE = re.compile(r"\{.*\}", re.DOTALL)


class AICompleter(Protocol):
    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        ...


class OpenAICompleter:
    """
    Chat-completions client with a per-call timeout.

    Any transport, auth or empty-response problem is raised as AIServiceError
    so callers can apply their fallback.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None
    ):
        self.model = model or settings.OPENAI_MODEL
        self.temperature = settings.OPENAI_TEMPERATURE if temperature is None else temperature
        self.client = OpenAI(
            api_key=api_key if api_key is not None else settings.OPENAI_API_KEY,
            timeout=timeout or settings.AI_REQUEST_TIMEOUT_SECONDS,
            max_retries=1
        )

    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature
            )
        except OpenAIError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise AIServiceError(f"AI request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise AIServiceError("AI returned an empty response")
        return content


def build_ai_completer() -> AICompleter:
    return OpenAICompleter()


def decode_json_object(text: Optional[str], schema: Type[ModelT], default: ModelT) -> ModelT:
    """
    Extract the first JSON object from free text and validate it.

    Args:
        text: Raw AI response
        schema: Pydantic model the object must satisfy
        default: Returned when no object is found or validation fails

    Returns:
        Validated model instance, or `default`
    """
    if not text:
        return default

    match = _JSON_BLOCK_RE.search(text)
    if not match:
        logger.warning(f"No JSON object in AI response, using default {schema.__name__}")
        return default

    try:
        return schema.model_validate(json.loads(match.group(0)))
    except ValueError as e:
        # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
        logger.warning(f"Invalid {schema.__name__} in AI response, using default: {e}")
        return default
