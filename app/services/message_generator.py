"""
Message Generation Engine.

Facade over the AI capability that drafts every candidate-facing text:
warm intros, personalized outreach, test-task assignments, test-task
decisions and answers to candidate questions. AI output is cleaned and
validated; when the AI is unavailable or returns something unusably short,
a fixed Ukrainian fallback text is used instead so sending never blocks on
the AI.
"""

import logging
import re
from datetime import datetime
from typing import Optional

from app.core.exceptions import AIServiceError
from app.core.timeutils import as_utc, hiring_tz
from app.models.candidate import Candidate
from app.models.hiring_request import HiringRequest
from app.schemas.ai import CandidateAnalysis
from app.services import prompts
from app.services.ai_client import AICompleter

logger = logging.getLogger(__name__)

MIN_INTRO_LENGTH = 50
MIN_TEST_TASK_LENGTH = 30
MIN_DECISION_LENGTH = 30

QUESTION_FALLBACK = (
    "Дякую за запитання! Уточню деталі у команди і повернуся з відповіддю найближчим часом."
)

_WRAPPING_QUOTES_RE = re.compile(r"^[\"'`«»“”]+|[\"'`«»“”]+$")
_CODE_FENCE_RE = re.compile(r"```[a-zA-Z]*\n?(.*?)```", re.DOTALL)
_INLINE_CODE_RE = re.compile(r"`([^`]+)`")
_ROLE_PREFIX_RE = re.compile(r"^(assistant|ai|bot)\s*:\s*", re.IGNORECASE)
_LEAD_IN_RE = re.compile(
    r"^((here is|here's)[^\n:]*:|ось[^\n:]*повідомлення[^\n:]*:|message:|повідомлення:)\s*",
    re.IGNORECASE
)
_EXTRA_NEWLINES_RE = re.compile(r"\n{3,}")


def clean_ai_response(text: str) -> str:
    """
    Strip presentation noise from generated text.

    Removes code fences (keeping their content), inline backticks, role
    prefixes, generic lead-ins such as "Here is the message:" and wrapping
    quotes, then collapses runs of blank lines.
    """
    cleaned = text.strip()
    cleaned = _CODE_FENCE_RE.sub(lambda m: m.group(1), cleaned)
    cleaned = _INLINE_CODE_RE.sub(r"\1", cleaned)
    cleaned = cleaned.strip()
    cleaned = _ROLE_PREFIX_RE.sub("", cleaned)
    cleaned = _LEAD_IN_RE.sub("", cleaned)
    cleaned = _WRAPPING_QUOTES_RE.sub("", cleaned.strip())
    cleaned = _EXTRA_NEWLINES_RE.sub("\n\n", cleaned)
    return cleaned.strip()


def analysis_from_candidate(candidate: Candidate) -> CandidateAnalysis:
    """Rebuild the AI evaluation from the fields stored on the candidate."""
    return CandidateAnalysis(
        score=candidate.ai_score if candidate.ai_score is not None else 7,
        category=candidate.ai_category or "strong",
        summary=candidate.ai_summary or "",
        strengths=candidate.ai_strengths or [],
        concerns=candidate.ai_concerns or []
    )


def format_deadline(deadline: datetime) -> str:
    return as_utc(deadline).astimezone(hiring_tz()).strftime("%d.%m.%Y о %H:%M")


# Fallback texts

def fallback_intro(candidate: Candidate, request: Optional[HiringRequest] = None) -> str:
    skills = " та ".join((candidate.key_skills or [])[:2]) or "твої навички"
    opening = (
        f"Привіт, {candidate.first_name}!\n\n"
        "Дякую за твою заявку до Vamos! Ми переглянули твій профіль і він нас дуже зацікавив.\n\n"
    )
    closing = (
        "\n\nЧи готовий ти пройти невелике тестове завдання? "
        "Це допоможе нам краще зрозуміти твої навички на практиці."
    )
    if request is not None:
        middle = (
            f"Твій досвід з {skills} виглядає дуже цікаво для нас. "
            f"Зараз у нас відкрита позиція \"{request.title}\", яка може бути чудовим match для тебе."
        )
    else:
        middle = (
            f"Твій досвід з {skills} виглядає дуже цікаво. "
            "У нас є кілька можливостей, які можуть тебе зацікавити."
        )
    return opening + middle + closing


def fallback_test_task(candidate: Candidate, request: HiringRequest, task_url: str, deadline: datetime) -> str:
    return (
        f"Привіт, {candidate.first_name}!\n\n"
        f"Дякую за готовність пройти тестове завдання для позиції \"{request.title}\"!\n\n"
        f"Ось посилання на завдання: {task_url}\n\n"
        f"Дедлайн: {format_deadline(deadline)}. Якщо виникнуть питання, пиши, із задоволенням допоможемо!"
    )


def fallback_decision(candidate: Candidate, approved: bool) -> str:
    if approved:
        return (
            f"Привіт, {candidate.first_name}! Вітаємо, тестове завдання виконане чудово. "
            "Найближчим часом менеджер зв'яжеться з тобою, щоб домовитись про розмову."
        )
    return (
        f"Привіт, {candidate.first_name}! Дякуємо за час і зусилля, які ти вклав(ла) в тестове завдання. "
        "Наразі ми вирішили не продовжувати, але будемо раді бачити тебе в майбутніх відборах. Успіхів!"
    )


class MessageGenerator:
    """Drafts candidate-facing messages through an injected AICompleter."""

    def __init__(self, completer: AICompleter):
        self.completer = completer

    def _generate(self, prompt: str, min_length: int, kind: str, candidate_id: int) -> Optional[str]:
        try:
            text = clean_ai_response(self.completer.complete(prompt, system=prompts.SYSTEM_HR))
        except AIServiceError as e:
            logger.warning(f"AI {kind} generation failed for candidate {candidate_id}, using fallback: {e}")
            return None

        if len(text) < min_length:
            logger.warning(
                f"AI {kind} message too short ({len(text)} chars) for candidate {candidate_id}, using fallback"
            )
            return None
        return text

    def warm_intro(
        self,
        candidate: Candidate,
        analysis: Optional[CandidateAnalysis] = None,
        request: Optional[HiringRequest] = None,
        match_score: Optional[float] = None
    ) -> str:
        """
        Personalized first-contact message for a warm candidate.

        Args:
            candidate: Recipient
            analysis: AI evaluation; rebuilt from candidate fields when omitted
            request: Best-matching hiring request, if any
            match_score: Match score of that request (0-100)

        Returns:
            Message text in Ukrainian
        """
        analysis = analysis or analysis_from_candidate(candidate)
        prompt = prompts.warm_intro_prompt(
            candidate,
            score=analysis.score,
            category=analysis.category,
            summary=analysis.summary,
            strengths=analysis.strengths,
            request=request,
            match_score=match_score
        )
        text = self._generate(prompt, MIN_INTRO_LENGTH, "intro", candidate.id)
        return text or fallback_intro(candidate, request)

    def personalized_outreach(self, template: str, candidate: Candidate, request: HiringRequest) -> str:
        prompt = prompts.personalized_outreach_prompt(template, candidate, request)
        text = self._generate(prompt, MIN_INTRO_LENGTH, "outreach", candidate.id)
        return text or f"Привіт, {candidate.first_name}!\n\n{template.strip()}"

    def test_task_message(
        self,
        candidate: Candidate,
        request: HiringRequest,
        task_url: str,
        deadline: datetime
    ) -> str:
        prompt = prompts.test_task_prompt(candidate, request, task_url, format_deadline(deadline))
        text = self._generate(prompt, MIN_TEST_TASK_LENGTH, "test task", candidate.id)
        if text and task_url not in text:
            text = f"{text}\n\n{task_url}"
        return text or fallback_test_task(candidate, request, task_url, deadline)

    def decision_message(
        self,
        candidate: Candidate,
        request: Optional[HiringRequest],
        approved: bool
    ) -> str:
        prompt = prompts.test_task_decision_prompt(
            candidate,
            request,
            approved=approved,
            score=candidate.test_task_ai_score,
            evaluation=candidate.test_task_ai_evaluation
        )
        text = self._generate(prompt, MIN_DECISION_LENGTH, "decision", candidate.id)
        return text or fallback_decision(candidate, approved)

    def answer_question(self, question: str, candidate: Candidate, request: Optional[HiringRequest]) -> str:
        prompt = prompts.question_answer_prompt(question, candidate, request)
        text = self._generate(prompt, 1, "answer", candidate.id)
        return text or QUESTION_FALLBACK
