"""
Deadline Negotiation Engine.

Turns a free-text extension request ("можна до четверга?", "3 more days",
"до 15 лютого") into a concrete new deadline and judges it against the
extension policy. Common phrasings are resolved locally and
deterministically; anything else is handed to the AI with a schema-checked
answer. Dates are reasoned about in the hiring timezone and the time of day
of the current deadline is kept.
"""

import logging
import re
from datetime import date, datetime, timedelta
from typing import Optional

from app.core.config import settings
from app.core.exceptions import AIServiceError
from app.core.timeutils import as_utc, hiring_tz
from app.schemas.ai import DeadlineExtension, DeadlineParseResponse
from app.services import prompts
from app.services.ai_client import AICompleter, decode_json_object

logger = logging.getLogger(__name__)

WEEKDAY_PATTERNS = {
    0: r"\bпонеділ(?:ок|ка|ку)\b|\bmonday\b",
    1: r"\bвівтор(?:ок|ка|ку)\b|\btuesday\b",
    2: r"\bсеред(?:а|у|и|і)\b|\bwednesday\b",
    3: r"\bчетвер(?:га|гу)?\b|\bthursday\b",
    4: r"\bп'?ятниц(?:я|і|ю|ею)\b|\bfriday\b",
    5: r"\bсубот(?:а|у|и|і)\b|\bsaturday\b",
    6: r"\bнеділ(?:я|ю|і)\b|\bsunday\b",
}
_WEEKDAY_RES = {weekday: re.compile(pattern) for weekday, pattern in WEEKDAY_PATTERNS.items()}

MONTHS = {
    "січня": 1, "лютого": 2, "березня": 3, "квітня": 4, "травня": 5, "червня": 6,
    "липня": 7, "серпня": 8, "вересня": 9, "жовтня": 10, "листопада": 11, "грудня": 12,
    "січень": 1, "лютий": 2, "березень": 3, "квітень": 4, "травень": 5, "червень": 6,
    "липень": 7, "серпень": 8, "вересень": 9, "жовтень": 10, "листопад": 11, "грудень": 12,
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7,
    "aug": 8, "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}

NUMBER_WORDS = {
    "один": 1, "одного": 1, "one": 1,
    "два": 2, "дві": 2, "two": 2, "пару": 2, "couple of": 2,
    "три": 3, "three": 3,
    "чотири": 4, "four": 4,
    "п'ять": 5, "п’ять": 5, "five": 5,
    "шість": 6, "six": 6,
    "сім": 7, "seven": 7,
}

_NUMBER = r"(\d{1,2}|" + "|".join(re.escape(w) for w in NUMBER_WORDS) + r")"
_DAYS_RE = re.compile(_NUMBER + r"\s+(?:more\s+|extra\s+|additional\s+|додаткових\s+)?(?:дн\w*|день|days?)\b")
_ONE_MORE_DAY_RE = re.compile(r"(?:\bще\s+(?:один\s+)?день\b|\bone more day\b|\banother day\b)")
_WEEK_RE = re.compile(r"(?:\bще\s+(?:один\s+)?тиждень\b|\b(?:one\s+more|another|a)\s+week\b)")
_END_OF_WEEK_RE = re.compile(r"(?:кін\w*\s+тижня|end of (?:the |this )?week)")
_ISO_DATE_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_NUMERIC_DATE_RE = re.compile(r"\b(\d{1,2})[./](\d{1,2})(?:[./](\d{2,4}))?\b")
_DAY_MONTH_RE = re.compile(r"\b(\d{1,2})\s+([a-zа-яіїєґ]+)")
_MONTH_DAY_RE = re.compile(r"\b([a-z]+)\s+(\d{1,2})\b")


def _month_from_word(word: str) -> Optional[int]:
    return MONTHS.get(word.rstrip("."))


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _roll_forward(candidate: Optional[date], base: date) -> Optional[date]:
    """A day/month without a year means its next occurrence on or after `base`."""
    if candidate is None or candidate >= base:
        return candidate
    return _safe_date(candidate.year + 1, candidate.month, candidate.day)


def _next_weekday(base: date, weekday: int) -> date:
    """First `weekday` strictly after `base`."""
    return base + timedelta(days=(weekday - base.weekday() - 1) % 7 + 1)


def _first_weekday(text: str) -> Optional[int]:
    """Weekday named earliest in the text, if any."""
    found = []
    for weekday, pattern in _WEEKDAY_RES.items():
        match = pattern.search(text)
        if match:
            found.append((match.start(), weekday))
    return min(found)[1] if found else None


def _absolute_date(text: str, base: date) -> Optional[date]:
    match = _ISO_DATE_RE.search(text)
    if match:
        return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = _NUMERIC_DATE_RE.search(text)
    if match:
        day, month, year = match.group(1), match.group(2), match.group(3)
        if year:
            year_value = int(year) + 2000 if len(year) == 2 else int(year)
            return _safe_date(year_value, int(month), int(day))
        return _roll_forward(_safe_date(base.year, int(month), int(day)), base)

    for match in _DAY_MONTH_RE.finditer(text):
        month = _month_from_word(match.group(2))
        if month:
            return _roll_forward(_safe_date(base.year, month, int(match.group(1))), base)

    for match in _MONTH_DAY_RE.finditer(text):
        month = _month_from_word(match.group(1))
        if month:
            return _roll_forward(_safe_date(base.year, month, int(match.group(2))), base)

    return None


def resolve_requested_date(text: str, local_deadline: datetime, local_today: date) -> Optional[datetime]:
    """
    Resolve common relative and absolute phrasings without the AI.

    Relative amounts ("ще 3 дні", "a week more") are added to the current
    deadline. Weekday names and "end of week" mean the first such day after
    both today and the current deadline date.

    Args:
        text: Candidate message
        local_deadline: Current deadline in the hiring timezone
        local_today: Today's date in the hiring timezone

    Returns:
        Requested deadline in the hiring timezone, or None if not recognised
    """
    lowered = text.lower().replace("’", "'").replace("ʼ", "'")
    base = max(local_today, local_deadline.date())
    keep_time = local_deadline.timetz()

    def at_deadline_time(day: date) -> datetime:
        return datetime.combine(day, keep_time)

    absolute = _absolute_date(lowered, base)
    if absolute:
        return at_deadline_time(absolute)

    match = _DAYS_RE.search(lowered)
    if match:
        amount = match.group(1)
        days = int(amount) if amount.isdigit() else NUMBER_WORDS[amount]
        return local_deadline + timedelta(days=days)

    if _ONE_MORE_DAY_RE.search(lowered):
        return local_deadline + timedelta(days=1)

    if _WEEK_RE.search(lowered):
        return local_deadline + timedelta(days=7)

    if _END_OF_WEEK_RE.search(lowered):
        return at_deadline_time(_next_weekday(base, 6))

    if "післязавтра" in lowered or "day after tomorrow" in lowered:
        return at_deadline_time(local_today + timedelta(days=2))
    if "завтра" in lowered or "tomorrow" in lowered:
        return at_deadline_time(local_today + timedelta(days=1))

    weekday = _first_weekday(lowered)
    if weekday is not None:
        return at_deadline_time(_next_weekday(base, weekday))

    return None


class DeadlineParser:
    """
    Parse extension requests and judge them against the policy limit.

    An extension is reasonable only when it moves the deadline forward by at
    most `max_extension_days` (measured from the current deadline).
    """

    def __init__(self, completer: Optional[AICompleter] = None, max_extension_days: Optional[int] = None):
        self.completer = completer
        self.max_extension_days = max_extension_days or settings.MAX_EXTENSION_DAYS

    def parse(self, text: str, current_deadline: datetime, now: datetime) -> DeadlineExtension:
        current_deadline = as_utc(current_deadline)
        tz = hiring_tz()
        local_deadline = current_deadline.astimezone(tz)
        local_today = as_utc(now).astimezone(tz).date()

        requested = resolve_requested_date(text or "", local_deadline, local_today)
        if requested is not None:
            requested_utc = as_utc(requested)
            logger.info(f"Deadline request resolved locally to {requested_utc.isoformat()}")
        else:
            requested_utc = self._ask_ai(text or "", current_deadline, now)

        if requested_utc is None:
            return DeadlineExtension(is_reasonable=False, reason="Could not understand deadline request")

        additional_days = round((requested_utc - current_deadline).total_seconds() / 86400, 2)

        if additional_days <= 0:
            return DeadlineExtension(
                requested_date=requested_utc,
                additional_days=additional_days,
                is_reasonable=False,
                reason="Requested date is not after the current deadline"
            )

        if additional_days > self.max_extension_days:
            return DeadlineExtension(
                requested_date=requested_utc,
                additional_days=additional_days,
                is_reasonable=False,
                reason=f"Extension of {additional_days:g} days exceeds the {self.max_extension_days}-day limit"
            )

        return DeadlineExtension(
            requested_date=requested_utc,
            additional_days=additional_days,
            is_reasonable=True,
            reason=f"Candidate requested {additional_days:g} more days"
        )

    def _ask_ai(self, text: str, current_deadline: datetime, now: datetime) -> Optional[datetime]:
        if self.completer is None or not text.strip():
            return None

        prompt = prompts.deadline_request_prompt(text, current_deadline, as_utc(now))
        try:
            raw = self.completer.complete(prompt, system=prompts.SYSTEM_JSON)
        except AIServiceError as e:
            logger.warning(f"Deadline parsing AI unavailable: {e}")
            return None

        parsed = decode_json_object(raw, DeadlineParseResponse, DeadlineParseResponse())
        if parsed.requested_date is None:
            return None
        logger.info(f"Deadline request resolved by AI to {parsed.requested_date.isoformat()}")
        return as_utc(parsed.requested_date)
