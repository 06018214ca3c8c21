"""
Pytest configuration and fixtures for testing.

This file provides reusable test fixtures for:
- Database setup/teardown (in-memory SQLite)
- FastAPI test client with fake collaborators
- Fake AI completer, recording message senders and evaluation queue
- Factories for candidates, requests and matches
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  Register all models on Base.metadata
from app.core.database import Base, get_db
from app.core.deps import (
    get_completer,
    get_dispatcher,
    get_evaluation_queue,
    get_now,
    get_pacer,
    get_telegram_sender,
)
from app.core.exceptions import AIServiceError
from app.core.pacing import NoDelayPacer
from app.models.candidate import Candidate, CandidateSource
from app.models.hiring_request import HiringRequest
from app.models.match import CandidateRequestMatch
from app.models.pipeline import PipelineStage
from app.services.automation_handlers import AutomationContext
from app.services.message_generator import MessageGenerator
from app.services.messaging import DeliveryResult, MessageDispatcher
from main import app


# Use in-memory SQLite for testing (fast, isolated)
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Tuesday 11:00 in Kyiv
FIXED_NOW = datetime(2026, 2, 10, 9, 0, tzinfo=timezone.utc)


class FakeCompleter:
    """
    Scripted AICompleter. Returns queued responses in order; once the queue
    is empty every call raises AIServiceError so callers use their fallback.
    """

    def __init__(self, responses: Optional[List[str]] = None):
        self.responses = list(responses or [])
        self.prompts: List[str] = []

    def queue(self, *responses: str) -> None:
        self.responses.extend(responses)

    def complete(self, prompt: str, system: Optional[str] = None) -> str:
        self.prompts.append(prompt)
        if not self.responses:
            raise AIServiceError("AI unavailable in tests")
        return self.responses.pop(0)


class RecordingSender:
    """MessageSender that records every send and can be told to fail."""

    def __init__(self, fail_with: Optional[str] = None):
        self.sent: List[dict] = []
        self.fail_with = fail_with
        self.callback_answers: List[tuple] = []

    def send(self, identity: str, text: str, **options) -> DeliveryResult:
        self.sent.append({"identity": identity, "text": text, **options})
        if self.fail_with:
            return DeliveryResult(success=False, error=self.fail_with)
        return DeliveryResult(success=True, message_id=str(1000 + len(self.sent)))

    def answer_callback_query(self, callback_query_id: str, text: str = "OK") -> None:
        self.callback_answers.append((callback_query_id, text))


class RecordingEvaluationQueue:
    """EvaluationQueue that records what would be graded."""

    def __init__(self):
        self.test_tasks: List[int] = []
        self.questionnaires: List[int] = []

    def test_task(self, candidate_id: int) -> None:
        self.test_tasks.append(candidate_id)

    def questionnaire(self, response_id: int) -> None:
        self.questionnaires.append(response_id)


@pytest.fixture
def db_session():
    """
    Create a fresh database session for each test.
    Tables are dropped after the test completes.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def completer():
    return FakeCompleter()


@pytest.fixture
def telegram():
    return RecordingSender()


@pytest.fixture
def email():
    return RecordingSender()


@pytest.fixture
def dispatcher(telegram, email):
    return MessageDispatcher(telegram=telegram, email=email)


@pytest.fixture
def generator(completer):
    return MessageGenerator(completer)


@pytest.fixture
def evaluations():
    return RecordingEvaluationQueue()


@pytest.fixture
def automation_context(dispatcher, generator, now):
    return AutomationContext(dispatcher=dispatcher, generator=generator, now=now)


@pytest.fixture
def client(db_session, completer, telegram, dispatcher, evaluations, now):
    """
    FastAPI test client with the database, clock, AI and messaging
    dependencies replaced by test doubles.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: now
    app.dependency_overrides[get_completer] = lambda: completer
    app.dependency_overrides[get_telegram_sender] = lambda: telegram
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_pacer] = lambda: NoDelayPacer()
    app.dependency_overrides[get_evaluation_queue] = lambda: evaluations

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_candidate(db_session):
    """Factory for candidates; defaults to a warm, email-only candidate."""
    def _make(**kwargs) -> Candidate:
        defaults = {
            "first_name": "Олена",
            "last_name": "Коваль",
            "email": "olena@example.com",
            "source": CandidateSource.WARM,
            "pipeline_stage": PipelineStage.ANALYZED,
            "preferred_contact_methods": ["email"],
            "ai_score": 8.0,
            "ai_category": "strong",
            "ai_summary": "Досвідчений backend розробник",
            "ai_strengths": ["Python", "комунікація"],
            "key_skills": ["Python", "FastAPI"],
            "created_at": FIXED_NOW - timedelta(hours=1),
        }
        defaults.update(kwargs)
        candidate = Candidate(**defaults)
        db_session.add(candidate)
        db_session.commit()
        db_session.refresh(candidate)
        return candidate
    return _make


@pytest.fixture
def make_request(db_session):
    def _make(**kwargs) -> HiringRequest:
        defaults = {
            "title": "Python Developer",
            "description": "Backend development with FastAPI",
            "test_task_url": "https://example.com/task",
            "test_task_deadline_days": 3,
        }
        defaults.update(kwargs)
        request = HiringRequest(**defaults)
        db_session.add(request)
        db_session.commit()
        db_session.refresh(request)
        return request
    return _make


@pytest.fixture
def make_match(db_session):
    def _make(candidate, request, **kwargs) -> CandidateRequestMatch:
        defaults = {"match_score": 85.0}
        defaults.update(kwargs)
        match = CandidateRequestMatch(candidate_id=candidate.id, request_id=request.id, **defaults)
        db_session.add(match)
        db_session.commit()
        db_session.refresh(match)
        return match
    return _make
