"""
Test suite for automation job handlers.

Tests cover:
- send_outreach (approved template, inline buttons)
- send_questionnaire (question selection, token, expiry)
- send_test_task (deadline, idempotency)
- send_invite / send_rejection
- Validation before any message is sent
"""

import random
from datetime import datetime, timezone

import pytest

from app.core.exceptions import (
    DeliveryFailedError,
    InvalidStageTransitionError,
    MissingContactDetailError,
    PreconditionFailedError,
)
from app.crud import automation_job as job_crud
from app.models.automation_job import ActionType, AutomationJob
from app.models.candidate import OutreachStatus, QuestionnaireStatus, TestTaskStatus as TaskStatus
from app.models.conversation import ConversationEntry
from app.models.pipeline import PipelineStage
from app.models.questionnaire import (
    QuestionnaireQuestion,
    QuestionnaireResponse,
    SoftSkillCompetency,
)
from app.services.automation_handlers import (
    INVITE_MESSAGE,
    REJECTION_MESSAGE,
    handle_send_invite,
    handle_send_outreach,
    handle_send_questionnaire,
    handle_send_rejection,
    handle_send_test_task,
    select_questions,
)


def _job(db_session, action, candidate, request):
    job_id = job_crud.enqueue(db_session, action, candidate.id, request.id)
    return db_session.query(AutomationJob).filter(AutomationJob.id == job_id).one()


def _entries(db_session, candidate, message_type):
    return db_session.query(ConversationEntry).filter(
        ConversationEntry.candidate_id == candidate.id,
        ConversationEntry.message_type == message_type
    ).all()


class TestSendOutreach:
    """Tests for the automated outreach handler"""

    def test_sends_personalized_template_with_buttons(
        self, db_session, make_candidate, make_request, make_match, automation_context, completer, telegram, now
    ):
        candidate = make_candidate(telegram_username="olena", telegram_chat_id=555)
        request = make_request(outreach_template="Шукаємо Python розробника.", outreach_template_approved=True)
        match = make_match(candidate, request)
        completer.queue("Привіт, Олено! Бачимо твій досвід з Python і хочемо запропонувати розмову про позицію.")

        handle_send_outreach(db_session, _job(db_session, ActionType.SEND_OUTREACH, candidate, request), automation_context)
        db_session.commit()

        assert len(telegram.sent) == 1
        sent = telegram.sent[0]
        assert sent["identity"] == "555"
        buttons = sent["reply_markup"]["inline_keyboard"][0]
        assert buttons[0]["callback_data"] == f"outreach_yes:{candidate.id}:{request.id}"
        assert buttons[1]["callback_data"] == f"outreach_no:{candidate.id}:{request.id}"

        db_session.refresh(candidate)
        db_session.refresh(match)
        assert candidate.pipeline_stage == PipelineStage.OUTREACH_SENT
        assert candidate.outreach_status == OutreachStatus.SENT
        assert match.outreach_telegram_message_id == 1001
        entry = _entries(db_session, candidate, "outreach")[0]
        assert entry.meta["automated"] is True

    def test_requires_chat_id(self, db_session, make_candidate, make_request, automation_context, telegram):
        candidate = make_candidate(telegram_username="olena")
        request = make_request(outreach_template="Шукаємо.", outreach_template_approved=True)

        with pytest.raises(PreconditionFailedError):
            handle_send_outreach(db_session, _job(db_session, ActionType.SEND_OUTREACH, candidate, request), automation_context)
        assert telegram.sent == []

    def test_requires_approved_template(self, db_session, make_candidate, make_request, automation_context, telegram):
        candidate = make_candidate(telegram_chat_id=555)
        request = make_request(outreach_template="Шукаємо.", outreach_template_approved=False)

        with pytest.raises(PreconditionFailedError):
            handle_send_outreach(db_session, _job(db_session, ActionType.SEND_OUTREACH, candidate, request), automation_context)
        assert telegram.sent == []


class TestSendQuestionnaire:
    """Tests for questionnaire composition and delivery"""

    @pytest.fixture
    def competencies(self, db_session):
        comm = SoftSkillCompetency(name="Комунікація")
        team = SoftSkillCompetency(name="Командна робота")
        db_session.add_all([comm, team])
        db_session.flush()
        for i in range(5):
            db_session.add(QuestionnaireQuestion(competency_id=comm.id, text=f"Комунікація {i}"))
            db_session.add(QuestionnaireQuestion(competency_id=team.id, text=f"Команда {i}"))
        db_session.add(QuestionnaireQuestion(competency_id=comm.id, text="Неактивне", is_active=False))
        db_session.commit()
        return comm, team

    def test_select_questions_per_competency(self, db_session, make_request, competencies):
        comm, team = competencies
        request = make_request(questionnaire_competency_ids=[comm.id, team.id])

        questions = select_questions(db_session, request, random.Random(1))

        per_competency = {}
        for q in questions:
            per_competency.setdefault(q["competency_id"], []).append(q)
        assert set(per_competency) == {comm.id, team.id}
        for picked in per_competency.values():
            assert 3 <= len(picked) <= 4
        assert all(q["text"] != "Неактивне" for q in questions)
        assert per_competency[comm.id][0]["competency_name"] == "Комунікація"

    def test_explicit_questions_are_deduplicated(self, db_session, make_request, competencies):
        comm, _ = competencies
        first = db_session.query(QuestionnaireQuestion).filter(QuestionnaireQuestion.competency_id == comm.id).all()
        ids = [q.id for q in first if q.is_active]
        request = make_request(questionnaire_competency_ids=[comm.id], questionnaire_question_ids=ids)

        questions = select_questions(db_session, request, random.Random(2))

        assert sorted(q["question_id"] for q in questions) == sorted(ids)

    def test_sends_link_and_stores_response(
        self, db_session, make_candidate, make_request, automation_context, email, competencies, now
    ):
        comm, _ = competencies
        candidate = make_candidate(pipeline_stage=PipelineStage.OUTREACH_SENT)
        request = make_request(questionnaire_competency_ids=[comm.id])

        handle_send_questionnaire(
            db_session, _job(db_session, ActionType.SEND_QUESTIONNAIRE, candidate, request), automation_context
        )
        db_session.commit()

        response = db_session.query(QuestionnaireResponse).one()
        assert f"/questionnaire/{response.token}" in email.sent[0]["text"]
        assert response.expires_at.replace(tzinfo=timezone.utc) == datetime(2026, 2, 15, 9, 0, tzinfo=timezone.utc)
        db_session.refresh(candidate)
        assert candidate.pipeline_stage == PipelineStage.QUESTIONNAIRE_SENT
        assert candidate.questionnaire_status == QuestionnaireStatus.SENT
        assert _entries(db_session, candidate, "questionnaire_sent")[0].meta["token"] == response.token

    def test_requires_configuration(self, db_session, make_candidate, make_request, automation_context, email):
        candidate = make_candidate()
        request = make_request()

        with pytest.raises(PreconditionFailedError):
            handle_send_questionnaire(
                db_session, _job(db_session, ActionType.SEND_QUESTIONNAIRE, candidate, request), automation_context
            )
        assert email.sent == []


class TestSendTestTask:
    """Tests for automated test-task delivery"""

    def test_sends_task_and_sets_deadline(self, db_session, make_candidate, make_request, automation_context, email):
        candidate = make_candidate(pipeline_stage=PipelineStage.OUTREACH_SENT)
        request = make_request()

        handle_send_test_task(db_session, _job(db_session, ActionType.SEND_TEST_TASK, candidate, request), automation_context)
        db_session.commit()

        assert "https://example.com/task" in email.sent[0]["text"]
        assert "тестове завдання" in email.sent[0]["subject"]
        db_session.refresh(candidate)
        deadline = datetime(2026, 2, 13, 16, 0, tzinfo=timezone.utc)  # 18:00 Kyiv
        assert candidate.pipeline_stage == PipelineStage.TEST_SENT
        assert candidate.test_task_status == TaskStatus.SENT
        assert candidate.test_task_current_deadline.replace(tzinfo=timezone.utc) == deadline
        assert candidate.test_task_original_deadline.replace(tzinfo=timezone.utc) == deadline

    def test_already_sent_is_noop(self, db_session, make_candidate, make_request, automation_context, email):
        candidate = make_candidate(test_task_status=TaskStatus.SENT, pipeline_stage=PipelineStage.TEST_SENT)
        request = make_request()

        handle_send_test_task(db_session, _job(db_session, ActionType.SEND_TEST_TASK, candidate, request), automation_context)

        assert email.sent == []

    def test_requires_task_url(self, db_session, make_candidate, make_request, automation_context):
        candidate = make_candidate()
        request = make_request(test_task_url=None)

        with pytest.raises(PreconditionFailedError):
            handle_send_test_task(db_session, _job(db_session, ActionType.SEND_TEST_TASK, candidate, request), automation_context)

    def test_illegal_stage_sends_nothing(self, db_session, make_candidate, make_request, automation_context, email):
        candidate = make_candidate(pipeline_stage=PipelineStage.REJECTED)
        request = make_request()

        with pytest.raises(InvalidStageTransitionError):
            handle_send_test_task(db_session, _job(db_session, ActionType.SEND_TEST_TASK, candidate, request), automation_context)
        assert email.sent == []


class TestFinalDecisionHandlers:
    """Tests for send_invite and send_rejection"""

    def test_invite(self, db_session, make_candidate, make_request, automation_context, email):
        candidate = make_candidate(pipeline_stage=PipelineStage.INTERVIEW)
        request = make_request()

        handle_send_invite(db_session, _job(db_session, ActionType.SEND_INVITE, candidate, request), automation_context)
        db_session.commit()

        assert email.sent[0]["text"] == INVITE_MESSAGE
        entry = _entries(db_session, candidate, "final_decision")[0]
        assert entry.meta["decision"] == "invite"

    def test_rejection(self, db_session, make_candidate, make_request, automation_context, email):
        candidate = make_candidate(pipeline_stage=PipelineStage.REJECTED)
        request = make_request()

        handle_send_rejection(db_session, _job(db_session, ActionType.SEND_REJECTION, candidate, request), automation_context)
        db_session.commit()

        assert email.sent[0]["text"] == REJECTION_MESSAGE
        assert _entries(db_session, candidate, "final_decision")[0].meta["decision"] == "reject"

    def test_uses_telegram_when_preferred(self, db_session, make_candidate, make_request, automation_context, telegram, email):
        candidate = make_candidate(
            pipeline_stage=PipelineStage.INTERVIEW,
            preferred_contact_methods=["telegram", "email"],
            telegram_username="olena"
        )
        request = make_request()

        handle_send_invite(db_session, _job(db_session, ActionType.SEND_INVITE, candidate, request), automation_context)

        assert telegram.sent[0]["identity"] == "@olena"
        assert email.sent == []

    def test_delivery_failure_raises(self, db_session, make_candidate, make_request, automation_context, email):
        candidate = make_candidate(pipeline_stage=PipelineStage.INTERVIEW)
        request = make_request()
        email.fail_with = "bounced"

        with pytest.raises(DeliveryFailedError) as exc_info:
            handle_send_invite(db_session, _job(db_session, ActionType.SEND_INVITE, candidate, request), automation_context)
        assert exc_info.value.message == "bounced"

    def test_missing_email_raises(self, db_session, make_candidate, make_request, automation_context):
        candidate = make_candidate(pipeline_stage=PipelineStage.INTERVIEW, email=None)
        request = make_request()

        with pytest.raises(MissingContactDetailError):
            handle_send_invite(db_session, _job(db_session, ActionType.SEND_INVITE, candidate, request), automation_context)
