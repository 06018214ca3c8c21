"""
Test suite for the HTTP API.

Tests cover:
- Trigger endpoints and cron secret authentication
- Outreach control and scheduling endpoints
- Analysis intake
- Final decision, test-task and questionnaire endpoints
- Telegram webhook
- Error response shape
"""

from datetime import timedelta, timezone

import pytest

from app.core.config import settings
from app.crud import automation_job as job_crud
from app.crud import outreach as outreach_crud
from app.models.automation_job import ActionType, AutomationJob, AutomationJobStatus
from app.models.candidate import TestTaskStatus as TaskStatus
from app.models.outreach import DeliveryMethod, OutreachItemStatus
from app.models.pipeline import PipelineStage
from app.models.questionnaire import QuestionnaireResponse

API = settings.API_V1_STR


@pytest.fixture
def scheduled_item(db_session, make_candidate, make_request, now):
    candidate = make_candidate()
    request = make_request()
    return outreach_crud.create(
        db_session,
        candidate_id=candidate.id,
        request_id=request.id,
        intro_message="Привіт, Олено! Маємо для тебе цікаву вакансію.",
        delivery_method=DeliveryMethod.EMAIL,
        scheduled_for=now + timedelta(hours=2),
    )


class TestHealth:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health(self, client):
        response = client.get(f"{API}/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_health_reports_queues(self, client, db_session, make_candidate, make_request):
        candidate = make_candidate()
        job_crud.enqueue(db_session, ActionType.SEND_INVITE, candidate.id, make_request().id)

        data = client.get(f"{API}/health/detailed").json()

        assert data["checks"]["database"]["status"] == "healthy"
        assert data["checks"]["automation_queue"]["pending"] == 1
        assert data["checks"]["outreach_queue"]["scheduled"] == 0


class TestCronAuth:
    """Trigger authentication"""

    def test_open_when_no_secret_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "")
        assert client.post(f"{API}/cron/process-automation").status_code == 200

    def test_missing_secret_rejected(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")

        response = client.get(f"{API}/cron/process-outreach")

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "unauthorized"

    def test_wrong_secret_rejected(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
        response = client.get(f"{API}/cron/process-outreach", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_bearer_header_accepted(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
        response = client.get(f"{API}/cron/process-outreach", headers={"Authorization": "Bearer s3cret"})
        assert response.status_code == 200

    def test_query_secret_accepted(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
        response = client.post(f"{API}/cron/process-automation?secret=s3cret")
        assert response.status_code == 200


class TestCronEndpoints:
    @pytest.fixture(autouse=True)
    def open_triggers(self, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "")

    def test_process_automation_runs_due_jobs(self, client, db_session, email, make_candidate, make_request, make_match):
        candidate = make_candidate(pipeline_stage=PipelineStage.INTERVIEW)
        request = make_request()
        make_match(candidate, request)
        job_crud.enqueue(db_session, ActionType.SEND_INVITE, candidate.id, request.id)

        response = client.post(f"{API}/cron/process-automation")

        assert response.status_code == 200
        data = response.json()
        assert data["processed"] == 1
        assert data["successful"] == 1
        assert data["errors"] == []
        assert email.sent[0]["identity"] == "olena@example.com"

    def test_process_automation_reports_failures(self, client, db_session, email, make_candidate, make_request):
        candidate = make_candidate(pipeline_stage=PipelineStage.INTERVIEW)
        job_id = job_crud.enqueue(db_session, ActionType.SEND_INVITE, candidate.id, make_request().id)
        email.fail_with = "bounced"

        data = client.get(f"{API}/cron/process-automation").json()

        assert data["failed"] == 1
        assert data["errors"][0].startswith(f"Job {job_id}:")

    def test_process_outreach_sends_due_items(self, client, db_session, email, scheduled_item, now):
        scheduled_item.scheduled_for = now - timedelta(minutes=1)
        db_session.commit()

        data = client.post(f"{API}/cron/process-outreach").json()

        assert data["processed"] == 1
        assert data["successful"] == 1
        assert len(email.sent) == 1

    def test_cancel_pending_job(self, client, db_session, make_candidate, make_request):
        candidate = make_candidate()
        job_id = job_crud.enqueue(db_session, ActionType.SEND_INVITE, candidate.id, make_request().id)

        response = client.post(f"{API}/cron/jobs/{job_id}/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == AutomationJobStatus.CANCELLED.value

    def test_cancel_unknown_job(self, client):
        response = client.post(f"{API}/cron/jobs/999/cancel")
        assert response.status_code == 404

    def test_cancel_finished_job(self, client, db_session, make_candidate, make_request):
        candidate = make_candidate()
        job_id = job_crud.enqueue(db_session, ActionType.SEND_INVITE, candidate.id, make_request().id)
        job = db_session.query(AutomationJob).filter(AutomationJob.id == job_id).one()
        job.status = AutomationJobStatus.COMPLETED
        db_session.commit()

        response = client.post(f"{API}/cron/jobs/{job_id}/cancel")

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "precondition_failed"


class TestOutreachEndpoints:
    def test_cancel(self, client, db_session, scheduled_item):
        response = client.post(f"{API}/outreach/cancel", json={"outreach_id": scheduled_item.id})

        assert response.status_code == 200
        assert response.json() == {"success": True, "cancelled": 1}
        db_session.refresh(scheduled_item)
        assert scheduled_item.status == OutreachItemStatus.CANCELLED

    def test_cancel_requires_target(self, client):
        assert client.post(f"{API}/outreach/cancel", json={}).status_code == 422

    def test_cancel_sent_item_is_404(self, client, db_session, scheduled_item):
        scheduled_item.status = OutreachItemStatus.SENT
        db_session.commit()

        response = client.post(f"{API}/outreach/cancel", json={"outreach_id": scheduled_item.id})

        assert response.status_code == 404

    def test_edit(self, client, scheduled_item, now):
        new_time = (now + timedelta(hours=5)).isoformat()

        response = client.post(
            f"{API}/outreach/edit",
            json={"outreach_id": scheduled_item.id, "message": "Новий текст", "scheduled_for": new_time},
            headers={"X-Manager-Id": "anna"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["intro_message"] == "Новий текст"
        assert data["edited_by"] == "anna"

    def test_edit_requires_a_change(self, client, scheduled_item):
        response = client.post(f"{API}/outreach/edit", json={"outreach_id": scheduled_item.id})
        assert response.status_code == 422

    def test_send_now(self, client, email, scheduled_item):
        response = client.post(f"{API}/outreach/send-now", json={"outreach_id": scheduled_item.id})

        assert response.status_code == 200
        assert response.json()["message_id"] == "1001"
        assert email.sent[0]["text"].startswith("Привіт, Олено!")

    def test_send_now_delivery_failure(self, client, email, scheduled_item):
        email.fail_with = "bounced"

        response = client.post(f"{API}/outreach/send-now", json={"outreach_id": scheduled_item.id})

        assert response.status_code == 502
        assert response.json()["detail"] == {"error": "delivery_failed", "message": "bounced"}

    def test_schedule(self, client, db_session, make_candidate, make_request, make_match, now):
        candidate = make_candidate()
        request = make_request()
        make_match(candidate, request)

        response = client.post(
            f"{API}/outreach/schedule", json={"candidate_id": candidate.id, "message": "Привіт, Олено!"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["request_id"] == request.id
        assert data["sent"] is False
        item = outreach_crud.get_by_id(db_session, data["outreach_id"])
        assert item.status == OutreachItemStatus.SCHEDULED
        assert item.delivery_method == DeliveryMethod.EMAIL
        assert item.scheduled_for.replace(tzinfo=timezone.utc) > now

    def test_schedule_twice_is_rejected(self, client, make_candidate):
        candidate = make_candidate()
        body = {"candidate_id": candidate.id, "message": "Привіт, Олено!"}

        first = client.post(f"{API}/outreach/schedule", json=body)
        second = client.post(f"{API}/outreach/schedule", json=body)

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["detail"]["error"] == "precondition_failed"

    def test_schedule_and_send_now(self, client, email, make_candidate):
        candidate = make_candidate()

        response = client.post(
            f"{API}/outreach/schedule",
            json={"candidate_id": candidate.id, "message": "Привіт, Олено!", "send_now": True},
        )

        assert response.status_code == 200
        assert response.json()["sent"] is True
        assert response.json()["message_id"] == "1001"
        assert email.sent[0]["text"] == "Привіт, Олено!"

    def test_schedule_on_missing_channel(self, client, make_candidate):
        candidate = make_candidate()

        response = client.post(
            f"{API}/outreach/schedule",
            json={"candidate_id": candidate.id, "message": "Привіт!", "delivery_method": "telegram"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "missing_contact_detail"

    def test_generate(self, client, make_candidate, make_request, make_match):
        candidate = make_candidate()
        request = make_request()
        make_match(candidate, request)

        response = client.post(f"{API}/outreach/generate", json={"candidate_id": candidate.id})

        assert response.status_code == 200
        data = response.json()
        assert data["message"].startswith("Привіт, Олена!")
        assert data["delivery_method"] == "email"
        assert data["request_id"] == request.id

    def test_generate_unknown_candidate(self, client):
        response = client.post(f"{API}/outreach/generate", json={"candidate_id": 999})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "not_found"


class TestFinalDecisionEndpoint:
    def test_invite_then_conflict(self, client, make_candidate, make_request, make_match):
        candidate = make_candidate(pipeline_stage=PipelineStage.TEST_DONE)
        request = make_request()
        make_match(candidate, request)
        url = f"{API}/candidates/{candidate.id}/final-decision"

        first = client.post(url, json={"decision": "invite", "request_id": request.id}, headers={"X-Manager-Id": "anna"})
        again = client.post(url, json={"decision": "invite", "request_id": request.id})
        conflict = client.post(url, json={"decision": "reject", "request_id": request.id})

        assert first.status_code == 200
        assert first.json()["decision"] == "invite"
        assert first.json()["already_recorded"] is False
        assert again.json()["already_recorded"] is True
        assert again.json()["job_id"] == first.json()["job_id"]
        assert conflict.status_code == 409
        assert conflict.json()["detail"]["error"] == "decision_conflict"

    def test_unknown_candidate(self, client):
        response = client.post(f"{API}/candidates/999/final-decision", json={"decision": "reject", "request_id": 1})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "not_found"

    def test_invalid_decision(self, client):
        response = client.post(f"{API}/candidates/1/final-decision", json={"decision": "maybe", "request_id": 1})
        assert response.status_code == 422


class TestAnalysisEndpoint:
    """Analysis results start outreach by exactly one route"""

    ANALYSIS = {"score": 8.5, "category": "strong", "summary": "Сильний backend", "strengths": ["Python"]}

    def test_approved_template_queues_automated_outreach(
        self, client, db_session, make_candidate, make_request, make_match
    ):
        candidate = make_candidate(pipeline_stage=PipelineStage.NEW, telegram_chat_id=5551234)
        request = make_request(outreach_template="Привіт, {name}!", outreach_template_approved=True)
        make_match(candidate, request)

        response = client.post(f"{API}/candidates/{candidate.id}/analysis-complete", json=self.ANALYSIS)

        assert response.status_code == 200
        data = response.json()
        assert data["outreach_id"] is None
        job = db_session.query(AutomationJob).filter(AutomationJob.id == data["job_id"]).one()
        assert job.action_type == ActionType.SEND_OUTREACH
        assert job.request_id == request.id
        assert outreach_crud.get_scheduled_for_candidate(db_session, candidate.id) == []
        db_session.refresh(candidate)
        assert candidate.pipeline_stage == PipelineStage.ANALYZED
        assert candidate.ai_score == 8.5
        assert candidate.ai_summary == "Сильний backend"

    def test_unapproved_template_schedules_warm_intro(
        self, client, db_session, make_candidate, make_request, make_match
    ):
        candidate = make_candidate(pipeline_stage=PipelineStage.NEW, telegram_chat_id=5551234)
        request = make_request(outreach_template="Привіт, {name}!")
        make_match(candidate, request)

        response = client.post(f"{API}/candidates/{candidate.id}/analysis-complete", json=self.ANALYSIS)

        data = response.json()
        assert data["job_id"] is None
        item = outreach_crud.get_by_id(db_session, data["outreach_id"])
        assert item.request_id == request.id
        assert item.intro_message.startswith("Привіт, Олена!")
        assert db_session.query(AutomationJob).count() == 0

    def test_low_score_is_only_recorded(self, client, db_session, make_candidate):
        candidate = make_candidate(pipeline_stage=PipelineStage.NEW)

        response = client.post(
            f"{API}/candidates/{candidate.id}/analysis-complete", json={"score": 4, "category": "weak"}
        )

        assert response.json() == {"outreach_id": None, "job_id": None}
        db_session.refresh(candidate)
        assert candidate.pipeline_stage == PipelineStage.ANALYZED
        assert candidate.ai_category == "weak"

    def test_unknown_candidate(self, client):
        response = client.post(f"{API}/candidates/999/analysis-complete", json=self.ANALYSIS)
        assert response.status_code == 404


class TestTestTaskEndpoints:
    def test_extend_deadline(self, client, make_candidate, now):
        deadline = now.replace(hour=18)
        candidate = make_candidate(
            pipeline_stage=PipelineStage.TEST_SENT,
            test_task_status=TaskStatus.SENT,
            test_task_current_deadline=deadline,
        )

        response = client.post(
            f"{API}/test-task/extend-deadline",
            json={"candidate_id": candidate.id, "request_text": "можна до четверга?"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["granted"] is True
        assert data["extensions_count"] == 1

    def test_extend_without_deadline(self, client, make_candidate):
        candidate = make_candidate()

        response = client.post(
            f"{API}/test-task/extend-deadline", json={"candidate_id": candidate.id, "request_text": "ще 2 дні"}
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "precondition_failed"

    def test_schedule_and_submit(self, client, db_session, evaluations, make_candidate, make_request, make_match):
        candidate = make_candidate(pipeline_stage=PipelineStage.OUTREACH_SENT)
        make_match(candidate, make_request())

        scheduled = client.post(
            f"{API}/test-task/schedule", json={"candidate_id": candidate.id, "send_immediately": True}
        )
        submitted = client.post(
            f"{API}/test-task/submit",
            json={"candidate_id": candidate.id, "submission_text": "https://github.com/olena/task"},
        )

        assert scheduled.status_code == 200
        assert scheduled.json()["outreach_id"]
        assert submitted.status_code == 200
        assert submitted.json()["status"] == "submitted_on_time"
        db_session.refresh(candidate)
        assert candidate.pipeline_stage == PipelineStage.TEST_DONE
        assert candidate.test_task_status == TaskStatus.EVALUATING
        assert evaluations.test_tasks == [candidate.id]

    def test_decide(self, client, email, make_candidate, make_request, make_match):
        candidate = make_candidate(pipeline_stage=PipelineStage.TEST_DONE, test_task_status=TaskStatus.SUBMITTED)
        make_match(candidate, make_request())

        response = client.post(
            f"{API}/test-task/decide",
            json={"candidate_id": candidate.id, "decision": "approved", "message": "Вітаємо!"},
        )

        assert response.status_code == 200
        assert response.json()["delivered"] is True
        assert email.sent[0]["text"] == "Вітаємо!"

    def test_generate_decision_message(self, client, make_candidate):
        candidate = make_candidate()

        response = client.post(
            f"{API}/test-task/generate-decision-message",
            json={"candidate_id": candidate.id, "decision": "rejected"},
        )

        assert response.status_code == 200
        assert "не продовжувати" in response.json()["message"]

    def test_unknown_candidate(self, client):
        response = client.post(f"{API}/test-task/submit", json={"candidate_id": 999, "submission_text": "x"})
        assert response.status_code == 404


class TestQuestionnaireEndpoints:
    @pytest.fixture
    def questionnaire(self, db_session, make_candidate, make_request, now):
        candidate = make_candidate(pipeline_stage=PipelineStage.QUESTIONNAIRE_SENT)
        response = QuestionnaireResponse(
            candidate_id=candidate.id,
            request_id=make_request().id,
            token="tok-abc",
            questions=[{"question_id": 7, "competency_id": 1, "competency_name": "Команда", "text": "Як ви працюєте в команді?"}],
            expires_at=now + timedelta(days=5),
        )
        db_session.add(response)
        db_session.commit()
        return response

    def test_get(self, client, questionnaire):
        response = client.get(f"{API}/questionnaire/tok-abc")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "sent"
        assert data["questions"] == [{"question_id": 7, "competency_name": "Команда", "text": "Як ви працюєте в команді?"}]

    def test_get_unknown_token(self, client):
        assert client.get(f"{API}/questionnaire/nope").status_code == 404

    def test_submit(self, client, evaluations, questionnaire):
        response = client.post(f"{API}/questionnaire/tok-abc/submit", json={"answers": {"7": "Добре"}})

        assert response.status_code == 200
        assert response.json() == {"success": True, "answered": 1}
        assert evaluations.questionnaires == [questionnaire.id]

    def test_submit_missing_answer(self, client, evaluations, questionnaire):
        response = client.post(f"{API}/questionnaire/tok-abc/submit", json={"answers": {}})

        assert response.status_code == 400
        assert "Unanswered" in response.json()["detail"]["message"]
        assert evaluations.questionnaires == []

    def test_send(self, client, db_session, make_candidate, make_request):
        candidate = make_candidate(pipeline_stage=PipelineStage.OUTREACH_SENT)
        request = make_request(questionnaire_competency_ids=[1, 2])

        response = client.post(
            f"{API}/questionnaire/send", json={"candidate_id": candidate.id, "request_id": request.id}
        )

        assert response.status_code == 200
        job = db_session.query(AutomationJob).filter(AutomationJob.id == response.json()["job_id"]).one()
        assert job.action_type == ActionType.SEND_QUESTIONNAIRE
        assert job.status == AutomationJobStatus.PENDING

    def test_send_without_configured_questions(self, client, make_candidate, make_request):
        candidate = make_candidate(pipeline_stage=PipelineStage.OUTREACH_SENT)

        response = client.post(
            f"{API}/questionnaire/send", json={"candidate_id": candidate.id, "request_id": make_request().id}
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "precondition_failed"

    def test_send_to_unknown_request(self, client, make_candidate):
        response = client.post(
            f"{API}/questionnaire/send", json={"candidate_id": make_candidate().id, "request_id": 999}
        )
        assert response.status_code == 404


class TestTelegramWebhook:
    def test_start_command(self, client, telegram):
        update = {"update_id": 1, "message": {"chat": {"id": 42}, "from": {"first_name": "Олена"}, "text": "/start"}}

        response = client.post(f"{API}/webhooks/telegram", json=update)

        assert response.json() == {"ok": True}
        assert telegram.sent[0]["identity"] == "42"

    def test_invalid_json_still_ok(self, client):
        response = client.post(
            f"{API}/webhooks/telegram", content=b"not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_non_object_update_still_ok(self, client, telegram):
        response = client.post(f"{API}/webhooks/telegram", json=[1, 2, 3])

        assert response.json() == {"ok": True}
        assert telegram.sent == []

    def test_handler_crash_still_ok(self, client, telegram):
        """Malformed message without a chat is logged, not returned as an error"""
        response = client.post(f"{API}/webhooks/telegram", json={"update_id": 5, "message": {"text": "hi"}})

        assert response.status_code == 200
        assert response.json() == {"ok": True}
