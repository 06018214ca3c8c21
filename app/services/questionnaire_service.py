"""
Soft-skills questionnaire: queueing one for a candidate and storing the
submitted answers.
"""

import logging
from datetime import datetime
from typing import Dict

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, PreconditionFailedError
from app.core.timeutils import as_utc
from app.crud import automation_job as job_crud
from app.crud import candidate as candidate_crud
from app.crud import conversation as conversation_crud
from app.models.automation_job import ActionType
from app.models.candidate import QuestionnaireStatus
from app.models.conversation import MessageDirection
from app.models.hiring_request import HiringRequest
from app.models.pipeline import PipelineStage, check_transition, transition
from app.models.questionnaire import QuestionnaireResponse, QuestionnaireResponseStatus

logger = logging.getLogger(__name__)


def get_by_token(db: Session, token: str) -> QuestionnaireResponse:
    response = db.query(QuestionnaireResponse).filter(QuestionnaireResponse.token == token).first()
    if response is None:
        raise NotFoundError("Questionnaire not found")
    return response


def submit_questionnaire(db: Session, token: str, answers: Dict, now: datetime) -> QuestionnaireResponse:
    """
    Store a candidate's questionnaire answers.

    Args:
        db: Database session
        token: Questionnaire token from the link
        answers: Answer text keyed by question id
        now: Submission time

    Returns:
        The completed QuestionnaireResponse

    Raises:
        NotFoundError: Unknown token
        PreconditionFailedError: Already completed, expired, or a question is unanswered
    """
    response = get_by_token(db, token)

    if response.status == QuestionnaireResponseStatus.COMPLETED:
        raise PreconditionFailedError("Questionnaire already submitted")
    if response.expires_at and as_utc(now) > as_utc(response.expires_at):
        raise PreconditionFailedError("Questionnaire has expired")

    normalized = {str(key): str(value).strip() for key, value in (answers or {}).items() if value is not None}
    missing = [
        q["question_id"] for q in response.questions
        if not normalized.get(str(q["question_id"]))
    ]
    if missing:
        raise PreconditionFailedError(f"Unanswered questions: {', '.join(str(qid) for qid in missing)}")

    candidate = candidate_crud.get_by_id(db, response.candidate_id)
    if candidate is None:
        raise NotFoundError(f"Candidate {response.candidate_id} not found")

    transition(candidate, PipelineStage.QUESTIONNAIRE_DONE)
    candidate.questionnaire_status = QuestionnaireStatus.COMPLETED

    response.answers = {str(q["question_id"]): normalized[str(q["question_id"])] for q in response.questions}
    response.status = QuestionnaireResponseStatus.COMPLETED
    response.submitted_at = as_utc(now)

    conversation_crud.append(
        db, candidate.id, MessageDirection.INBOUND, "questionnaire_completed",
        f"Анкету заповнено ({len(response.questions)} відповідей)",
        meta={"token": token, "request_id": response.request_id, "answered": len(response.questions)}
    )
    logger.info(f"Questionnaire {response.id} completed by candidate {candidate.id}")
    return response


def request_questionnaire(db: Session, candidate_id: int, request_id: int) -> int:
    """
    Queue a soft-skills questionnaire for a candidate.

    The questionnaire itself is built and delivered by the SEND_QUESTIONNAIRE
    automation job; this checks what can be checked up front.

    Returns:
        Id of the queued (or already pending) automation job

    Raises:
        NotFoundError: Candidate or request does not exist
        PreconditionFailedError: Already sent, or the request has no questionnaire configured
    """
    candidate = candidate_crud.get_by_id(db, candidate_id)
    if candidate is None:
        raise NotFoundError(f"Candidate {candidate_id} not found")
    request = db.query(HiringRequest).filter(HiringRequest.id == request_id).first()
    if request is None:
        raise NotFoundError(f"Request {request_id} not found")

    if candidate.questionnaire_status in (QuestionnaireStatus.SENT, QuestionnaireStatus.COMPLETED):
        raise PreconditionFailedError(f"Questionnaire already {candidate.questionnaire_status.value}")
    if not request.questionnaire_competency_ids and not request.questionnaire_question_ids:
        raise PreconditionFailedError("No questionnaire competencies/questions configured for this request")
    check_transition(candidate, PipelineStage.QUESTIONNAIRE_SENT)

    job_id = job_crud.enqueue(db, ActionType.SEND_QUESTIONNAIRE, candidate_id, request_id)
    logger.info(f"Questionnaire for candidate {candidate_id} and request {request_id} queued as job {job_id}")
    return job_id
