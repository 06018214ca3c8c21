import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.deps import get_evaluation_queue, get_now
from app.schemas.automation import (
    QuestionnaireSendRequest,
    QuestionnaireSendResponse,
    QuestionnaireSubmitRequest,
    QuestionnaireSubmitResponse,
)
from app.services import questionnaire_service
from app.services.evaluator import EvaluationQueue

router = APIRouter(prefix="/questionnaire", tags=["Questionnaire"])
logger = logging.getLogger(__name__)


@router.post("/send", response_model=QuestionnaireSendResponse)
def send_questionnaire(request: QuestionnaireSendRequest, db: Session = Depends(get_db)):
    """
    Queue a soft-skills questionnaire for a candidate.

    The next automation tick picks the questions, creates the tokenized link
    and delivers it over the candidate's channel.
    """
    job_id = questionnaire_service.request_questionnaire(db, request.candidate_id, request.request_id)
    return QuestionnaireSendResponse(job_id=job_id)


@router.get("/{token}")
def get_questionnaire(token: str, db: Session = Depends(get_db)):
    """Questions of a sent questionnaire, for the public form."""
    response = questionnaire_service.get_by_token(db, token)
    return {
        "status": response.status.value,
        "expires_at": response.expires_at,
        "questions": [
            {"question_id": q["question_id"], "competency_name": q.get("competency_name"), "text": q["text"]}
            for q in response.questions
        ],
    }


@router.post("/{token}/submit", response_model=QuestionnaireSubmitResponse)
def submit_questionnaire(
    token: str,
    request: QuestionnaireSubmitRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    evaluations: EvaluationQueue = Depends(get_evaluation_queue)
):
    """Store answers and queue their AI evaluation; every question must be answered before expiry."""
    response = questionnaire_service.submit_questionnaire(db, token, request.answers, now)
    evaluations.questionnaire(response.id)
    return QuestionnaireSubmitResponse(answered=len(response.answers))
