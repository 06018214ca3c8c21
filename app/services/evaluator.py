"""
AI grading of submitted work.

Test-task submissions and soft-skills questionnaires are graded after the
candidate submits, off the request path (see app.tasks.evaluation_tasks).
An unusable AI answer never loses the submission: it is flagged for manual
review instead.
"""

import logging
from typing import Optional, Protocol, Type

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.exceptions import AIServiceError, NotFoundError
from app.crud import match as match_crud
from app.models.candidate import Candidate, TestTaskStatus
from app.models.hiring_request import HiringRequest
from app.models.questionnaire import QuestionnaireResponse, QuestionnaireResponseStatus
from app.schemas.ai import QuestionnaireEvaluation, TestTaskEvaluation
from app.services import prompts
from app.services.ai_client import AICompleter, decode_json_object

logger = logging.getLogger(__name__)

DEFAULT_EVALUATION_CRITERIA = "Quality, completeness, clarity"
DEFAULT_TASK_DESCRIPTION = "Test task"
TEST_TASK_MANUAL_REVIEW = "Error during automatic evaluation. Manual review needed."
QUESTIONNAIRE_MANUAL_REVIEW = "Помилка автоматичної оцінки. Потрібна ручна перевірка."


class EvaluationQueue(Protocol):
    """Hands submissions off for grading."""

    def test_task(self, candidate_id: int) -> None:
        ...

    def questionnaire(self, response_id: int) -> None:
        ...


def format_test_task_evaluation(evaluation: TestTaskEvaluation) -> str:
    """Evaluation as the text shown to the manager and fed to the decision message."""
    lines = [f"**Score: {evaluation.score:g}/10**", "", evaluation.evaluation]
    if evaluation.strengths:
        lines += ["", "**Strengths:**"] + [f"• {s}" for s in evaluation.strengths]
    if evaluation.improvements:
        lines += ["", "**Areas for improvement:**"] + [f"• {i}" for i in evaluation.improvements]
    return "\n".join(lines)


def _task_description(request: Optional[HiringRequest]) -> str:
    if request is None:
        return DEFAULT_TASK_DESCRIPTION
    parts = [request.title, request.description, request.test_task_url]
    return "\n".join(part for part in parts if part) or DEFAULT_TASK_DESCRIPTION


class SubmissionEvaluator:
    """Grades test tasks and questionnaires with the AI completer."""

    def __init__(self, completer: AICompleter):
        self.completer = completer

    def _ask(self, prompt: str, schema: Type, kind: str, owner_id: int):
        try:
            raw = self.completer.complete(prompt, system=prompts.SYSTEM_JSON)
        except AIServiceError as e:
            logger.warning(f"{kind} evaluation {owner_id}: AI unavailable: {e}")
            return None
        return decode_json_object(raw, schema, None)

    def evaluate_test_task(self, db: Session, candidate_id: int) -> Optional[TestTaskEvaluation]:
        """
        Grade a candidate's test-task submission.

        Only a submission still in EVALUATING is graded, and the result is
        written back only while it stays there, so a manager decision taken
        in the meantime is never overwritten. Success moves the task to
        EVALUATED with the score and evaluation text; failure moves it back
        to SUBMITTED with a manual-review note.

        Args:
            db: Database session
            candidate_id: Candidate whose submission to grade

        Returns:
            The evaluation, or None when skipped or failed

        Raises:
            NotFoundError: Unknown candidate
        """
        candidate = db.query(Candidate).filter(Candidate.id == candidate_id).first()
        if candidate is None:
            raise NotFoundError(f"Candidate {candidate_id} not found")
        if candidate.test_task_status != TestTaskStatus.EVALUATING:
            logger.info(f"Test task of candidate {candidate_id} is {candidate.test_task_status}, not evaluating")
            return None

        request = None
        match = match_crud.get_best_match(db, candidate_id)
        if match is not None:
            request = db.query(HiringRequest).filter(HiringRequest.id == match.request_id).first()
        criteria = (request.test_task_evaluation_criteria if request is not None else None) or DEFAULT_EVALUATION_CRITERIA

        prompt = prompts.test_task_evaluation_prompt(
            candidate.test_task_submission_text or "", criteria, _task_description(request)
        )
        evaluation = self._ask(prompt, TestTaskEvaluation, "Test task", candidate_id)

        if evaluation is None:
            values = {
                "test_task_status": TestTaskStatus.SUBMITTED,
                "test_task_ai_evaluation": TEST_TASK_MANUAL_REVIEW,
            }
        else:
            values = {
                "test_task_status": TestTaskStatus.EVALUATED,
                "test_task_ai_score": evaluation.score,
                "test_task_ai_evaluation": format_test_task_evaluation(evaluation),
            }

        updated = db.execute(
            update(Candidate)
            .where(Candidate.id == candidate_id, Candidate.test_task_status == TestTaskStatus.EVALUATING)
            .values(**values)
            .execution_options(synchronize_session=False)
        ).rowcount
        db.commit()

        if not updated:
            logger.info(f"Test task of candidate {candidate_id} changed during evaluation, result discarded")
            return None
        if evaluation is None:
            logger.warning(f"Test task of candidate {candidate_id} needs manual review")
            return None

        logger.info(f"Test task evaluated for candidate {candidate_id}: {evaluation.score:g}/10")
        return evaluation

    def evaluate_questionnaire(self, db: Session, response_id: int) -> Optional[QuestionnaireEvaluation]:
        """
        Grade a completed questionnaire and store the result on it.

        Raises:
            NotFoundError: Unknown questionnaire
        """
        response = db.query(QuestionnaireResponse).filter(QuestionnaireResponse.id == response_id).first()
        if response is None:
            raise NotFoundError(f"Questionnaire {response_id} not found")
        if response.status != QuestionnaireResponseStatus.COMPLETED:
            logger.info(f"Questionnaire {response_id} is not completed, nothing to evaluate")
            return None

        request = db.query(HiringRequest).filter(HiringRequest.id == response.request_id).first()
        prompt = prompts.questionnaire_evaluation_prompt(
            response.questions,
            response.answers or {},
            request.title if request is not None else "",
            request.description if request is not None else None
        )
        evaluation = self._ask(prompt, QuestionnaireEvaluation, "Questionnaire", response_id)

        if evaluation is None:
            response.ai_evaluation = {"error": QUESTIONNAIRE_MANUAL_REVIEW}
            db.commit()
            logger.warning(f"Questionnaire {response_id} needs manual review")
            return None

        response.ai_score = evaluation.score
        response.ai_evaluation = evaluation.model_dump(exclude={"score"})
        db.commit()
        logger.info(f"Questionnaire {response_id} evaluated for candidate {response.candidate_id}: {evaluation.score:g}/10")
        return evaluation
