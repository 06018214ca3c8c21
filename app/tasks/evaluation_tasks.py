"""
Celery tasks for AI grading of submissions.

Submission endpoints record the work and return at once; grading runs here.
"""

import logging

from app.core.celery_app import celery_app
from app.core.database import SessionLocal
from app.services.ai_client import build_ai_completer
from app.services.evaluator import SubmissionEvaluator

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.evaluation_tasks.evaluate_test_task_submission", bind=True)
def evaluate_test_task_submission(self, candidate_id: int):
    """
    Grade a candidate's test-task submission.

    Args:
        candidate_id: The ID of the candidate who submitted

    Returns:
        dict: candidate_id and the AI score (None when skipped or left for manual review)

    Raises:
        NotFoundError: If the candidate does not exist
    """
    logger.info(f"[Task {self.request.id}] Evaluating test task of candidate {candidate_id}")
    db = SessionLocal()
    try:
        evaluation = SubmissionEvaluator(build_ai_completer()).evaluate_test_task(db, candidate_id)
        return {"candidate_id": candidate_id, "score": evaluation.score if evaluation else None}
    finally:
        db.close()


@celery_app.task(name="app.tasks.evaluation_tasks.evaluate_questionnaire_response", bind=True)
def evaluate_questionnaire_response(self, response_id: int):
    """Grade a completed soft-skills questionnaire."""
    logger.info(f"[Task {self.request.id}] Evaluating questionnaire {response_id}")
    db = SessionLocal()
    try:
        evaluation = SubmissionEvaluator(build_ai_completer()).evaluate_questionnaire(db, response_id)
        return {"response_id": response_id, "score": evaluation.score if evaluation else None}
    finally:
        db.close()


class CeleryEvaluationQueue:
    """Queues grading on the Celery worker via Redis."""

    def test_task(self, candidate_id: int) -> None:
        task = evaluate_test_task_submission.delay(candidate_id)
        logger.info(f"Queued test-task evaluation {task.id} for candidate {candidate_id}")

    def questionnaire(self, response_id: int) -> None:
        task = evaluate_questionnaire_response.delay(response_id)
        logger.info(f"Queued questionnaire evaluation {task.id} for questionnaire {response_id}")
