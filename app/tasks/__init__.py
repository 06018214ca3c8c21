"""
Celery tasks package.

- automation_tasks: periodic automation-queue and outreach-queue ticks
- evaluation_tasks: AI grading of test-task and questionnaire submissions
"""

from app.tasks import automation_tasks, evaluation_tasks

__all__ = ["automation_tasks", "evaluation_tasks"]
