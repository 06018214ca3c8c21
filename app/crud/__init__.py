"""
CRUD operations (Create, Read, Update, Delete) for database models.

This layer provides a clean separation between API routes, services and
database operations, following the Repository pattern.
"""

from app.crud import automation_job, candidate, conversation, match, outreach

__all__ = ["automation_job", "candidate", "conversation", "match", "outreach"]
