"""
CRUD operations for Candidate.
"""

import logging
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.models.candidate import Candidate

logger = logging.getLogger(__name__)


def get_by_id(db: Session, candidate_id: int) -> Optional[Candidate]:
    return db.query(Candidate).filter(Candidate.id == candidate_id).first()


def get_by_telegram_username(db: Session, username: str) -> Optional[Candidate]:
    """
    Find a candidate by Telegram username.

    Matching ignores case and a leading "@", since applicants type their
    handle by hand in the application form.

    Args:
        db: Database session
        username: Telegram username as reported by the Bot API

    Returns:
        Candidate if found, None otherwise
    """
    normalized = username.lstrip("@").lower()
    if not normalized:
        return None

    return db.query(Candidate).filter(
        func.lower(func.ltrim(Candidate.telegram_username, "@")) == normalized
    ).order_by(Candidate.id.desc()).first()


def set_telegram_chat_id(db: Session, candidate: Candidate, chat_id: int) -> Candidate:
    """Store the chat id the first time a candidate writes to the bot."""
    if candidate.telegram_chat_id != chat_id:
        candidate.telegram_chat_id = chat_id
        db.commit()
        db.refresh(candidate)
        logger.info(f"Stored Telegram chat id for candidate {candidate.id}")
    return candidate
