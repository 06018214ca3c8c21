"""
Append-only access to the candidate conversation log.
"""

from typing import List, Optional
from sqlalchemy.orm import Session
from app.models.conversation import ConversationEntry, MessageDirection


def append(
    db: Session,
    candidate_id: int,
    direction: MessageDirection,
    message_type: str,
    content: str,
    meta: Optional[dict] = None
) -> ConversationEntry:
    """
    Log one message. Commits together with any pending changes in the session.

    Args:
        db: Database session
        candidate_id: Candidate the message was exchanged with
        direction: OUTBOUND or INBOUND
        message_type: e.g. "outreach", "test_task", "deadline_extension_granted"
        content: Message text
        meta: Structured details (delivery success, decision flags, parsed dates)

    Returns:
        Created ConversationEntry
    """
    entry = ConversationEntry(
        candidate_id=candidate_id,
        direction=direction,
        message_type=message_type,
        content=content,
        meta=meta or {}
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def list_for_candidate(db: Session, candidate_id: int, limit: int = 50) -> List[ConversationEntry]:
    """Most recent entries in chronological order."""
    entries = db.query(ConversationEntry).filter(
        ConversationEntry.candidate_id == candidate_id
    ).order_by(ConversationEntry.id.desc()).limit(limit).all()
    return list(reversed(entries))
