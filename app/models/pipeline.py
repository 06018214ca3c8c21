"""
Candidate pipeline state machine.

Stage lifecycle (non-terminal, ordered):

    NEW -> ANALYZED -> OUTREACH_SENT -> QUESTIONNAIRE_SENT -> QUESTIONNAIRE_DONE
        -> TEST_SENT -> TEST_DONE -> INTERVIEW

Terminal stages reachable from any non-terminal stage:

    OUTREACH_DECLINED, REJECTED, HIRED

Forward moves may skip optional stages (a request without a questionnaire goes
straight from OUTREACH_SENT to TEST_SENT). Re-entering the current stage is a
no-op so handlers stay idempotent. Backward moves and leaving a terminal stage
are rejected.

Only automation handlers, analysis intake and manager decision services call
`transition`.
"""

import enum
from typing import Tuple

from app.core.exceptions import InvalidStageTransitionError


class PipelineStage(str, enum.Enum):
    NEW = "new"
    ANALYZED = "analyzed"
    OUTREACH_SENT = "outreach_sent"
    QUESTIONNAIRE_SENT = "questionnaire_sent"
    QUESTIONNAIRE_DONE = "questionnaire_done"
    TEST_SENT = "test_sent"
    TEST_DONE = "test_done"
    INTERVIEW = "interview"
    OUTREACH_DECLINED = "outreach_declined"
    REJECTED = "rejected"
    HIRED = "hired"


STAGE_ORDER: Tuple[PipelineStage, ...] = (
    PipelineStage.NEW,
    PipelineStage.ANALYZED,
    PipelineStage.OUTREACH_SENT,
    PipelineStage.QUESTIONNAIRE_SENT,
    PipelineStage.QUESTIONNAIRE_DONE,
    PipelineStage.TEST_SENT,
    PipelineStage.TEST_DONE,
    PipelineStage.INTERVIEW,
)

TERMINAL_STAGES = frozenset({
    PipelineStage.OUTREACH_DECLINED,
    PipelineStage.REJECTED,
    PipelineStage.HIRED,
})


def is_terminal(stage: PipelineStage) -> bool:
    return stage in TERMINAL_STAGES


def can_transition(current: PipelineStage, target: PipelineStage) -> bool:
    """Return True if moving a candidate from `current` to `target` is legal."""
    if current == target:
        return True
    if is_terminal(current):
        return False
    if is_terminal(target):
        return True
    return STAGE_ORDER.index(target) > STAGE_ORDER.index(current)


def check_transition(candidate, target: PipelineStage) -> PipelineStage:
    """
    Raise InvalidStageTransitionError unless `candidate` may move to `target`.

    Handlers call this before any external side effect so a message is never
    sent for a move that would then be refused.

    Returns:
        The candidate's current stage
    """
    current = PipelineStage(candidate.pipeline_stage or PipelineStage.NEW)
    if not can_transition(current, target):
        raise InvalidStageTransitionError(
            f"Candidate {candidate.id}: cannot move from '{current.value}' to '{target.value}'"
        )
    return current


def transition(candidate, target: PipelineStage) -> bool:
    """
    Move a candidate to `target`, enforcing the state machine.

    Args:
        candidate: Candidate model instance (mutated in place, not committed)
        target: Desired pipeline stage

    Returns:
        True if the stage changed, False for a same-stage no-op

    Raises:
        InvalidStageTransitionError: If the move is not allowed
    """
    current = check_transition(candidate, target)
    if current == target:
        return False

    candidate.pipeline_stage = target
    return True
