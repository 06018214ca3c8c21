"""
Domain exceptions raised by the automation services.

API endpoints translate these into HTTP error payloads carrying a reason
code; the schedulers catch them per job/item and persist the message.
"""

from typing import Optional


class HiringAutomationError(Exception):
    """Base class for all domain errors. `code` is the machine-readable reason."""

    code = "error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class NotFoundError(HiringAutomationError):
    """Candidate, request, match or queue item does not exist"""
    code = "not_found"


class PreconditionFailedError(HiringAutomationError):
    """Entity exists but is not in a state that allows the operation"""
    code = "precondition_failed"


class DecisionConflictError(HiringAutomationError):
    """A different final decision was already recorded for the match"""
    code = "decision_conflict"


class InvalidStageTransitionError(HiringAutomationError):
    """Pipeline stage change not allowed by the state machine"""
    code = "invalid_stage_transition"


class MissingContactDetailError(HiringAutomationError):
    """The resolved delivery channel has no contact detail for the candidate"""
    code = "missing_contact_detail"


class AIServiceError(HiringAutomationError):
    """AI capability unreachable or returned an empty response"""
    code = "ai_unavailable"


class DeliveryFailedError(HiringAutomationError):
    """The messaging channel rejected or failed to deliver a message"""
    code = "delivery_failed"
