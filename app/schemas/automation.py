from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from enum import Enum

from app.models.automation_job import ActionType, AutomationJobStatus


class FinalDecisionEnum(str, Enum):
    INVITE = "invite"
    REJECT = "reject"


class BatchResultResponse(BaseModel):
    """Counts returned by the periodic trigger endpoints"""
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    recovered: int = 0
    requeued: int = 0
    dead_lettered: int = 0
    errors: List[str] = Field(default_factory=list)


class FinalDecisionRequest(BaseModel):
    decision: FinalDecisionEnum
    request_id: int


class FinalDecisionResponse(BaseModel):
    success: bool = True
    decision: FinalDecisionEnum
    job_id: Optional[int] = None
    already_recorded: bool = False
    final_decision_at: Optional[datetime] = None


class AutomationJobResponse(BaseModel):
    id: int
    action_type: ActionType
    status: AutomationJobStatus
    candidate_id: int
    request_id: int
    scheduled_for: Optional[datetime] = None
    retry_count: int
    last_error: Optional[str] = None

    class Config:
        from_attributes = True


class QuestionnaireSubmitRequest(BaseModel):
    """Answers keyed by question id"""
    answers: dict


class QuestionnaireSubmitResponse(BaseModel):
    success: bool = True
    answered: int


class QuestionnaireSendRequest(BaseModel):
    candidate_id: int
    request_id: int


class QuestionnaireSendResponse(BaseModel):
    success: bool = True
    job_id: int
