from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import datetime

from app.models.outreach import DeliveryMethod, OutreachItemStatus


class OutreachItemResponse(BaseModel):
    """Schema for an outreach queue item"""
    id: int
    candidate_id: int
    request_id: Optional[int] = None
    intro_message: str
    test_task_message: Optional[str] = None
    delivery_method: DeliveryMethod
    scheduled_for: datetime
    status: OutreachItemStatus
    edited_by: Optional[str] = None
    edited_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    retry_count: int = 0

    class Config:
        from_attributes = True


class CancelOutreachRequest(BaseModel):
    """Cancel by outreach item id or every scheduled item of a candidate"""
    outreach_id: Optional[int] = None
    candidate_id: Optional[int] = None

    @model_validator(mode="after")
    def require_target(self):
        if self.outreach_id is None and self.candidate_id is None:
            raise ValueError("outreach_id or candidate_id is required")
        return self


class CancelOutreachResponse(BaseModel):
    success: bool = True
    cancelled: int


class EditOutreachRequest(BaseModel):
    outreach_id: int
    message: Optional[str] = Field(None, min_length=1)
    scheduled_for: Optional[datetime] = None

    @model_validator(mode="after")
    def require_change(self):
        if self.message is None and self.scheduled_for is None:
            raise ValueError("message or scheduled_for is required")
        return self


class SendNowRequest(BaseModel):
    outreach_id: int


class SendResultResponse(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class GenerateMessageRequest(BaseModel):
    candidate_id: int


class GenerateMessageResponse(BaseModel):
    message: str
    delivery_method: str
    request_id: Optional[int] = None
    match_score: Optional[float] = None


class ScheduleOutreachRequest(BaseModel):
    """A manager-approved intro to queue for a candidate"""
    candidate_id: int
    message: str = Field(..., min_length=1)
    delivery_method: Optional[DeliveryMethod] = None  # Resolved from the candidate when omitted
    send_now: bool = False


class ScheduleOutreachResponse(BaseModel):
    success: bool = True
    outreach_id: int
    request_id: Optional[int] = None
    scheduled_for: datetime
    sent: bool = False
    message_id: Optional[str] = None


class AnalysisResultResponse(BaseModel):
    """What the analysis result set in motion"""
    outreach_id: Optional[int] = None
    job_id: Optional[int] = None
