import enum
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class CandidateAnalysis(BaseModel):
    """AI evaluation of a candidate profile, as used by the intro generator"""
    score: float = Field(..., ge=0, le=10)
    category: str = "strong"
    summary: str = ""
    strengths: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)


class ResponseCategory(str, enum.Enum):
    POSITIVE_READY = "positive_ready"
    POSITIVE_WITH_QUESTIONS = "positive_with_questions"
    REQUEST_DEADLINE_EXTENSION = "request_deadline_extension"
    QUESTIONS_ABOUT_JOB = "questions_about_job"
    NEGATIVE = "negative"
    TEST_TASK_SUBMISSION = "test_task_submission"
    UNCLEAR = "unclear"


class ExtractedInfo(BaseModel):
    requested_deadline_date: Optional[str] = None
    requested_extension_days: Optional[float] = None
    questions: List[str] = Field(default_factory=list)

    @field_validator("questions", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []


class ClassificationResult(BaseModel):
    category: ResponseCategory
    confidence: float = Field(..., ge=0, le=1)
    extracted_info: ExtractedInfo = Field(default_factory=ExtractedInfo)

    @field_validator("extracted_info", mode="before")
    @classmethod
    def none_to_default(cls, v):
        return v or {}


class DeadlineParseResponse(BaseModel):
    """Shape the AI fallback of the deadline parser must return"""
    requested_date: Optional[datetime] = None
    reason: Optional[str] = None


class DeadlineExtension(BaseModel):
    """Outcome of parsing a free-text extension request"""
    requested_date: Optional[datetime] = None
    additional_days: Optional[float] = None
    is_reasonable: bool = False
    reason: Optional[str] = None


class TestTaskEvaluation(BaseModel):
    """AI grading of a test-task submission"""
    score: float = Field(..., ge=1, le=10)
    evaluation: str
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)

    @field_validator("strengths", "improvements", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []


class CompetencyScore(BaseModel):
    competency_id: Optional[str] = None
    competency_name: str = ""
    score: Optional[float] = Field(None, ge=1, le=10)
    comment: str = ""

    @field_validator("competency_id", mode="before")
    @classmethod
    def id_to_str(cls, v):
        return None if v is None else str(v)


class QuestionnaireEvaluation(BaseModel):
    """AI grading of soft-skills questionnaire answers"""
    score: float = Field(..., ge=1, le=10)
    summary: str
    strengths: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)
    recommendation: str = ""
    per_competency: List[CompetencyScore] = Field(default_factory=list)

    @field_validator("strengths", "concerns", "per_competency", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []
