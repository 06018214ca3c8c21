"""
Database models package.
"""

from app.models.pipeline import PipelineStage
from app.models.candidate import (
    Candidate,
    CandidateSource,
    OutreachStatus,
    QuestionnaireStatus,
    TestTaskStatus,
)
from app.models.hiring_request import HiringRequest, HiringRequestStatus
from app.models.match import CandidateRequestMatch, MatchStatus, FinalDecision
from app.models.automation_job import AutomationJob, ActionType, AutomationJobStatus
from app.models.outreach import OutreachQueueItem, OutreachItemStatus, DeliveryMethod
from app.models.conversation import ConversationEntry, MessageDirection
from app.models.questionnaire import (
    SoftSkillCompetency,
    QuestionnaireQuestion,
    QuestionnaireResponse,
    QuestionnaireResponseStatus,
)

__all__ = [
    "PipelineStage",
    "Candidate", "CandidateSource", "OutreachStatus", "QuestionnaireStatus", "TestTaskStatus",
    "HiringRequest", "HiringRequestStatus",
    "CandidateRequestMatch", "MatchStatus", "FinalDecision",
    "AutomationJob", "ActionType", "AutomationJobStatus",
    "OutreachQueueItem", "OutreachItemStatus", "DeliveryMethod",
    "ConversationEntry", "MessageDirection",
    "SoftSkillCompetency", "QuestionnaireQuestion", "QuestionnaireResponse", "QuestionnaireResponseStatus",
]
