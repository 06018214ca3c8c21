import enum
from sqlalchemy import Column, Integer, ForeignKey, Enum, Text, DateTime, func
from app.core.database import Base, JSONType


class ActionType(str, enum.Enum):
    SEND_INVITE = "send_invite"
    SEND_REJECTION = "send_rejection"
    SEND_OUTREACH = "send_outreach"
    SEND_QUESTIONNAIRE = "send_questionnaire"
    SEND_TEST_TASK = "send_test_task"


class AutomationJobStatus(str, enum.Enum):
    """
    Automation job lifecycle.

    PENDING -> PROCESSING -> COMPLETED
                    |
                    v
                 FAILED --(retry_count < max)--> PENDING
                    |
                    +--(retry_count >= max)--> DEAD_LETTER

    CANCELLED is reachable from PENDING only.
    """
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    DEAD_LETTER = "dead_letter"


ACTIVE_JOB_STATUSES = (AutomationJobStatus.PENDING, AutomationJobStatus.PROCESSING)


class AutomationJob(Base):
    """
    A scheduled unit of work tied to a candidate/request pair.

    `status` and `retry_count` are only written through app.crud.automation_job.
    A null or past `scheduled_for` means the job is due immediately.
    """
    __tablename__ = "automation_jobs"

    id = Column(Integer, primary_key=True, index=True)
    action_type = Column(Enum(ActionType), nullable=False, index=True)
    status = Column(Enum(AutomationJobStatus), default=AutomationJobStatus.PENDING, nullable=False, index=True)

    candidate_id = Column(Integer, ForeignKey("candidates.id"), nullable=False, index=True)
    request_id = Column(Integer, ForeignKey("requests.id"), nullable=False, index=True)

    scheduled_for = Column(DateTime(timezone=True), nullable=True, index=True)
    payload = Column(JSONType, nullable=True)

    retry_count = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)

    claimed_at = Column(DateTime(timezone=True), nullable=True)
    executed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<AutomationJob(id={self.id}, action={self.action_type}, status={self.status})>"
