import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.deps import get_manager_id, get_message_generator, get_now, get_outreach_processor
from app.core.exceptions import NotFoundError, PreconditionFailedError
from app.crud import candidate as candidate_crud
from app.schemas.outreach import (
    CancelOutreachRequest,
    CancelOutreachResponse,
    EditOutreachRequest,
    GenerateMessageRequest,
    GenerateMessageResponse,
    OutreachItemResponse,
    ScheduleOutreachRequest,
    ScheduleOutreachResponse,
    SendNowRequest,
    SendResultResponse,
)
from app.services import outreach_control
from app.services.message_generator import MessageGenerator
from app.services.outreach_service import OutreachProcessor

router = APIRouter(prefix="/outreach", tags=["Outreach"])
logger = logging.getLogger(__name__)


def _not_found(e):
    # Items that are no longer scheduled are reported as 404
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": e.code, "message": e.message}
    )


def _delivery_failed(error):
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={"error": "delivery_failed", "message": error or "Failed to send message"}
    )


@router.post("/schedule", response_model=ScheduleOutreachResponse)
def schedule_outreach(
    request: ScheduleOutreachRequest,
    db: Session = Depends(get_db),
    processor: OutreachProcessor = Depends(get_outreach_processor),
    now: datetime = Depends(get_now)
):
    """
    Queue a drafted intro for a candidate.

    Only one intro per candidate: an item that is already scheduled, in
    flight or sent returns 400. With `send_now` the intro is delivered
    during the request; otherwise it goes out at a human-like time.
    """
    item = outreach_control.schedule_intro(
        db,
        request.candidate_id,
        request.message,
        now,
        delivery_method=request.delivery_method,
        send_now=request.send_now
    )
    response = ScheduleOutreachResponse(
        outreach_id=item.id,
        request_id=item.request_id,
        scheduled_for=item.scheduled_for
    )

    if request.send_now:
        result = outreach_control.send_now(db, item.id, processor, now)
        if not result.success:
            raise _delivery_failed(result.error)
        response.sent = True
        response.message_id = result.message_id
    return response


@router.post("/cancel", response_model=CancelOutreachResponse)
def cancel_outreach(request: CancelOutreachRequest, db: Session = Depends(get_db)):
    """
    Cancel a scheduled outreach item, or all scheduled items of a candidate.

    Only items still in `scheduled` status can be cancelled. The candidate's
    outreach_status becomes `cancelled`.
    """
    try:
        cancelled = outreach_control.cancel_outreach(
            db, outreach_id=request.outreach_id, candidate_id=request.candidate_id
        )
    except (NotFoundError, PreconditionFailedError) as e:
        raise _not_found(e)

    return CancelOutreachResponse(cancelled=cancelled)


@router.post("/edit", response_model=OutreachItemResponse)
def edit_outreach(
    request: EditOutreachRequest,
    db: Session = Depends(get_db),
    manager_id: str = Depends(get_manager_id),
    now: datetime = Depends(get_now)
):
    """Change the message and/or send time of a scheduled item."""
    try:
        return outreach_control.edit_outreach(
            db,
            request.outreach_id,
            edited_by=manager_id,
            now=now,
            message=request.message,
            scheduled_for=request.scheduled_for
        )
    except (NotFoundError, PreconditionFailedError) as e:
        raise _not_found(e)


@router.post("/send-now", response_model=SendResultResponse)
def send_now(
    request: SendNowRequest,
    db: Session = Depends(get_db),
    processor: OutreachProcessor = Depends(get_outreach_processor),
    now: datetime = Depends(get_now)
):
    """
    Send a scheduled item immediately.

    A delivery failure marks the item `failed` and returns 502 with the
    channel error.
    """
    try:
        result = outreach_control.send_now(db, request.outreach_id, processor, now)
    except (NotFoundError, PreconditionFailedError) as e:
        raise _not_found(e)

    if not result.success:
        raise _delivery_failed(result.error)
    return SendResultResponse(success=True, message_id=result.message_id)


@router.post("/generate", response_model=GenerateMessageResponse)
def generate_message(
    request: GenerateMessageRequest,
    db: Session = Depends(get_db),
    generator: MessageGenerator = Depends(get_message_generator)
):
    """Draft a personalized intro for a candidate. Nothing is queued or sent."""
    candidate = candidate_crud.get_by_id(db, request.candidate_id)
    if not candidate:
        raise NotFoundError("Candidate not found")

    return outreach_control.generate_intro_message(db, candidate, generator)
