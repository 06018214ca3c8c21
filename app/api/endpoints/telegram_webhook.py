"""
Telegram Bot webhook.

Telegram retries any non-200 answer, so the endpoint always returns
`{"ok": true}` and only logs failures.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.deps import get_inbound_handler, get_now
from app.services.inbound import InboundMessageHandler

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
logger = logging.getLogger(__name__)


@router.post("/telegram")
async def telegram_webhook(
    request: Request,
    db: Session = Depends(get_db),
    handler: InboundMessageHandler = Depends(get_inbound_handler),
    now: datetime = Depends(get_now)
):
    try:
        update = await request.json()
    except ValueError:
        logger.warning("Telegram webhook received invalid JSON")
        return {"ok": True}

    if not isinstance(update, dict):
        logger.warning("Telegram webhook received a non-object update")
        return {"ok": True}

    try:
        handler.handle_update(db, update, now)
    except Exception as e:
        db.rollback()
        logger.error(f"Telegram webhook error for update {update.get('update_id')}: {e}", exc_info=True)

    return {"ok": True}
