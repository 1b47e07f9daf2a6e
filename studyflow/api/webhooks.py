"""Payment processor webhook route."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from studyflow.auth.security import get_store
from studyflow.schemas.schemas import ErrorResponse, WebhookAck
from studyflow.services.store import Store
from studyflow.services.subscription_service import handle_event, parse_event, verify_signature

router = APIRouter(prefix="/api/paddle", tags=["Webhooks"])

logger = logging.getLogger(__name__)


@router.post(
    "/webhook",
    response_model=WebhookAck,
    summary="Paddle webhook",
    responses={
        400: {"model": ErrorResponse, "description": "Missing signature or malformed body"},
        401: {"model": ErrorResponse, "description": "Signature does not match"},
        500: {"model": ErrorResponse, "description": "Event could not be applied; redeliver"},
    },
)
async def paddle_webhook(
    request: Request,
    paddle_signature: Optional[str] = Header(None, alias="paddle-signature"),
    store: Store = Depends(get_store),
):
    """Verify a signed subscription event and apply it to the user's profile."""
    body = await request.body()
    verify_signature(body, paddle_signature)

    event = parse_event(body)
    logger.info(f"Paddle webhook event: {event.event_type} ({event.event_id})")
    await handle_event(store, event)

    return WebhookAck(success=True)
