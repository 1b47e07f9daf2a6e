"""Payment processor webhook relay: verify, dedupe and apply subscription events."""

import hashlib
import hmac
import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from studyflow.config import get_settings, is_configured
from studyflow.db.models import STATUS_MAX_LENGTH, SubscriptionStatus
from studyflow.errors import AuthenticationError, ValidationFailedError
from studyflow.services.store import Store

settings = get_settings()
logger = logging.getLogger(__name__)

_datetime_adapter = TypeAdapter(datetime)


class PaddleEvent(BaseModel):
    """The envelope of a payment processor notification."""

    event_id: Optional[str] = None
    event_type: str = ""
    occurred_at: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def user_id(self) -> Optional[str]:
        custom = self.data.get("custom_data") or {}
        if not isinstance(custom, dict):
            return None
        return custom.get("user_id")


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str] = None) -> None:
    """
    Check the HMAC-SHA256 hex digest of the raw body.

    Raises ValidationFailedError when the header is missing and
    AuthenticationError when the secret is unset or the digest differs.
    """
    if not signature:
        raise ValidationFailedError("Missing signature")

    secret = secret if secret is not None else settings.paddle_webhook_secret
    if not is_configured(secret):
        logger.error("PADDLE_WEBHOOK_SECRET not configured")
        raise AuthenticationError("Invalid signature")

    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, signature.strip()):
        raise AuthenticationError("Invalid signature")


def parse_event(body: bytes) -> PaddleEvent:
    try:
        return PaddleEvent.model_validate_json(body)
    except ValidationError as e:
        raise ValidationFailedError("Invalid webhook payload") from e


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return _datetime_adapter.validate_python(value)
    except ValidationError:
        logger.warning(f"Ignoring unparseable timestamp in webhook: {value!r}")
        return None


def _first_price(data: dict) -> dict:
    items = data.get("items")
    if isinstance(items, list) and items and isinstance(items[0], dict):
        price = items[0].get("price")
        return price if isinstance(price, dict) else {}
    return {}


def _status(value: Any, default: SubscriptionStatus) -> str:
    """A status string that fits the profile column; anything else falls back to `default`."""
    if isinstance(value, str) and 0 < len(value.strip()) <= STATUS_MAX_LENGTH:
        return value.strip()
    if value:
        logger.warning(f"Ignoring malformed subscription status in webhook: {value!r}")
    return default.value


def _amount_cents(price: dict) -> Optional[int]:
    unit_price = price.get("unit_price") or {}
    try:
        return int(unit_price["amount"])
    except (KeyError, TypeError, ValueError):
        return None


async def _record_subscription(store: Store, user_id: str, data: dict, status: str) -> None:
    """Upsert the ledger row for a subscription event."""
    subscription_id = data.get("id")
    if not subscription_id:
        return
    period = data.get("current_billing_period") or {}
    price = _first_price(data)
    await store.upsert_subscription(
        user_id=user_id,
        external_subscription_id=subscription_id,
        status=status,
        external_order_id=data.get("transaction_id"),
        external_product_id=price.get("product_id") or price.get("id"),
        current_period_start=_parse_datetime(period.get("starts_at")),
        current_period_end=_parse_datetime(period.get("ends_at") or data.get("next_billed_at")),
        amount=_amount_cents(price),
        currency=data.get("currency_code"),
    )


async def handle_subscription_created(store: Store, user_id: str, data: dict) -> None:
    updates = {
        "is_premium": True,
        "subscription_status": SubscriptionStatus.ACTIVE.value,
        "subscription_id": data.get("id"),
    }
    end = _parse_datetime(data.get("next_billed_at"))
    if end is not None:
        updates["subscription_end_date"] = end
    await store.update_user(user_id, **updates)
    await _record_subscription(store, user_id, data, SubscriptionStatus.ACTIVE.value)
    logger.info(f"Subscription created for user: {user_id}")


async def handle_subscription_updated(store: Store, user_id: str, data: dict) -> None:
    status = _status(data.get("status"), SubscriptionStatus.ACTIVE)
    updates = {"subscription_status": status}
    end = _parse_datetime(data.get("next_billed_at"))
    if end is not None:
        updates["subscription_end_date"] = end
    await store.update_user(user_id, **updates)
    await _record_subscription(store, user_id, data, status)
    logger.info(f"Subscription updated for user: {user_id}")


async def handle_subscription_cancelled(store: Store, user_id: str, data: dict) -> None:
    updates = {
        "is_premium": False,
        "subscription_status": SubscriptionStatus.CANCELLED.value,
    }
    end = _parse_datetime(data.get("cancel_at") or (data.get("scheduled_change") or {}).get("effective_at"))
    if end is not None:
        updates["subscription_end_date"] = end
    await store.update_user(user_id, **updates)
    await _record_subscription(store, user_id, data, SubscriptionStatus.CANCELLED.value)
    logger.info(f"Subscription cancelled for user: {user_id}")


async def handle_subscription_past_due(store: Store, user_id: str, data: dict) -> None:
    await store.update_user(user_id, subscription_status=SubscriptionStatus.PAST_DUE.value)
    await _record_subscription(store, user_id, data, SubscriptionStatus.PAST_DUE.value)
    logger.info(f"Subscription past due for user: {user_id}")


async def handle_transaction_completed(store: Store, user_id: str, data: dict) -> None:
    if data.get("status") == "completed":
        await store.update_user(
            user_id,
            is_premium=True,
            subscription_status=SubscriptionStatus.ACTIVE.value,
        )
    logger.info(f"Transaction completed for user: {user_id}")


EVENT_HANDLERS = {
    "subscription.created": handle_subscription_created,
    "subscription.updated": handle_subscription_updated,
    "subscription.cancelled": handle_subscription_cancelled,
    "subscription.past_due": handle_subscription_past_due,
    "transaction.completed": handle_transaction_completed,
}


async def handle_event(store: Store, event: PaddleEvent) -> bool:
    """
    Apply one verified event to the user's profile.

    Returns False when nothing was applied: unknown event type, no user id,
    unknown user, or an event id already applied. Events are applied in
    arrival order.
    """
    handler = EVENT_HANDLERS.get(event.event_type)
    if handler is None:
        logger.info(f"Unhandled Paddle event: {event.event_type}")
        return False

    if event.event_id and await store.has_webhook_event(event.event_id):
        logger.info(f"Paddle event {event.event_id} already applied, skipping")
        return False

    user_id = event.user_id
    if not user_id:
        logger.error(f"No user_id in {event.event_type} data")
        return False

    if await store.get_user(user_id) is None:
        logger.warning(f"Paddle event {event.event_type} for unknown user {user_id}")
        return False

    await handler(store, user_id, event.data)

    if event.event_id:
        await store.record_webhook_event(event.event_id, event.event_type)
    return True
