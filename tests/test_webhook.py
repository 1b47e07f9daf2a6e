"""Tests for the payment webhook relay."""

import hashlib
import hmac
import json

import pytest
from httpx import AsyncClient

from studyflow.errors import AuthenticationError, StoreUnavailableError, ValidationFailedError
from studyflow.services.database import DatabaseService
from studyflow.services.subscription_service import verify_signature

SECRET = "test-webhook-secret"


def _signed(event: dict, secret: str = SECRET) -> tuple[bytes, dict]:
    body = json.dumps(event).encode()
    signature = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return body, {"paddle-signature": signature, "content-type": "application/json"}


def _event(event_type: str, user_id: str | None = "student-1", event_id: str = "evt_01", **data) -> dict:
    payload = {"id": "sub_01", **data}
    if user_id is not None:
        payload["custom_data"] = {"user_id": user_id}
    return {"event_id": event_id, "event_type": event_type, "data": payload}


async def _post(client: AsyncClient, event: dict):
    body, headers = _signed(event)
    return await client.post("/api/paddle/webhook", content=body, headers=headers)


async def _profile(client: AsyncClient) -> dict:
    return (await client.get("/api/me", headers={"x-user-id": "student-1"})).json()


@pytest.mark.asyncio
async def test_missing_signature(client: AsyncClient):
    response = await client.post("/api/paddle/webhook", content=b"{}")
    assert response.status_code == 400
    assert response.json()["message"] == "Missing signature"


@pytest.mark.asyncio
async def test_bad_signature_does_not_mutate(client: AsyncClient):
    await _profile(client)
    body, _ = _signed(_event("subscription.created"))

    response = await client.post(
        "/api/paddle/webhook", content=body, headers={"paddle-signature": "0" * 64}
    )
    assert response.status_code == 401
    assert (await _profile(client))["is_premium"] is False


@pytest.mark.asyncio
async def test_signature_from_wrong_secret(client: AsyncClient):
    body, headers = _signed(_event("subscription.created"), secret="someone-else")
    response = await client.post("/api/paddle/webhook", content=body, headers=headers)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_json(client: AsyncClient):
    body = b"not json"
    signature = hmac.new(SECRET.encode(), body, hashlib.sha256).hexdigest()
    response = await client.post(
        "/api/paddle/webhook", content=body, headers={"paddle-signature": signature}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_subscription_lifecycle(client: AsyncClient, stores):
    await _profile(client)

    response = await _post(client, _event(
        "subscription.created",
        event_id="evt_created",
        status="active",
        next_billed_at="2026-11-17T10:00:00Z",
        currency_code="USD",
        items=[{"price": {"id": "pri_01", "product_id": "pro_01", "unit_price": {"amount": "999"}}}],
    ))
    assert response.status_code == 200
    assert response.json() == {"success": True}

    profile = await _profile(client)
    assert profile["is_premium"] is True
    assert profile["subscription_status"] == "active"
    assert profile["subscription_id"] == "sub_01"
    assert profile["subscription_end_date"].startswith("2026-11-17")

    async with stores.session() as store:
        ledger = await store.get_user_subscriptions("student-1")
    assert len(ledger) == 1
    assert ledger[0].external_subscription_id == "sub_01"
    assert ledger[0].external_product_id == "pro_01"
    assert ledger[0].amount == 999

    await _post(client, _event("subscription.past_due", event_id="evt_past_due"))
    assert (await _profile(client))["subscription_status"] == "past_due"

    await _post(client, _event(
        "subscription.updated", event_id="evt_updated", status="active", next_billed_at="2026-12-17T10:00:00Z"
    ))
    profile = await _profile(client)
    assert profile["subscription_status"] == "active"
    assert profile["subscription_end_date"].startswith("2026-12-17")

    await _post(client, _event(
        "subscription.cancelled", event_id="evt_cancelled", cancel_at="2026-12-17T10:00:00Z"
    ))
    profile = await _profile(client)
    assert profile["is_premium"] is False
    assert profile["subscription_status"] == "cancelled"

    async with stores.session() as store:
        ledger = await store.get_user_subscriptions("student-1")
    assert len(ledger) == 1
    assert ledger[0].status == "cancelled"


@pytest.mark.asyncio
async def test_transaction_completed(client: AsyncClient):
    await _profile(client)

    await _post(client, _event("transaction.completed", event_id="evt_txn_1", status="billed"))
    assert (await _profile(client))["is_premium"] is False

    await _post(client, _event("transaction.completed", event_id="evt_txn_2", status="completed"))
    profile = await _profile(client)
    assert profile["is_premium"] is True
    assert profile["subscription_status"] == "active"


@pytest.mark.asyncio
async def test_redelivered_event_is_not_reapplied(client: AsyncClient):
    await _profile(client)

    await _post(client, _event("subscription.created", event_id="evt_dup"))
    await _post(client, _event("subscription.cancelled", event_id="evt_cancel"))

    # A late redelivery of the creation must not revive the subscription
    response = await _post(client, _event("subscription.created", event_id="evt_dup"))
    assert response.status_code == 200
    assert (await _profile(client))["is_premium"] is False


@pytest.mark.asyncio
async def test_unknown_event_and_missing_user_are_acknowledged(client: AsyncClient):
    await _profile(client)

    response = await _post(client, _event("customer.updated", event_id="evt_other"))
    assert response.status_code == 200

    response = await _post(client, _event("subscription.created", user_id=None, event_id="evt_nouser"))
    assert response.status_code == 200
    assert (await _profile(client))["is_premium"] is False


@pytest.mark.asyncio
async def test_event_for_unknown_user(client: AsyncClient, stores):
    response = await _post(client, _event("subscription.created", user_id="nobody"))
    assert response.status_code == 200
    async with stores.session() as store:
        assert await store.get_user("nobody") is None


@pytest.mark.asyncio
async def test_malformed_fields_do_not_fail_the_event(client: AsyncClient, stores):
    await _profile(client)

    response = await _post(client, _event(
        "subscription.created", event_id="evt_items", items={"price": {"id": "pri_01"}}
    ))
    assert response.status_code == 200
    assert (await _profile(client))["is_premium"] is True
    async with stores.session() as store:
        ledger = await store.get_user_subscriptions("student-1")
    assert ledger[0].external_product_id is None
    assert ledger[0].amount is None

    response = await _post(client, _event("subscription.updated", event_id="evt_status", status="x" * 100))
    assert response.status_code == 200
    assert (await _profile(client))["subscription_status"] == "active"


@pytest.mark.asyncio
async def test_event_that_fails_to_apply_is_applied_on_redelivery(client: AsyncClient, stores, monkeypatch):
    await _profile(client)

    original = DatabaseService.update_user
    attempts = []

    async def flaky(self, user_id, **updates):
        attempts.append(user_id)
        if len(attempts) == 1:
            raise StoreUnavailableError("Database connection failed")
        return await original(self, user_id, **updates)

    monkeypatch.setattr(DatabaseService, "update_user", flaky)
    event = _event("subscription.created", event_id="evt_retry")

    response = await _post(client, event)
    assert response.status_code == 500
    assert response.json() == {"message": "Database connection failed"}
    assert (await _profile(client))["is_premium"] is False
    async with stores.session() as store:
        assert await store.has_webhook_event("evt_retry") is False

    response = await _post(client, event)
    assert response.status_code == 200
    assert (await _profile(client))["is_premium"] is True


@pytest.mark.asyncio
async def test_demo_store_webhook(demo_client: AsyncClient):
    response = await _post(demo_client, _event("subscription.created", event_id="evt_demo"))
    assert response.status_code == 200
    assert (await _profile(demo_client))["is_premium"] is True


def test_verify_signature_requires_secret():
    with pytest.raises(ValidationFailedError):
        verify_signature(b"{}", None, secret=SECRET)
    with pytest.raises(AuthenticationError):
        verify_signature(b"{}", "abc", secret="")
    expected = hmac.new(SECRET.encode(), b"{}", hashlib.sha256).hexdigest()
    verify_signature(b"{}", expected, secret=SECRET)
