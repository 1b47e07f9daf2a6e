"""Authentication and authorization utilities."""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx
from fastapi import Depends, Header, Request

from studyflow.config import get_settings, is_configured
from studyflow.db.models import UserProfile
from studyflow.errors import AuthenticationError, PermissionDeniedError, ValidationFailedError
from studyflow.services.store import Store, StoreProvider

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """A verified caller as reported by the identity provider."""

    id: str
    email: str

    @property
    def display_name(self) -> str:
        return self.email.split("@")[0]

    @classmethod
    def from_dev_header(cls, user_id: str) -> "Identity":
        email = user_id if "@" in user_id else f"{user_id}@demo.com"
        return cls(id=user_id, email=email)


class IdentityProviderClient:
    """Verifies bearer tokens against a GoTrue-compatible `/auth/v1/user` endpoint."""

    def __init__(self, base_url: Optional[str] = None, service_key: Optional[str] = None):
        self.base_url = base_url if base_url is not None else settings.identity_url
        self.service_key = service_key if service_key is not None else settings.identity_service_key

    @property
    def is_configured(self) -> bool:
        return is_configured(self.base_url) and is_configured(self.service_key)

    async def verify_token(self, token: str) -> Optional[Identity]:
        """Return the token's identity, or None when it cannot be verified."""
        if not self.is_configured:
            logger.warning("Identity provider not configured, rejecting bearer token")
            return None

        try:
            async with httpx.AsyncClient(timeout=settings.identity_timeout_seconds) as client:
                response = await client.get(
                    f"{self.base_url.rstrip('/')}/auth/v1/user",
                    headers={
                        "apikey": self.service_key,
                        "Authorization": f"Bearer {token}",
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"Identity provider request failed: {e}")
            return None

        if response.status_code != 200:
            logger.info(f"Identity provider rejected token: {response.status_code}")
            return None

        try:
            data = response.json()
            return Identity(id=str(data["id"]), email=data.get("email") or "")
        except (ValueError, KeyError, TypeError):
            logger.error("Identity provider returned an unexpected user payload")
            return None


identity_client = IdentityProviderClient()


def get_stores(request: Request) -> StoreProvider:
    """The store provider chosen at startup."""
    return request.app.state.stores


async def get_store(stores: StoreProvider = Depends(get_stores)) -> AsyncIterator[Store]:
    """Dependency for a persistence gateway scoped to one request."""
    async with stores.session() as store:
        yield store


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def load_profile(store: Store, identity: Identity) -> UserProfile:
    """Fetch the caller's profile, creating it with free-tier defaults on first sight."""
    user = await store.get_user(identity.id)
    if user is not None:
        return user

    email = identity.email or f"{identity.id}@demo.com"
    try:
        user = await store.create_user(identity.id, email, name=email.split("@")[0])
        logger.info(f"Created profile for user {identity.id}")
    except ValidationFailedError:
        # Another request created it first
        user = await store.get_user(identity.id)
        if user is None:
            raise
    return user


class AuthenticatedUser:
    """Dependency resolving the caller to a user profile."""

    def __init__(self, client: Optional[IdentityProviderClient] = None):
        self.client = client

    async def resolve_identity(
        self,
        authorization: Optional[str],
        dev_user_id: Optional[str],
    ) -> Optional[Identity]:
        if dev_user_id and settings.allow_dev_auth_headers:
            return Identity.from_dev_header(dev_user_id.strip())

        token = _bearer_token(authorization)
        if token is None:
            return None
        return await (self.client or identity_client).verify_token(token)

    async def __call__(
        self,
        request: Request,
        authorization: Optional[str] = Header(None),
        x_demo_user_id: Optional[str] = Header(None, alias="x-demo-user-id"),
        x_user_id: Optional[str] = Header(None, alias="x-user-id"),
        store: Store = Depends(get_store),
    ) -> UserProfile:
        identity = await self.resolve_identity(authorization, x_demo_user_id or x_user_id)
        if identity is None:
            raise AuthenticationError("Unauthorized")

        user = await load_profile(store, identity)

        # Store in request state for the rate limiter
        request.state.user = user
        return user


require_user = AuthenticatedUser()


def ensure_owner(resource, user: UserProfile) -> None:
    """Raise 403 unless `resource` belongs to `user`."""
    if resource.user_id != user.id:
        raise PermissionDeniedError("Access denied")
