"""Profile and plan routes for the current user."""

from fastapi import APIRouter, Depends

from studyflow.auth.security import require_user
from studyflow.db.models import UserProfile
from studyflow.schemas.schemas import SubscriptionStatusResponse, UserProfileResponse

router = APIRouter(prefix="/api", tags=["Users"])


@router.get(
    "/me",
    response_model=UserProfileResponse,
    summary="Current user",
    description="The caller's profile, created with free-tier defaults on first use.",
)
async def get_me(user: UserProfile = Depends(require_user)):
    return user


@router.get(
    "/subscription",
    response_model=SubscriptionStatusResponse,
    summary="Subscription status",
)
async def get_subscription(user: UserProfile = Depends(require_user)):
    return SubscriptionStatusResponse(
        isPremium=user.is_premium,
        status=user.subscription_status,
        subscriptionId=user.subscription_id,
        subscriptionEndDate=user.subscription_end_date,
    )
