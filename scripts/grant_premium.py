"""Script to grant or revoke premium for a user by hand (support tool)."""

import argparse
import asyncio

from studyflow.db.models import SubscriptionStatus
from studyflow.db.session import async_session_maker
from studyflow.services.database import DatabaseService


async def main(user_id: str, revoke: bool):
    """Flip a user's plan without a payment event."""
    async with async_session_maker() as db:
        store = DatabaseService(db)
        status = SubscriptionStatus.CANCELLED if revoke else SubscriptionStatus.ACTIVE
        user = await store.update_user(
            user_id,
            is_premium=not revoke,
            subscription_status=status.value,
        )

    if user is None:
        print(f"No profile for user {user_id}; they must sign in once first.")
        return 1

    print("\n" + "=" * 60)
    print(f"USER {user.id} ({user.email})")
    print("=" * 60)
    print(f"Premium: {user.is_premium}")
    print(f"Status:  {user.subscription_status}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("user_id", help="Identity provider user id")
    parser.add_argument("--revoke", action="store_true", help="Return the user to the free plan")
    args = parser.parse_args()
    raise SystemExit(asyncio.run(main(args.user_id, args.revoke)))
