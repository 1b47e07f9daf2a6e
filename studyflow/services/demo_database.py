"""In-process fallback store used when the database is unreachable.

Everything lives in per-kind dicts on the instance and is lost on restart.
It returns the same model classes as the database gateway (detached, never
added to a session) so routes and schemas do not care which backend is active.
"""

import logging
from datetime import datetime
from typing import Optional

from studyflow.db.models import (
    Document,
    Flashcard,
    ProcessingStatus,
    Story,
    StudySession,
    Subscription,
    SubscriptionStatus,
    UserProfile,
    new_id,
    utcnow,
)

logger = logging.getLogger(__name__)


def _demo_email(user_id: str) -> str:
    return user_id if "@" in user_id else f"{user_id}@demo.com"


def _newest_first(rows, limit: int):
    # Rows arrive in insertion order; reversing first keeps ties newest first
    return sorted(reversed(list(rows)), key=lambda r: r.created_at, reverse=True)[:limit]


class DemoDatabase:
    """Non-persistent implementation of the persistence gateway."""

    backend = "demo"

    def __init__(self):
        self.users: dict[str, UserProfile] = {}
        self.documents: dict[str, Document] = {}
        self.flashcards: dict[str, Flashcard] = {}
        self.study_sessions: dict[str, StudySession] = {}
        self.stories: dict[str, Story] = {}
        self.subscriptions: dict[str, Subscription] = {}
        self.webhook_events: set[str] = set()

    def clear(self) -> None:
        self.__init__()

    async def validate_database(self) -> bool:
        return True

    # ============== Users ==============

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        """Look up a user, creating a free-tier demo user on first access."""
        user = self.users.get(user_id)
        if user is None:
            email = _demo_email(user_id)
            user = await self.create_user(user_id, email, name=email.split("@")[0])
        return user

    async def create_user(
        self,
        user_id: str,
        email: str,
        name: Optional[str] = None,
        is_premium: bool = False,
    ) -> UserProfile:
        now = utcnow()
        user = UserProfile(
            id=user_id,
            email=email,
            name=name or email.split("@")[0],
            is_premium=is_premium,
            documents_processed=0,
            stories_generated=0,
            subscription_status=SubscriptionStatus.FREE.value,
            created_at=now,
            updated_at=now,
        )
        self.users[user_id] = user
        return user

    async def update_user(self, user_id: str, **updates) -> Optional[UserProfile]:
        user = self.users.get(user_id)
        if user is None:
            return None
        for field, value in updates.items():
            setattr(user, field, value)
        user.updated_at = utcnow()
        return user

    async def increment_stories_generated(self, user_id: str) -> None:
        user = await self.get_user(user_id)
        user.stories_generated = (user.stories_generated or 0) + 1

    async def increment_documents_processed(self, user_id: str) -> None:
        user = await self.get_user(user_id)
        user.documents_processed = (user.documents_processed or 0) + 1

    # ============== Documents ==============

    async def create_document(
        self,
        user_id: str,
        title: str,
        file_name: str,
        file_url: str,
        file_size: Optional[int] = None,
        content_type: str = "pdf",
        document_id: Optional[str] = None,
    ) -> Document:
        now = utcnow()
        document = Document(
            id=document_id or new_id(),
            user_id=user_id,
            title=title,
            file_name=file_name,
            file_url=file_url,
            file_size=file_size,
            content_type=content_type,
            processing_status=ProcessingStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        self.documents[document.id] = document
        return document

    async def get_document(self, document_id: str) -> Optional[Document]:
        return self.documents.get(document_id)

    async def get_user_documents(self, user_id: str, limit: int = 50) -> list[Document]:
        rows = [d for d in self.documents.values() if d.user_id == user_id]
        return _newest_first(rows, limit)

    async def update_document(self, document_id: str, **updates) -> Optional[Document]:
        document = self.documents.get(document_id)
        if document is None:
            return None
        for field, value in updates.items():
            setattr(document, field, value)
        document.updated_at = utcnow()
        return document

    # ============== Flashcards ==============

    async def create_flashcard(
        self,
        document_id: str,
        user_id: str,
        front: str,
        back: str,
        hint: Optional[str] = None,
        difficulty: str = "medium",
        category: Optional[str] = None,
    ) -> Flashcard:
        now = utcnow()
        flashcard = Flashcard(
            id=new_id(),
            document_id=document_id,
            user_id=user_id,
            front=front,
            back=back,
            hint=hint,
            difficulty=difficulty,
            category=category,
            created_at=now,
            updated_at=now,
        )
        self.flashcards[flashcard.id] = flashcard
        return flashcard

    async def get_user_flashcards(self, user_id: str, limit: int = 100) -> list[Flashcard]:
        rows = [f for f in self.flashcards.values() if f.user_id == user_id]
        return _newest_first(rows, limit)

    async def get_flashcards_by_document(
        self, document_id: str, user_id: str, limit: int = 500
    ) -> list[Flashcard]:
        rows = [
            f
            for f in self.flashcards.values()
            if f.document_id == document_id and f.user_id == user_id
        ]
        return _newest_first(rows, limit)

    async def delete_document_flashcards(self, document_id: str) -> int:
        doomed = [k for k, f in self.flashcards.items() if f.document_id == document_id]
        for key in doomed:
            del self.flashcards[key]
        return len(doomed)

    # ============== Study sessions ==============

    async def create_study_session(
        self,
        user_id: str,
        document_id: Optional[str] = None,
        session_type: str = "flashcards",
        cards_studied: int = 0,
        correct_answers: int = 0,
        session_duration: int = 0,
    ) -> StudySession:
        session = StudySession(
            id=new_id(),
            user_id=user_id,
            document_id=document_id,
            session_type=session_type,
            cards_studied=cards_studied,
            correct_answers=correct_answers,
            session_duration=session_duration,
            created_at=utcnow(),
        )
        self.study_sessions[session.id] = session
        return session

    async def get_user_study_sessions(self, user_id: str, limit: int = 50) -> list[StudySession]:
        rows = [s for s in self.study_sessions.values() if s.user_id == user_id]
        return _newest_first(rows, limit)

    # ============== Stories ==============

    async def create_story(
        self,
        user_id: str,
        input_text: str,
        output_story: str,
        narration_mode: str,
        source: str = "api",
    ) -> Story:
        story = Story(
            id=new_id(),
            user_id=user_id,
            input_text=input_text,
            output_story=output_story,
            narration_mode=narration_mode,
            source=source,
            audio_url=None,
            created_at=utcnow(),
        )
        self.stories[story.id] = story
        return story

    async def get_story(self, story_id: str) -> Optional[Story]:
        return self.stories.get(story_id)

    async def get_user_stories(self, user_id: str, limit: int = 50) -> list[Story]:
        rows = [s for s in self.stories.values() if s.user_id == user_id]
        return _newest_first(rows, limit)

    async def update_story(self, story_id: str, **updates) -> Optional[Story]:
        story = self.stories.get(story_id)
        if story is None:
            return None
        for field, value in updates.items():
            setattr(story, field, value)
        return story

    # ============== Subscriptions ==============

    async def upsert_subscription(
        self,
        user_id: str,
        external_subscription_id: str,
        status: str,
        plan_type: str = "premium",
        external_order_id: Optional[str] = None,
        external_product_id: Optional[str] = None,
        current_period_start: Optional[datetime] = None,
        current_period_end: Optional[datetime] = None,
        amount: Optional[int] = None,
        currency: Optional[str] = None,
    ) -> Subscription:
        now = utcnow()
        subscription = self.subscriptions.get(external_subscription_id)
        if subscription is None:
            subscription = Subscription(
                id=new_id(),
                user_id=user_id,
                external_subscription_id=external_subscription_id,
                amount=0,
                currency="USD",
                created_at=now,
            )
            self.subscriptions[external_subscription_id] = subscription

        subscription.status = status
        subscription.plan_type = plan_type
        subscription.updated_at = now
        if external_order_id is not None:
            subscription.external_order_id = external_order_id
        if external_product_id is not None:
            subscription.external_product_id = external_product_id
        if current_period_start is not None:
            subscription.current_period_start = current_period_start
        if current_period_end is not None:
            subscription.current_period_end = current_period_end
        if amount is not None:
            subscription.amount = amount
        if currency is not None:
            subscription.currency = currency
        return subscription

    async def get_user_subscriptions(self, user_id: str, limit: int = 20) -> list[Subscription]:
        rows = [s for s in self.subscriptions.values() if s.user_id == user_id]
        return _newest_first(rows, limit)

    async def record_webhook_event(self, event_id: str, event_type: str) -> bool:
        if event_id in self.webhook_events:
            return False
        self.webhook_events.add(event_id)
        return True

    async def has_webhook_event(self, event_id: str) -> bool:
        return event_id in self.webhook_events
