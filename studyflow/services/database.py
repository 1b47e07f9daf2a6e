"""Persistence gateway over the relational store."""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import DataError, DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.db.models import (
    Document,
    Flashcard,
    ProcessingStatus,
    Story,
    StudySession,
    Subscription,
    UserProfile,
    WebhookEvent,
)
from studyflow.errors import AppError, StoreUnavailableError, ValidationFailedError

logger = logging.getLogger(__name__)


class DatabaseService:
    """
    Typed create/read/update operations for every record kind.

    Each write is committed on its own; nothing spans two record kinds.
    Reads by owner return newest first and take a result cap.
    """

    backend = "database"

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _translate(self, e: DBAPIError, action: str) -> Optional[AppError]:
        """Roll back and map a driver error onto the service taxonomy."""
        await self.db.rollback()
        if isinstance(e, IntegrityError):
            logger.warning(f"Integrity violation: {e.orig}")
            return ValidationFailedError("Referenced record does not exist or is not unique")
        if isinstance(e, DataError):
            logger.warning(f"Rejected value: {e.orig}")
            return ValidationFailedError("A field value is invalid or too long")
        if isinstance(e, (OperationalError, InterfaceError)) or e.connection_invalidated:
            logger.error(f"Database {action} failed: {e}")
            return StoreUnavailableError("Database connection failed")
        return None

    async def _commit(self, *refresh: Any) -> None:
        """Commit, translating driver errors into the service taxonomy."""
        try:
            await self.db.commit()
            for obj in refresh:
                await self.db.refresh(obj)
        except DBAPIError as e:
            error = await self._translate(e, "write")
            if error is None:
                raise
            raise error from e

    async def _execute(self, statement):
        try:
            return await self.db.execute(statement)
        except DBAPIError as e:
            error = await self._translate(e, "query")
            if error is None:
                raise
            raise error from e

    async def validate_database(self) -> bool:
        """
        Check the connection and that the core tables answer a select.

        Raises StoreUnavailableError when the database cannot be reached and
        returns False when it answers but the schema is missing.
        """
        await self._execute(text("SELECT 1"))
        try:
            for model in (UserProfile, Document, Flashcard):
                await self.db.execute(select(model).limit(1))
        except DBAPIError as e:
            await self.db.rollback()
            logger.warning(f"Database schema check failed: {e}")
            return False
        return True

    # ============== Users ==============

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        result = await self._execute(select(UserProfile).where(UserProfile.id == user_id))
        return result.scalar_one_or_none()

    async def create_user(
        self,
        user_id: str,
        email: str,
        name: Optional[str] = None,
        is_premium: bool = False,
    ) -> UserProfile:
        user = UserProfile(
            id=user_id,
            email=email,
            name=name,
            is_premium=is_premium,
            documents_processed=0,
            stories_generated=0,
        )
        self.db.add(user)
        await self._commit(user)
        return user

    async def update_user(self, user_id: str, **updates) -> Optional[UserProfile]:
        """Overwrite the given profile fields; returns None for an unknown user."""
        user = await self.get_user(user_id)
        if user is None:
            return None
        for field, value in updates.items():
            setattr(user, field, value)
        await self._commit(user)
        return user

    async def increment_stories_generated(self, user_id: str) -> None:
        await self._execute(
            update(UserProfile)
            .where(UserProfile.id == user_id)
            .values(stories_generated=UserProfile.stories_generated + 1)
        )
        await self._commit()

    async def increment_documents_processed(self, user_id: str) -> None:
        await self._execute(
            update(UserProfile)
            .where(UserProfile.id == user_id)
            .values(documents_processed=UserProfile.documents_processed + 1)
        )
        await self._commit()

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
        document = Document(
            user_id=user_id,
            title=title,
            file_name=file_name,
            file_url=file_url,
            file_size=file_size,
            content_type=content_type,
            processing_status=ProcessingStatus.PENDING.value,
        )
        if document_id:
            document.id = document_id
        self.db.add(document)
        await self._commit(document)
        return document

    async def get_document(self, document_id: str) -> Optional[Document]:
        result = await self._execute(select(Document).where(Document.id == document_id))
        return result.scalar_one_or_none()

    async def get_user_documents(self, user_id: str, limit: int = 50) -> list[Document]:
        result = await self._execute(
            select(Document)
            .where(Document.user_id == user_id)
            .order_by(Document.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def update_document(self, document_id: str, **updates) -> Optional[Document]:
        document = await self.get_document(document_id)
        if document is None:
            return None
        for field, value in updates.items():
            setattr(document, field, value)
        await self._commit(document)
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
        flashcard = Flashcard(
            document_id=document_id,
            user_id=user_id,
            front=front,
            back=back,
            hint=hint,
            difficulty=difficulty,
            category=category,
        )
        self.db.add(flashcard)
        await self._commit(flashcard)
        return flashcard

    async def get_user_flashcards(self, user_id: str, limit: int = 100) -> list[Flashcard]:
        result = await self._execute(
            select(Flashcard)
            .where(Flashcard.user_id == user_id)
            .order_by(Flashcard.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_flashcards_by_document(
        self, document_id: str, user_id: str, limit: int = 500
    ) -> list[Flashcard]:
        result = await self._execute(
            select(Flashcard)
            .where(Flashcard.document_id == document_id, Flashcard.user_id == user_id)
            .order_by(Flashcard.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def delete_document_flashcards(self, document_id: str) -> int:
        result = await self._execute(
            delete(Flashcard).where(Flashcard.document_id == document_id)
        )
        await self._commit()
        return result.rowcount or 0

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
            user_id=user_id,
            document_id=document_id,
            session_type=session_type,
            cards_studied=cards_studied,
            correct_answers=correct_answers,
            session_duration=session_duration,
        )
        self.db.add(session)
        await self._commit(session)
        return session

    async def get_user_study_sessions(self, user_id: str, limit: int = 50) -> list[StudySession]:
        result = await self._execute(
            select(StudySession)
            .where(StudySession.user_id == user_id)
            .order_by(StudySession.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

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
            user_id=user_id,
            input_text=input_text,
            output_story=output_story,
            narration_mode=narration_mode,
            source=source,
        )
        self.db.add(story)
        await self._commit(story)
        return story

    async def get_story(self, story_id: str) -> Optional[Story]:
        result = await self._execute(select(Story).where(Story.id == story_id))
        return result.scalar_one_or_none()

    async def get_user_stories(self, user_id: str, limit: int = 50) -> list[Story]:
        result = await self._execute(
            select(Story)
            .where(Story.user_id == user_id)
            .order_by(Story.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def update_story(self, story_id: str, **updates) -> Optional[Story]:
        story = await self.get_story(story_id)
        if story is None:
            return None
        for field, value in updates.items():
            setattr(story, field, value)
        await self._commit(story)
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
        """Create the ledger row for a processor subscription or refresh it."""
        result = await self._execute(
            select(Subscription).where(
                Subscription.external_subscription_id == external_subscription_id
            )
        )
        subscription = result.scalar_one_or_none()
        if subscription is None:
            subscription = Subscription(
                user_id=user_id,
                external_subscription_id=external_subscription_id,
            )
            self.db.add(subscription)

        subscription.status = status
        subscription.plan_type = plan_type
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

        await self._commit(subscription)
        return subscription

    async def get_user_subscriptions(self, user_id: str, limit: int = 20) -> list[Subscription]:
        result = await self._execute(
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def has_webhook_event(self, event_id: str) -> bool:
        result = await self._execute(
            select(WebhookEvent.event_id).where(WebhookEvent.event_id == event_id)
        )
        return result.scalar_one_or_none() is not None

    async def record_webhook_event(self, event_id: str, event_type: str) -> bool:
        """Remember a webhook delivery; False when it was already recorded."""
        existing = await self._execute(
            select(WebhookEvent).where(WebhookEvent.event_id == event_id)
        )
        if existing.scalar_one_or_none() is not None:
            return False
        self.db.add(WebhookEvent(event_id=event_id, event_type=event_type))
        try:
            await self._commit()
        except ValidationFailedError:
            # A concurrent delivery of the same event won the insert
            return False
        return True
