"""Database models for the StudyFlow service."""

import enum
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studyflow.db.session import Base


def new_id() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProcessingStatus(str, enum.Enum):
    """Stage of the document ingestion state machine."""

    PENDING = "pending"
    EXTRACTED = "extracted"
    SUMMARIZED = "summarized"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)


# Allowed forward moves; FAILED is reachable from every non-terminal state.
STATUS_TRANSITIONS: dict[ProcessingStatus, set[ProcessingStatus]] = {
    ProcessingStatus.PENDING: {ProcessingStatus.EXTRACTED, ProcessingStatus.FAILED},
    ProcessingStatus.EXTRACTED: {ProcessingStatus.SUMMARIZED, ProcessingStatus.FAILED},
    ProcessingStatus.SUMMARIZED: {ProcessingStatus.COMPLETED, ProcessingStatus.FAILED},
    ProcessingStatus.COMPLETED: set(),
    ProcessingStatus.FAILED: set(),
}


class Difficulty(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class NarrationMode(str, enum.Enum):
    """Preset prompt templates for generated narration."""

    FOCUS = "focus"  # lecture
    BALANCED = "balanced"  # conversational guide
    ENGAGING = "engaging"  # narrative storytelling
    DOC_THEATRE = "doc_theatre"  # multi-speaker podcast


class StorySource(str, enum.Enum):
    API = "api"
    PDF = "pdf"


# Width of the subscription status columns
STATUS_MAX_LENGTH = 32


class SubscriptionStatus(str, enum.Enum):
    FREE = "free"
    ACTIVE = "active"
    INACTIVE = "inactive"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"


class UserProfile(Base):
    """A user as known to the identity provider, plus plan and usage state."""

    __tablename__ = "user_profiles"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(320))
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_premium: Mapped[bool] = mapped_column(Boolean, default=False)
    documents_processed: Mapped[int] = mapped_column(Integer, default=0)
    stories_generated: Mapped[int] = mapped_column(Integer, default=0)

    # Subscription (derived from the latest accepted webhook)
    subscription_status: Mapped[str] = mapped_column(
        String(STATUS_MAX_LENGTH), default=SubscriptionStatus.FREE.value
    )
    subscription_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    subscription_end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )


class Document(Base):
    """An uploaded file and the output of its ingestion pipeline."""

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("user_profiles.id"), index=True
    )
    title: Mapped[str] = mapped_column(Text)
    file_name: Mapped[str] = mapped_column(Text)
    file_url: Mapped[str] = mapped_column(Text)  # Path in object storage
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    content_type: Mapped[str] = mapped_column(String(32), default="pdf")
    extracted_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processing_status: Mapped[str] = mapped_column(
        String(20), default=ProcessingStatus.PENDING.value
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    flashcards: Mapped[list["Flashcard"]] = relationship(
        "Flashcard", back_populates="document", cascade="all, delete-orphan"
    )


class Flashcard(Base):
    """A question/answer card authored from a document."""

    __tablename__ = "flashcards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    document_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("documents.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("user_profiles.id"), index=True
    )
    front: Mapped[str] = mapped_column(Text)
    back: Mapped[str] = mapped_column(Text)
    hint: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    difficulty: Mapped[str] = mapped_column(String(10), default=Difficulty.MEDIUM.value)
    category: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    document: Mapped["Document"] = relationship("Document", back_populates="flashcards")


class StudySession(Base):
    """A finished study session; never mutated."""

    __tablename__ = "study_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("user_profiles.id"), index=True
    )
    document_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("documents.id", ondelete="SET NULL"), nullable=True
    )
    session_type: Mapped[str] = mapped_column(String(32), default="flashcards")
    cards_studied: Mapped[int] = mapped_column(Integer, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0)
    session_duration: Mapped[int] = mapped_column(Integer, default=0)  # seconds
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class Story(Base):
    """Generated narration and, once synthesized, its audio location."""

    __tablename__ = "stories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("user_profiles.id"), index=True
    )
    input_text: Mapped[str] = mapped_column(Text)
    output_story: Mapped[str] = mapped_column(Text)
    narration_mode: Mapped[str] = mapped_column(String(20))
    source: Mapped[str] = mapped_column(String(10), default=StorySource.API.value)
    audio_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class Subscription(Base):
    """Ledger of payment-processor subscriptions, written by webhooks only."""

    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("user_profiles.id"), index=True
    )
    external_subscription_id: Mapped[str] = mapped_column(String(255), unique=True)
    external_order_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    external_product_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(STATUS_MAX_LENGTH), default=SubscriptionStatus.INACTIVE.value
    )
    plan_type: Mapped[str] = mapped_column(String(64), default="premium")
    current_period_start: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    current_period_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    amount: Mapped[int] = mapped_column(Integer, default=0)  # cents
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )


class WebhookEvent(Base):
    """Payment webhook events already applied, keyed by the processor's id."""

    __tablename__ = "webhook_events"

    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(64))
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
