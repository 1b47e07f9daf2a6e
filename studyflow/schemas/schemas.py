"""Pydantic schemas for request/response validation."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

NarrationModeName = Literal["focus", "balanced", "engaging", "doc_theatre"]
DifficultyName = Literal["easy", "medium", "hard"]

# Width of the flashcard category column
CATEGORY_MAX_LENGTH = 255


class CamelModel(BaseModel):
    """Request body accepting the client's camelCase keys or snake_case."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


# ============== User Schemas ==============


class UserProfileResponse(BaseModel):
    """A user's profile row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: Optional[str] = None
    is_premium: bool = False
    documents_processed: int = 0
    stories_generated: int = 0
    subscription_status: str = "free"
    subscription_id: Optional[str] = None
    subscription_end_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SubscriptionStatusResponse(BaseModel):
    """Plan summary for the current user."""

    isPremium: bool
    status: str
    subscriptionId: Optional[str] = None
    subscriptionEndDate: Optional[datetime] = None


# ============== Document Schemas ==============


class DocumentResponse(BaseModel):
    """A document and its processing state."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    file_name: str
    file_url: str
    file_size: Optional[int] = None
    content_type: str = "pdf"
    extracted_text: Optional[str] = None
    summary: Optional[str] = None
    processing_status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DocumentUploadResponse(BaseModel):
    """Response after accepting an upload; processing continues afterwards."""

    message: str
    document: DocumentResponse


# ============== Flashcard Schemas ==============


class FlashcardDraft(BaseModel):
    """One flashcard as authored by the language model."""

    model_config = ConfigDict(str_strip_whitespace=True)

    front: str = Field(..., min_length=1)
    back: str = Field(..., min_length=1)
    hint: Optional[str] = None
    difficulty: DifficultyName = "medium"
    category: Optional[str] = None

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, v):
        value = str(v or "").strip().lower()
        return value if value in ("easy", "medium", "hard") else "medium"

    @field_validator("hint", "category", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("category")
    @classmethod
    def clip_category(cls, v):
        return v[:CATEGORY_MAX_LENGTH] if v else v


class FlashcardCreateRequest(CamelModel):
    """Request to add a flashcard to a document by hand."""

    document_id: str = Field(..., alias="documentId", min_length=1)
    front: str = Field(..., min_length=1)
    back: str = Field(..., min_length=1)
    hint: Optional[str] = None
    difficulty: DifficultyName = "medium"
    category: Optional[str] = Field(None, max_length=CATEGORY_MAX_LENGTH)


class FlashcardResponse(BaseModel):
    """A stored flashcard."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    document_id: str
    user_id: str
    front: str
    back: str
    hint: Optional[str] = None
    difficulty: str = "medium"
    category: Optional[str] = None
    created_at: Optional[datetime] = None


class FlashcardCreateResponse(BaseModel):
    message: str
    flashcard: FlashcardResponse


# ============== Study Session Schemas ==============


class StudySessionCreateRequest(CamelModel):
    """Request to record a finished study session."""

    document_id: Optional[str] = Field(None, alias="documentId")
    session_type: str = Field("flashcards", alias="sessionType", max_length=32)
    cards_studied: int = Field(0, alias="cardsStudied", ge=0)
    correct_answers: int = Field(0, alias="correctAnswers", ge=0)
    session_duration: int = Field(0, alias="sessionDuration", ge=0, description="Seconds")

    @model_validator(mode="after")
    def check_counts(self) -> "StudySessionCreateRequest":
        if self.correct_answers > self.cards_studied:
            raise ValueError("correctAnswers cannot exceed cardsStudied")
        return self


class StudySessionResponse(BaseModel):
    """A recorded study session."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    document_id: Optional[str] = None
    session_type: str
    cards_studied: int
    correct_answers: int
    session_duration: int
    created_at: Optional[datetime] = None


# ============== Story Schemas ==============


class StoryCreateRequest(CamelModel):
    """Request to generate a narration."""

    input_text: Optional[str] = Field(None, alias="inputText")
    narration_mode: NarrationModeName = Field("balanced", alias="narrationMode")
    source: Literal["api", "pdf"] = "api"


class StoryResponse(BaseModel):
    """A stored narration."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    input_text: str
    output_story: str
    narration_mode: str
    source: str = "api"
    audio_url: Optional[str] = None
    created_at: Optional[datetime] = None


class StoryCreateResponse(BaseModel):
    """Response after generating a narration."""

    story: str
    narrationMode: str
    storyId: str
    savedStory: StoryResponse


class AudioResponse(BaseModel):
    """Where to play a story's audio from.

    `audioUrl` is the literal "browser-tts" when the client should speak the
    text with on-device synthesis.
    """

    audioUrl: str
    message: str


# ============== Webhook Schemas ==============


class WebhookAck(BaseModel):
    success: bool = True


# ============== Health & Misc Schemas ==============


class DatabaseHealth(BaseModel):
    configured: bool
    connected: bool
    error: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok", "degraded", "error"]
    timestamp: datetime
    backend: str
    database: DatabaseHealth


class ErrorResponse(BaseModel):
    """Standard error response."""

    message: str
    code: Optional[str] = None
