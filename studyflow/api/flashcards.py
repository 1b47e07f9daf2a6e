"""Flashcard routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from studyflow.auth.security import ensure_owner, get_store, require_user
from studyflow.db.models import UserProfile
from studyflow.errors import NotFoundError
from studyflow.schemas.schemas import (
    FlashcardCreateRequest,
    FlashcardCreateResponse,
    FlashcardResponse,
)
from studyflow.services.store import Store

router = APIRouter(prefix="/api/flashcards", tags=["Flashcards"])


async def _owned_document(store: Store, document_id: str, user: UserProfile):
    document = await store.get_document(document_id)
    if document is None:
        raise NotFoundError("Document not found")
    ensure_owner(document, user)
    return document


@router.get(
    "",
    response_model=list[FlashcardResponse],
    summary="List flashcards",
    description="A document's deck when `documentId` is given, otherwise all of the caller's cards.",
)
async def list_flashcards(
    document_id: Optional[str] = Query(None, alias="documentId"),
    user: UserProfile = Depends(require_user),
    store: Store = Depends(get_store),
):
    if document_id:
        await _owned_document(store, document_id, user)
        return await store.get_flashcards_by_document(document_id, user.id)
    return await store.get_user_flashcards(user.id, limit=100)


@router.post(
    "",
    response_model=FlashcardCreateResponse,
    summary="Create a flashcard",
)
async def create_flashcard(
    request: FlashcardCreateRequest,
    user: UserProfile = Depends(require_user),
    store: Store = Depends(get_store),
):
    await _owned_document(store, request.document_id, user)
    flashcard = await store.create_flashcard(
        document_id=request.document_id,
        user_id=user.id,
        front=request.front,
        back=request.back,
        hint=request.hint,
        difficulty=request.difficulty,
        category=request.category,
    )
    return FlashcardCreateResponse(
        message="Flashcard created successfully",
        flashcard=FlashcardResponse.model_validate(flashcard),
    )
