"""Document upload and listing routes."""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, UploadFile

from studyflow.auth.security import ensure_owner, get_store, get_stores, require_user
from studyflow.config import get_settings
from studyflow.db.models import UserProfile, new_id
from studyflow.errors import NotFoundError, ValidationFailedError
from studyflow.schemas.schemas import DocumentResponse, DocumentUploadResponse
from studyflow.services.documents import dispatch_document_processing
from studyflow.services.storage import storage_service
from studyflow.services.store import Store, StoreProvider

router = APIRouter(prefix="/api/documents", tags=["Documents"])

settings = get_settings()
logger = logging.getLogger(__name__)

PDF_CONTENT_TYPES = ("application/pdf",)


@router.get(
    "",
    response_model=list[DocumentResponse],
    summary="List documents",
    description="The caller's documents, newest first.",
)
async def list_documents(
    user: UserProfile = Depends(require_user),
    store: Store = Depends(get_store),
):
    return await store.get_user_documents(user.id, limit=50)


@router.post(
    "",
    response_model=DocumentUploadResponse,
    summary="Upload a PDF",
    description="Store a PDF and start extracting, summarizing and authoring flashcards for it.",
)
async def upload_document(
    background_tasks: BackgroundTasks,
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    user: UserProfile = Depends(require_user),
    store: Store = Depends(get_store),
    stores: StoreProvider = Depends(get_stores),
):
    """
    Upload a document.

    Responds as soon as the file is stored; poll `GET /api/documents/{id}`
    until `processing_status` is `completed` or `failed`.
    """
    if file is None or not file.filename:
        raise ValidationFailedError("No file provided")

    if file.content_type not in PDF_CONTENT_TYPES:
        raise ValidationFailedError("Only PDF files are supported")

    content = await file.read()
    if not content:
        raise ValidationFailedError("Uploaded file is empty")
    if len(content) > settings.max_upload_bytes:
        raise ValidationFailedError(
            f"File too large. Maximum size is {settings.max_upload_bytes // (1024 * 1024)} MB"
        )

    document_id = new_id()
    file_path = await storage_service.upload_document(
        content,
        user_id=user.id,
        document_id=document_id,
        filename=file.filename,
        content_type=file.content_type,
    )

    document = await store.create_document(
        user_id=user.id,
        title=(title or "").strip() or file.filename.removesuffix(".pdf"),
        file_name=file.filename,
        file_url=file_path,
        file_size=len(content),
        content_type="pdf",
        document_id=document_id,
    )

    mode = dispatch_document_processing(document.id, stores, background_tasks)
    logger.info(f"Document {document.id} uploaded by {user.id}, processing {mode}")

    return DocumentUploadResponse(
        message="Document uploaded successfully",
        document=DocumentResponse.model_validate(document),
    )


@router.get(
    "/{document_id}",
    response_model=DocumentResponse,
    summary="Get a document",
)
async def get_document(
    document_id: str,
    user: UserProfile = Depends(require_user),
    store: Store = Depends(get_store),
):
    document = await store.get_document(document_id)
    if document is None:
        raise NotFoundError("Document not found")
    ensure_owner(document, user)
    return document
