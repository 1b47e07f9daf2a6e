"""Study session routes."""

from fastapi import APIRouter, Depends, Query, status

from studyflow.auth.security import ensure_owner, get_store, require_user
from studyflow.db.models import UserProfile
from studyflow.errors import NotFoundError
from studyflow.schemas.schemas import StudySessionCreateRequest, StudySessionResponse
from studyflow.services.store import Store

router = APIRouter(prefix="/api/study-sessions", tags=["Study Sessions"])


@router.get(
    "",
    response_model=list[StudySessionResponse],
    summary="List study sessions",
)
async def list_study_sessions(
    limit: int = Query(50, ge=1, le=200),
    user: UserProfile = Depends(require_user),
    store: Store = Depends(get_store),
):
    return await store.get_user_study_sessions(user.id, limit=limit)


@router.post(
    "",
    response_model=StudySessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a study session",
)
async def create_study_session(
    request: StudySessionCreateRequest,
    user: UserProfile = Depends(require_user),
    store: Store = Depends(get_store),
):
    if request.document_id:
        document = await store.get_document(request.document_id)
        if document is None:
            raise NotFoundError("Document not found")
        ensure_owner(document, user)

    return await store.create_study_session(
        user_id=user.id,
        document_id=request.document_id,
        session_type=request.session_type,
        cards_studied=request.cards_studied,
        correct_answers=request.correct_answers,
        session_duration=request.session_duration,
    )
