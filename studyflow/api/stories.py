"""Narration and narration audio routes."""

import logging

from fastapi import APIRouter, Depends, Request

from studyflow.auth.security import ensure_owner, get_store, require_user
from studyflow.db.models import NarrationMode, StorySource, UserProfile
from studyflow.errors import NotFoundError
from studyflow.middleware.rate_limit import rate_limit_audio
from studyflow.schemas.schemas import (
    AudioResponse,
    ErrorResponse,
    StoryCreateRequest,
    StoryCreateResponse,
    StoryResponse,
)
from studyflow.services.narration import generate_narration
from studyflow.services.storage import storage_service
from studyflow.services.store import Store
from studyflow.services.tts import BROWSER_TTS, speech_service

router = APIRouter(prefix="/api", tags=["Stories"])

logger = logging.getLogger(__name__)


@router.post(
    "/story",
    response_model=StoryCreateResponse,
    summary="Generate a narration",
    responses={
        400: {"model": ErrorResponse, "description": "Empty or too long input"},
        403: {"model": ErrorResponse, "description": "Free story limit reached (code LIMIT_REACHED)"},
    },
)
async def create_story(
    request: StoryCreateRequest,
    user: UserProfile = Depends(require_user),
    store: Store = Depends(get_store),
):
    """
    Rewrite `inputText` as narration.

    - **narrationMode**: `focus`, `balanced` (default), `engaging` or `doc_theatre`
    - Free users get 600 characters of input and 10 stories; premium users 20000 characters.
    """
    story = await generate_narration(
        store,
        user,
        request.input_text,
        mode=NarrationMode(request.narration_mode),
        source=StorySource(request.source),
    )
    return StoryCreateResponse(
        story=story.output_story,
        narrationMode=story.narration_mode,
        storyId=story.id,
        savedStory=StoryResponse.model_validate(story),
    )


@router.get(
    "/stories",
    response_model=list[StoryResponse],
    summary="Recent narrations",
)
async def list_stories(
    user: UserProfile = Depends(require_user),
    store: Store = Depends(get_store),
):
    return await store.get_user_stories(user.id, limit=10)


async def _owned_story(store: Store, story_id: str, user: UserProfile):
    story = await store.get_story(story_id)
    if story is None:
        raise NotFoundError("Story not found")
    ensure_owner(story, user)
    return story


@router.get(
    "/story/{story_id}",
    response_model=StoryResponse,
    summary="Get a narration",
)
async def get_story(
    story_id: str,
    user: UserProfile = Depends(require_user),
    store: Store = Depends(get_store),
):
    return await _owned_story(store, story_id, user)


@router.post(
    "/story/{story_id}/audio",
    response_model=AudioResponse,
    summary="Synthesize narration audio",
)
@rate_limit_audio()
async def create_story_audio(
    request: Request,
    story_id: str,
    user: UserProfile = Depends(require_user),
    store: Store = Depends(get_store),
):
    """
    Turn a story into speech.

    Returns `audioUrl: "browser-tts"` when no speech vendor is configured,
    so the client can use on-device synthesis.
    """
    story = await _owned_story(store, story_id, user)

    if speech_service.use_browser_tts:
        logger.info("ElevenLabs API key not configured, using browser TTS")
        return AudioResponse(
            audioUrl=BROWSER_TTS,
            message="Using browser text-to-speech (ElevenLabs not configured)",
        )

    result = await speech_service.synthesize(story.output_story)
    audio_url = await storage_service.upload_audio(
        result.audio,
        user_id=user.id,
        story_id=story.id,
        content_type=result.content_type,
    )
    await store.update_story(story.id, audio_url=audio_url)
    logger.info(f"Audio for story {story.id} generated with {result.provider}: {audio_url}")

    return AudioResponse(audioUrl=audio_url, message="Audio generated successfully")
