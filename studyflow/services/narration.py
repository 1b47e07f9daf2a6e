"""Narration pipeline: rewrite free text as narration in one of the narration modes."""

import logging

from studyflow.config import get_settings
from studyflow.db.models import NarrationMode, Story, StorySource, UserProfile
from studyflow.errors import LimitReachedError, UpstreamError, ValidationFailedError
from studyflow.services.llm import LLMClient, LLMError, llm_client
from studyflow.services.store import Store

settings = get_settings()
logger = logging.getLogger(__name__)

_SHARED_RULES = """
Rules:
- Write for listening: short sentences, no markdown, no bullet points, no headings.
- Stay faithful to the facts in the input; do not invent data, dates or names.
- If the input is only a topic, explain that topic accurately.
- Keep the narration under 600 words."""

NARRATION_PROMPTS: dict[NarrationMode, str] = {
    NarrationMode.FOCUS: (
        "You are a clear, structured university lecturer. Turn the user's input into a "
        "focused spoken lecture: state the topic, walk through the key ideas in a logical "
        "order, define every term when it first appears, and close with a two-sentence recap."
        + _SHARED_RULES
    ),
    NarrationMode.BALANCED: (
        "You are a friendly study guide talking one-on-one with a student. Explain the "
        "user's input conversationally, mixing clear explanation with everyday examples "
        "and the occasional question to the listener, then end with the one idea worth "
        "remembering."
        + _SHARED_RULES
    ),
    NarrationMode.ENGAGING: (
        "You are a gifted storyteller. Turn the user's input into a vivid narrative with a "
        "setting, characters and a small arc, so that every key fact is carried by the story "
        "and the listener learns the material without noticing."
        + _SHARED_RULES
    ),
    NarrationMode.DOC_THEATRE: (
        "You write scripts for an educational podcast with two hosts, ALEX and SAM. Turn the "
        "user's input into their conversation: ALEX explains, SAM asks the questions a "
        "curious student would ask. Prefix every line with the speaker's name and a colon."
        + _SHARED_RULES
    ),
}


def input_ceiling(user: UserProfile) -> int:
    return settings.premium_max_input_chars if user.is_premium else settings.free_max_input_chars


def check_narration_allowed(user: UserProfile, input_text: str) -> str:
    """
    Validate a narration request against the caller's plan.

    Returns the trimmed input. The length ceiling is checked before the story
    quota, and both before any model call.
    """
    text = (input_text or "").strip()
    if not text:
        raise ValidationFailedError("Input text is required")

    max_length = input_ceiling(user)
    if len(text) > max_length:
        plan = "Premium" if user.is_premium else "Free"
        raise ValidationFailedError(
            f"Text too long. {plan} users are limited to {max_length} characters. "
            f"Your text is {len(text)} characters."
        )

    if not user.is_premium and (user.stories_generated or 0) >= settings.free_story_limit:
        raise LimitReachedError(
            f"Free users are limited to {settings.free_story_limit} stories. "
            "Upgrade to premium for unlimited stories!"
        )
    return text


async def generate_narration(
    store: Store,
    user: UserProfile,
    input_text: str,
    mode: NarrationMode = NarrationMode.BALANCED,
    source: StorySource = StorySource.API,
    llm: LLMClient = llm_client,
) -> Story:
    """Generate, persist and count one narration for `user`."""
    text = check_narration_allowed(user, input_text)
    logger.info(f"Story generation for user {user.id}, mode {mode.value}")

    try:
        story_text = await llm.complete(
            NARRATION_PROMPTS[mode],
            f'User input: "{text}"',
            max_tokens=800,
            temperature=0.7,
        )
    except LLMError as e:
        logger.error(f"Story generation failed for user {user.id}: {e}")
        raise UpstreamError(
            "Story generation failed. Please check the language model configuration."
        ) from e

    story = await store.create_story(
        user_id=user.id,
        input_text=text,
        output_story=story_text,
        narration_mode=mode.value,
        source=source.value,
    )
    await store.increment_stories_generated(user.id)
    logger.info(f"Story {story.id} saved for user {user.id}")
    return story
