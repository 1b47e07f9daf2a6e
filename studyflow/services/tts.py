"""Speech synthesis with a primary and a secondary vendor."""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from studyflow.config import get_settings, is_configured
from studyflow.errors import UpstreamError

settings = get_settings()
logger = logging.getLogger(__name__)

BROWSER_TTS = "browser-tts"

ELEVENLABS_URL = "https://api.elevenlabs.io/v1/text-to-speech"
CARTESIA_URL = "https://api.cartesia.ai/tts/bytes"


class SpeechError(UpstreamError):
    """A speech vendor call failed."""


@dataclass
class SpeechResult:
    """Synthesized audio and the vendor that produced it."""

    audio: bytes
    content_type: str
    provider: str


class ElevenLabsSynthesizer:
    """Primary vendor; returns MP3."""

    name = "elevenlabs"

    def __init__(self, api_key: Optional[str] = None, voice_id: Optional[str] = None, model_id: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.elevenlabs_api_key
        self.voice_id = voice_id or settings.elevenlabs_voice_id
        self.model_id = model_id or settings.elevenlabs_model_id

    @property
    def is_configured(self) -> bool:
        return is_configured(self.api_key)

    async def synthesize(self, text: str) -> SpeechResult:
        payload = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": {"stability": 0.5, "similarity_boost": 0.5},
        }
        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self.api_key,
        }
        async with httpx.AsyncClient(timeout=settings.tts_timeout_seconds) as client:
            response = await client.post(f"{ELEVENLABS_URL}/{self.voice_id}", json=payload, headers=headers)
        if response.status_code >= 400:
            raise SpeechError(f"ElevenLabs API error: {response.status_code}")
        if not response.content:
            raise SpeechError("ElevenLabs returned no audio")
        return SpeechResult(response.content, "audio/mpeg", self.name)


class CartesiaSynthesizer:
    """Secondary vendor; returns 44.1 kHz float WAV."""

    name = "cartesia"

    def __init__(self, api_key: Optional[str] = None, voice_id: Optional[str] = None, model_id: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.cartesia_api_key
        self.voice_id = voice_id or settings.cartesia_voice_id
        self.model_id = model_id or settings.cartesia_model_id

    @property
    def is_configured(self) -> bool:
        return is_configured(self.api_key)

    async def synthesize(self, text: str) -> SpeechResult:
        payload = {
            "model_id": self.model_id,
            "transcript": text,
            "voice": {"mode": "id", "id": self.voice_id},
            "output_format": {
                "container": "wav",
                "encoding": "pcm_f32le",
                "sample_rate": 44100,
            },
        }
        headers = {
            "X-API-Key": self.api_key,
            "Cartesia-Version": settings.cartesia_version,
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=settings.tts_timeout_seconds) as client:
            response = await client.post(CARTESIA_URL, json=payload, headers=headers)
        if response.status_code >= 400:
            raise SpeechError(f"Cartesia API error: {response.status_code}")
        if not response.content:
            raise SpeechError("Cartesia returned no audio")
        return SpeechResult(response.content, "audio/wav", self.name)


class SpeechService:
    """
    Try the primary vendor, then the secondary one.

    Callers check `use_browser_tts` first: when the primary key is unset the
    client speaks the text itself and no vendor is contacted.
    """

    def __init__(
        self,
        primary: Optional[ElevenLabsSynthesizer] = None,
        secondary: Optional[CartesiaSynthesizer] = None,
    ):
        self.primary = primary or ElevenLabsSynthesizer()
        self.secondary = secondary or CartesiaSynthesizer()

    @property
    def use_browser_tts(self) -> bool:
        return not self.primary.is_configured

    async def synthesize(self, text: str) -> SpeechResult:
        try:
            return await self.primary.synthesize(text)
        except (SpeechError, httpx.HTTPError) as e:
            logger.warning(f"ElevenLabs TTS failed, falling back to Cartesia: {e}")

        if not self.secondary.is_configured:
            raise SpeechError("ElevenLabs TTS failed and Cartesia is not configured")

        try:
            return await self.secondary.synthesize(text)
        except (SpeechError, httpx.HTTPError) as e:
            logger.error(f"Cartesia TTS also failed: {e}")
            raise SpeechError("Both ElevenLabs and Cartesia TTS failed") from e


# Singleton instance
speech_service = SpeechService()
