"""Pytest configuration and fixtures."""

import json
import os
from typing import AsyncGenerator

# Settings are read once at import time
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["DOCUMENT_QUEUE"] = "inline"
os.environ["ALLOW_DEV_AUTH_HEADERS"] = "true"
os.environ["ALLOW_DEMO_FALLBACK"] = "false"
os.environ["IDENTITY_URL"] = "http://identity.test"
os.environ["IDENTITY_SERVICE_KEY"] = "test-service-key"
os.environ["OPENROUTER_API_KEY"] = "test-openrouter-key"
os.environ["ELEVENLABS_API_KEY"] = ""
os.environ["CARTESIA_API_KEY"] = ""
os.environ["PADDLE_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["STORY_RATE_LIMIT"] = "1000/minute"

import fitz
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from studyflow.auth.security import get_stores
from studyflow.db import models  # noqa: F401
from studyflow.db.session import Base
from studyflow.main import app
from studyflow.services.demo_database import DemoDatabase
from studyflow.services.documents import FLASHCARD_PROMPT, SUMMARY_PROMPT
from studyflow.services.llm import llm_client
from studyflow.services.storage import storage_service
from studyflow.services.store import StoreProvider

USER_ID = "student-1"
OTHER_USER_ID = "student-2"

FLASHCARDS = [
    {
        "front": "What is photosynthesis?",
        "back": "The process plants use to turn light, water and CO2 into glucose and oxygen.",
        "hint": "Think about leaves",
        "difficulty": "easy",
        "category": "Biology",
    },
    {
        "front": "Where does photosynthesis happen?",
        "back": "In the chloroplasts.",
        "hint": None,
        "difficulty": "medium",
        "category": "Biology",
    },
    {
        "front": "Which pigment absorbs light?",
        "back": "Chlorophyll.",
        "difficulty": "extreme",
        "category": "Biology",
    },
]


def make_pdf(text: str = "Photosynthesis converts light energy into chemical energy.") -> bytes:
    """Build a one-page PDF holding `text`."""
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text)
    content = doc.tobytes()
    doc.close()
    return content


class FakeLLM:
    """Stands in for the chat completion client; answers by prompt."""

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.flashcards = FLASHCARDS
        self.story = "Photosynthesis is how plants eat sunlight. Light strikes the leaf..."
        self.fail_on: set[str] = set()

    async def complete(self, system_prompt, user_content, max_tokens=800, temperature=0.7):
        from studyflow.services.llm import LLMError

        if system_prompt == SUMMARY_PROMPT:
            kind = "summary"
        elif system_prompt == FLASHCARD_PROMPT:
            kind = "flashcards"
        else:
            kind = "story"
        self.calls.append((kind, user_content))

        if kind in self.fail_on:
            raise LLMError("Language model error: 502")
        if kind == "summary":
            return "**Photosynthesis**: plants convert light into chemical energy."
        if kind == "flashcards":
            return "```json\n" + json.dumps(self.flashcards) + "\n```"
        return self.story

    def count(self, kind: str) -> int:
        return sum(1 for k, _ in self.calls if k == kind)


class FakeStorage:
    """In-memory object storage."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}

    async def upload_document(self, content, user_id, document_id, filename, content_type="application/pdf"):
        path = storage_service.document_path(user_id, document_id, filename)
        self.objects[path] = content
        return path

    async def download_document(self, storage_path):
        return self.objects[storage_path]

    async def upload_audio(self, content, user_id, story_id, content_type="audio/mpeg"):
        path = storage_service.audio_path(user_id, story_id, content_type)
        self.objects[path] = content
        return storage_service.public_url(path)


@pytest.fixture
def fake_llm(monkeypatch) -> FakeLLM:
    fake = FakeLLM()
    monkeypatch.setattr(llm_client, "complete", fake.complete)
    return fake


@pytest.fixture
def fake_storage(monkeypatch) -> FakeStorage:
    fake = FakeStorage()
    monkeypatch.setattr(storage_service, "upload_document", fake.upload_document)
    monkeypatch.setattr(storage_service, "download_document", fake.download_document)
    monkeypatch.setattr(storage_service, "upload_audio", fake.upload_audio)
    return fake


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a fresh SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def stores(session_maker) -> StoreProvider:
    """Store provider over the test database."""
    return StoreProvider(session_maker=session_maker)


@pytest.fixture
def demo_stores() -> StoreProvider:
    return StoreProvider(demo=DemoDatabase())


async def _client_for(provider: StoreProvider) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_stores] = lambda: provider

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(stores, fake_llm, fake_storage) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client backed by the test database."""
    async for ac in _client_for(stores):
        yield ac


@pytest_asyncio.fixture
async def demo_client(demo_stores, fake_llm, fake_storage) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client backed by the in-memory demo store."""
    async for ac in _client_for(demo_stores):
        yield ac


@pytest.fixture
def auth_headers() -> dict:
    return {"x-user-id": USER_ID}


@pytest.fixture
def other_headers() -> dict:
    return {"x-user-id": OTHER_USER_ID}
