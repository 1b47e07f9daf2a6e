"""Tests for document upload and the ingestion pipeline."""

import pytest
from httpx import AsyncClient
from kombu.exceptions import OperationalError as BrokerError

from studyflow.config import get_settings
from studyflow.db.models import ProcessingStatus
from studyflow.errors import StoreUnavailableError
from studyflow.services.database import DatabaseService
from studyflow.services.documents import DocumentPipeline, dispatch_document_processing, parse_flashcards
from studyflow.services.llm import LLMError

from conftest import FLASHCARDS, make_pdf


def _pdf_upload(name: str = "notes.pdf", content: bytes | None = None, content_type: str = "application/pdf"):
    return {"file": (name, content if content is not None else make_pdf(), content_type)}


def _fail_once(monkeypatch, method: str) -> None:
    """Make one DatabaseService method raise a store outage on its first call."""
    original = getattr(DatabaseService, method)
    calls = []

    async def flaky(self, *args, **kwargs):
        calls.append(method)
        if len(calls) == 1:
            raise StoreUnavailableError("Database connection failed")
        return await original(self, *args, **kwargs)

    monkeypatch.setattr(DatabaseService, method, flaky)


@pytest.mark.asyncio
async def test_upload_processes_document(client: AsyncClient, auth_headers: dict, fake_storage):
    response = await client.post(
        "/api/documents",
        headers=auth_headers,
        files=_pdf_upload(),
        data={"title": "Biology notes"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Document uploaded successfully"
    document = data["document"]
    assert document["processing_status"] == "pending"
    assert document["title"] == "Biology notes"
    assert document["file_name"] == "notes.pdf"
    assert document["file_url"] == f"documents/student-1/{document['id']}/notes.pdf"
    assert document["file_url"] in fake_storage.objects

    # Background processing has finished once the response is returned
    response = await client.get(f"/api/documents/{document['id']}", headers=auth_headers)
    assert response.status_code == 200
    processed = response.json()
    assert processed["processing_status"] == "completed"
    assert "Photosynthesis" in processed["extracted_text"]
    assert processed["summary"].startswith("**Photosynthesis**")

    cards = (await client.get(
        "/api/flashcards", params={"documentId": document["id"]}, headers=auth_headers
    )).json()
    assert len(cards) == len(FLASHCARDS)
    assert {c["difficulty"] for c in cards} == {"easy", "medium"}
    assert all(c["user_id"] == "student-1" for c in cards)

    me = (await client.get("/api/me", headers=auth_headers)).json()
    assert me["documents_processed"] == 1


@pytest.mark.asyncio
async def test_upload_title_defaults_to_file_name(client: AsyncClient, auth_headers: dict):
    response = await client.post("/api/documents", headers=auth_headers, files=_pdf_upload("chapter-3.pdf"))
    assert response.status_code == 200
    assert response.json()["document"]["title"] == "chapter-3"


@pytest.mark.asyncio
async def test_upload_rejects_non_pdf(client: AsyncClient, auth_headers: dict, fake_storage):
    response = await client.post(
        "/api/documents",
        headers=auth_headers,
        files=_pdf_upload("notes.txt", b"plain text", "text/plain"),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Only PDF files are supported"
    assert fake_storage.objects == {}


@pytest.mark.asyncio
async def test_upload_requires_file(client: AsyncClient, auth_headers: dict):
    response = await client.post("/api/documents", headers=auth_headers, data={"title": "nothing"})
    assert response.status_code == 400
    assert response.json()["message"] == "No file provided"


@pytest.mark.asyncio
async def test_upload_rejects_empty_and_oversize(client: AsyncClient, auth_headers: dict, monkeypatch):
    response = await client.post("/api/documents", headers=auth_headers, files=_pdf_upload(content=b""))
    assert response.status_code == 400

    monkeypatch.setattr(get_settings(), "max_upload_bytes", 10)
    response = await client.post("/api/documents", headers=auth_headers, files=_pdf_upload())
    assert response.status_code == 400
    assert response.json()["message"].startswith("File too large")


@pytest.mark.asyncio
async def test_upload_requires_auth(client: AsyncClient):
    response = await client.post("/api/documents", files=_pdf_upload())
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unreadable_pdf_fails(client: AsyncClient, auth_headers: dict, fake_llm):
    response = await client.post(
        "/api/documents", headers=auth_headers, files=_pdf_upload(content=b"%PDF-1.4 garbage")
    )
    document_id = response.json()["document"]["id"]

    document = (await client.get(f"/api/documents/{document_id}", headers=auth_headers)).json()
    assert document["processing_status"] == "failed"
    assert fake_llm.calls == []


@pytest.mark.asyncio
async def test_flashcard_failure_marks_document_failed(client: AsyncClient, auth_headers: dict, fake_llm):
    fake_llm.fail_on.add("flashcards")

    response = await client.post("/api/documents", headers=auth_headers, files=_pdf_upload())
    document_id = response.json()["document"]["id"]

    document = (await client.get(f"/api/documents/{document_id}", headers=auth_headers)).json()
    assert document["processing_status"] == "failed"
    # Work done before the failure is kept
    assert document["summary"] is not None

    cards = (await client.get(
        "/api/flashcards", params={"documentId": document_id}, headers=auth_headers
    )).json()
    assert cards == []
    me = (await client.get("/api/me", headers=auth_headers)).json()
    assert me["documents_processed"] == 0


@pytest.mark.asyncio
async def test_summary_failure_marks_document_failed(client: AsyncClient, auth_headers: dict, fake_llm):
    fake_llm.fail_on.add("summary")

    response = await client.post("/api/documents", headers=auth_headers, files=_pdf_upload())
    document_id = response.json()["document"]["id"]

    document = (await client.get(f"/api/documents/{document_id}", headers=auth_headers)).json()
    assert document["processing_status"] == "failed"
    assert document["extracted_text"] is not None
    assert document["summary"] is None
    assert fake_llm.count("flashcards") == 0

    cards = (await client.get(
        "/api/flashcards", params={"documentId": document_id}, headers=auth_headers
    )).json()
    assert cards == []


@pytest.mark.asyncio
async def test_store_outage_during_inline_processing_settles_failed(
    client: AsyncClient, auth_headers: dict, monkeypatch
):
    _fail_once(monkeypatch, "create_flashcard")

    response = await client.post("/api/documents", headers=auth_headers, files=_pdf_upload())
    assert response.status_code == 200
    document_id = response.json()["document"]["id"]

    document = (await client.get(f"/api/documents/{document_id}", headers=auth_headers)).json()
    assert document["processing_status"] == "failed"
    me = (await client.get("/api/me", headers=auth_headers)).json()
    assert me["documents_processed"] == 0


@pytest.mark.asyncio
async def test_upload_survives_unreachable_broker(client: AsyncClient, auth_headers: dict, monkeypatch):
    import studyflow.worker

    def broker_down(document_id):
        raise BrokerError("Error 111 connecting to localhost:6379. Connection refused.")

    monkeypatch.setattr(get_settings(), "document_queue", "celery")
    monkeypatch.setattr(studyflow.worker, "enqueue_document", broker_down)

    response = await client.post("/api/documents", headers=auth_headers, files=_pdf_upload())
    assert response.status_code == 200
    document_id = response.json()["document"]["id"]

    # Processed in-process instead of sitting in pending
    document = (await client.get(f"/api/documents/{document_id}", headers=auth_headers)).json()
    assert document["processing_status"] == "completed"


@pytest.mark.asyncio
async def test_list_documents_newest_first(client: AsyncClient, auth_headers: dict, other_headers: dict):
    for name in ("first.pdf", "second.pdf"):
        await client.post("/api/documents", headers=auth_headers, files=_pdf_upload(name))
    await client.post("/api/documents", headers=other_headers, files=_pdf_upload("theirs.pdf"))

    response = await client.get("/api/documents", headers=auth_headers)
    assert response.status_code == 200
    names = [d["file_name"] for d in response.json()]
    assert names == ["second.pdf", "first.pdf"]


@pytest.mark.asyncio
async def test_get_document_ownership(client: AsyncClient, auth_headers: dict, other_headers: dict):
    response = await client.post("/api/documents", headers=auth_headers, files=_pdf_upload())
    document_id = response.json()["document"]["id"]

    response = await client.get(f"/api/documents/{document_id}", headers=other_headers)
    assert response.status_code == 403
    assert response.json()["message"] == "Access denied"

    response = await client.get("/api/documents/does-not-exist", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_demo_store_upload(demo_client: AsyncClient, auth_headers: dict):
    response = await demo_client.post("/api/documents", headers=auth_headers, files=_pdf_upload())
    assert response.status_code == 200
    document_id = response.json()["document"]["id"]

    document = (await demo_client.get(f"/api/documents/{document_id}", headers=auth_headers)).json()
    assert document["processing_status"] == "completed"


# ============== Pipeline ==============


async def _seed_document(stores, status: ProcessingStatus, **fields):
    async with stores.session() as store:
        if await store.get_user("student-1") is None:
            await store.create_user("student-1", "student-1@demo.com")
        document = await store.create_document(
            user_id="student-1",
            title="Notes",
            file_name="notes.pdf",
            file_url="documents/student-1/x/notes.pdf",
        )
        return await store.update_document(document.id, processing_status=status.value, **fields)


@pytest.mark.asyncio
async def test_pipeline_resumes_from_summarized(stores, fake_llm, fake_storage):
    document = await _seed_document(
        stores,
        ProcessingStatus.SUMMARIZED,
        extracted_text="Photosynthesis text",
        summary="Existing summary",
    )
    async with stores.session() as store:
        await store.create_flashcard(document.id, "student-1", "stale front", "stale back")

    status = await DocumentPipeline(stores).run(document.id)

    assert status == ProcessingStatus.COMPLETED
    assert fake_llm.count("summary") == 0
    assert fake_llm.count("flashcards") == 1
    async with stores.session() as store:
        cards = await store.get_flashcards_by_document(document.id, "student-1")
        refreshed = await store.get_document(document.id)
    assert len(cards) == len(FLASHCARDS)
    assert "stale front" not in {c.front for c in cards}
    assert refreshed.summary == "Existing summary"


@pytest.mark.asyncio
async def test_pipeline_resumes_from_extracted(stores, fake_llm, fake_storage):
    document = await _seed_document(
        stores, ProcessingStatus.EXTRACTED, extracted_text="Photosynthesis text"
    )

    status = await DocumentPipeline(stores).run(document.id)

    assert status == ProcessingStatus.COMPLETED
    # Nothing is downloaded again
    assert fake_storage.objects == {}
    assert fake_llm.count("summary") == 1


@pytest.mark.asyncio
async def test_pipeline_skips_terminal_documents(stores, fake_llm, fake_storage):
    completed = await _seed_document(stores, ProcessingStatus.COMPLETED, extracted_text="x")
    failed = await _seed_document(stores, ProcessingStatus.FAILED)

    pipeline = DocumentPipeline(stores)
    assert await pipeline.run(completed.id) == ProcessingStatus.COMPLETED
    assert await pipeline.run(failed.id) == ProcessingStatus.FAILED
    assert fake_llm.calls == []


@pytest.mark.asyncio
async def test_pipeline_unknown_document(stores, fake_llm, fake_storage):
    assert await DocumentPipeline(stores).run("missing") is None


@pytest.mark.asyncio
async def test_store_outage_keeps_stage_while_a_retry_remains(stores, fake_llm, fake_storage, monkeypatch):
    document = await _seed_document(
        stores,
        ProcessingStatus.SUMMARIZED,
        extracted_text="Photosynthesis text",
        summary="Existing summary",
    )
    _fail_once(monkeypatch, "create_flashcard")

    pipeline = DocumentPipeline(stores)
    with pytest.raises(StoreUnavailableError):
        await pipeline.run(document.id, will_retry=True)
    async with stores.session() as store:
        assert (await store.get_document(document.id)).processing_status == "summarized"

    # The retry picks up from the same stage
    assert await pipeline.run(document.id, will_retry=True) == ProcessingStatus.COMPLETED
    async with stores.session() as store:
        assert len(await store.get_flashcards_by_document(document.id, "student-1")) == len(FLASHCARDS)


@pytest.mark.asyncio
async def test_store_outage_on_last_attempt_settles_failed(stores, fake_llm, fake_storage, monkeypatch):
    document = await _seed_document(stores, ProcessingStatus.EXTRACTED, extracted_text="Photosynthesis text")
    _fail_once(monkeypatch, "update_document")

    assert await DocumentPipeline(stores).run(document.id) == ProcessingStatus.FAILED
    async with stores.session() as store:
        assert (await store.get_document(document.id)).processing_status == "failed"


@pytest.mark.asyncio
async def test_dispatch_uses_queue_when_configured(stores, monkeypatch):
    from fastapi import BackgroundTasks

    import studyflow.worker

    queued = []
    monkeypatch.setattr(get_settings(), "document_queue", "celery")
    monkeypatch.setattr(studyflow.worker, "enqueue_document", queued.append)

    background = BackgroundTasks()
    assert dispatch_document_processing("doc-1", stores, background) == "celery"
    assert queued == ["doc-1"]
    assert background.tasks == []


@pytest.mark.asyncio
async def test_dispatch_demo_store_always_inline(demo_stores, monkeypatch):
    from fastapi import BackgroundTasks

    monkeypatch.setattr(get_settings(), "document_queue", "celery")

    background = BackgroundTasks()
    assert dispatch_document_processing("doc-1", demo_stores, background) == "inline"
    assert len(background.tasks) == 1


# ============== Flashcard parsing ==============


def test_parse_flashcards_accepts_wrapped_object():
    drafts = parse_flashcards('{"flashcards": [{"front": "Q", "back": "A", "difficulty": "HARD"}]}')
    assert len(drafts) == 1
    assert drafts[0].difficulty == "hard"
    assert drafts[0].hint is None


def test_parse_flashcards_rejects_bad_output():
    with pytest.raises(LLMError):
        parse_flashcards("Sure! Here are your flashcards:")
    with pytest.raises(LLMError):
        parse_flashcards("[]")
    with pytest.raises(LLMError):
        parse_flashcards('[{"front": "", "back": "A"}]')


def test_parse_flashcards_clips_long_category():
    drafts = parse_flashcards(
        '[{"front": "Q", "back": "A", "category": "' + "Cell biology " * 40 + '"}]'
    )
    assert len(drafts[0].category) == 255
    assert drafts[0].category.startswith("Cell biology")
