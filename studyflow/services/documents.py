"""Document ingestion pipeline: extract, summarize, author flashcards."""

import asyncio
import json
import logging
from typing import Optional

import fitz
from fastapi import BackgroundTasks
from kombu.exceptions import OperationalError as BrokerError
from pydantic import TypeAdapter, ValidationError

from studyflow.config import get_settings
from studyflow.db.models import STATUS_TRANSITIONS, Document, ProcessingStatus
from studyflow.errors import StoreUnavailableError, UpstreamError
from studyflow.schemas.schemas import FlashcardDraft
from studyflow.services.llm import LLMClient, LLMError, llm_client, strip_code_fences
from studyflow.services.storage import StorageService, storage_service
from studyflow.services.store import Store, StoreProvider

settings = get_settings()
logger = logging.getLogger(__name__)

# Characters of extracted text sent to the model per call
MAX_PROMPT_CHARS = 24000

SUMMARY_PROMPT = """You are an expert study assistant.

Summarize the provided document for a student who will review it before an exam.
- Open with one sentence stating what the document is about.
- Group the key concepts under short bold headings.
- Define every important term in plain language.
- Keep the summary under 400 words and do not invent facts that are not in the text."""

FLASHCARD_PROMPT = """You are an expert educational content creator specializing in creating effective flashcards for studying.

Your task is to analyze the provided text and create high-quality flashcards that will help students learn and retain the information effectively.

For each flashcard, create:
1. A clear, concise question on the front
2. A comprehensive, accurate answer on the back
3. An optional hint that provides a clue without giving away the answer
4. A difficulty level (easy, medium, hard)
5. A relevant category/topic

Guidelines:
- Focus on key concepts, definitions, facts, and important details
- Make questions specific and testable
- Ensure answers are accurate and complete
- Use clear, simple language appropriate for the target audience
- Create a variety of question types (definition, explanation, application, etc.)
- Avoid trivial or overly obvious questions

Generate 5-10 flashcards. Respond with a JSON array only, where each element has the keys
"front", "back", "hint", "difficulty" and "category"."""

_drafts_adapter = TypeAdapter(list[FlashcardDraft])


class ExtractionError(UpstreamError):
    """No text could be extracted from the uploaded file."""


class InvalidTransitionError(RuntimeError):
    """A document was asked to move backwards or out of a terminal state."""


def extract_pdf_text(content: bytes) -> str:
    """Plain text of every page, pages separated by blank lines."""
    try:
        with fitz.open(stream=content, filetype="pdf") as doc:
            pages = [page.get_text("text").strip() for page in doc]
    except (RuntimeError, ValueError) as e:
        raise ExtractionError(f"Could not read PDF: {e}") from e
    return "\n\n".join(p for p in pages if p)


def parse_flashcards(content: str) -> list[FlashcardDraft]:
    """Parse the model's flashcard answer: a JSON array, or an object holding one."""
    raw = strip_code_fences(content)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise LLMError("Flashcard response was not valid JSON") from e

    if isinstance(data, dict):
        data = data.get("flashcards", [])

    try:
        drafts = _drafts_adapter.validate_python(data)
    except ValidationError as e:
        raise LLMError(f"Flashcard response had an unexpected shape: {e.error_count()} errors") from e

    if not drafts:
        raise LLMError("Language model returned no flashcards")
    return drafts


async def summarize(text: str, llm: LLMClient = llm_client) -> str:
    return await llm.complete(
        SUMMARY_PROMPT, text[:MAX_PROMPT_CHARS], max_tokens=900, temperature=0.3
    )


async def author_flashcards(text: str, llm: LLMClient = llm_client) -> list[FlashcardDraft]:
    content = await llm.complete(
        FLASHCARD_PROMPT, text[:MAX_PROMPT_CHARS], max_tokens=2000, temperature=0.4
    )
    return parse_flashcards(content)


class DocumentPipeline:
    """
    Drive one document through `pending -> extracted -> summarized -> completed`.

    Any failure moves the document to `failed`; the error is logged and not
    stored. A run picks up from the last persisted stage, so a redelivered
    task resumes instead of starting over, and a terminal document is left
    untouched.
    """

    def __init__(
        self,
        stores: StoreProvider,
        storage: StorageService = storage_service,
        llm: LLMClient = llm_client,
    ):
        self.stores = stores
        self.storage = storage
        self.llm = llm

    async def _advance(
        self, store: Store, document: Document, status: ProcessingStatus, **fields
    ) -> Document:
        current = ProcessingStatus(document.processing_status)
        if status not in STATUS_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Document {document.id} cannot move from {current.value} to {status.value}"
            )
        updated = await store.update_document(
            document.id, processing_status=status.value, **fields
        )
        logger.info(f"Document {document.id}: {current.value} -> {status.value}")
        return updated

    async def run(self, document_id: str, will_retry: bool = False) -> Optional[ProcessingStatus]:
        """
        Process a document; returns its final status, or None if it does not exist.

        With `will_retry`, a store outage leaves the document at its current
        stage and re-raises so the caller can run it again. Without it, the
        document is settled as failed.
        """
        async with self.stores.session() as store:
            document = await store.get_document(document_id)
            if document is None:
                logger.warning(f"Document {document_id} not found for processing")
                return None

            status = ProcessingStatus(document.processing_status)
            if status.is_terminal:
                logger.info(f"Document {document_id} already {status.value}, skipping")
                return status

            try:
                return await self._process(store, document)
            except StoreUnavailableError:
                if will_retry:
                    logger.error(f"Store unavailable while processing document {document_id}, retrying")
                    raise
                logger.exception(f"Store unavailable while processing document {document_id}")
            except Exception as e:
                logger.exception(f"Error processing document {document_id}: {e}")

        await self._mark_failed(document_id)
        return ProcessingStatus.FAILED

    async def _mark_failed(self, document_id: str) -> None:
        # Fresh session: the one that failed may hold an aborted transaction
        async with self.stores.session() as store:
            await store.update_document(
                document_id, processing_status=ProcessingStatus.FAILED.value
            )
        logger.info(f"Document {document_id}: marked failed")

    async def _process(self, store: Store, document: Document) -> ProcessingStatus:
        if document.processing_status == ProcessingStatus.PENDING.value:
            content = await self.storage.download_document(document.file_url)
            text = await asyncio.to_thread(extract_pdf_text, content)
            if not text.strip():
                raise ExtractionError("Document contains no extractable text")
            document = await self._advance(
                store, document, ProcessingStatus.EXTRACTED, extracted_text=text
            )

        if document.processing_status == ProcessingStatus.EXTRACTED.value:
            summary = await summarize(document.extracted_text, self.llm)
            document = await self._advance(
                store, document, ProcessingStatus.SUMMARIZED, summary=summary
            )

        drafts = await author_flashcards(document.extracted_text, self.llm)
        removed = await store.delete_document_flashcards(document.id)
        if removed:
            logger.info(f"Document {document.id}: cleared {removed} flashcards from an earlier run")
        for draft in drafts:
            await store.create_flashcard(
                document_id=document.id,
                user_id=document.user_id,
                front=draft.front,
                back=draft.back,
                hint=draft.hint,
                difficulty=draft.difficulty,
                category=draft.category,
            )

        await self._advance(store, document, ProcessingStatus.COMPLETED)
        await store.increment_documents_processed(document.user_id)
        logger.info(f"Document {document.id}: stored {len(drafts)} flashcards")
        return ProcessingStatus.COMPLETED


def dispatch_document_processing(
    document_id: str,
    stores: StoreProvider,
    background_tasks: BackgroundTasks,
) -> str:
    """
    Start processing without waiting for it.

    Uses the Celery queue when configured; the in-memory demo store is only
    visible to this process, so it always runs in-process after the response.
    If the broker cannot be reached the document is processed in-process too.
    Returns the mode used.
    """
    if settings.document_queue == "celery" and not stores.is_demo:
        from studyflow.worker import enqueue_document

        try:
            enqueue_document(document_id)
            return "celery"
        except BrokerError as e:
            logger.error(f"Could not queue document {document_id}, processing in-process: {e}")

    background_tasks.add_task(DocumentPipeline(stores).run, document_id)
    return "inline"
