"""Celery worker configuration and tasks."""

import asyncio
import logging

from celery import Celery, Task

from studyflow.config import get_settings
from studyflow.errors import StoreUnavailableError

settings = get_settings()
logger = logging.getLogger(__name__)

# Create Celery app
celery_app = Celery(
    "studyflow_worker",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=900,  # 15 minutes max per document
    task_soft_time_limit=840,
    worker_prefetch_multiplier=1,  # Fetch one task at a time
    task_acks_late=True,  # Ack after task completes
    task_reject_on_worker_lost=True,
    task_default_queue="default",
    task_queues={
        "default": {"exchange": "default", "routing_key": "default"},
        "documents": {"exchange": "documents", "routing_key": "documents"},
    },
    task_routes={
        "studyflow.worker.process_document": {"queue": "documents"},
    },
)


class BaseTask(Task):
    """Base task with retry configuration."""

    autoretry_for = (StoreUnavailableError,)
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True
    max_retries = 3


@celery_app.task(bind=True, base=BaseTask, name="studyflow.worker.process_document")
def process_document(self, document_id: str) -> dict:
    """
    Run the ingestion pipeline for one document.

    The document row is the only state: a redelivered or retried task resumes
    from its last persisted stage and skips documents already settled. On the
    last attempt a store outage settles the document as failed instead.
    """
    from studyflow.db.session import worker_session_maker
    from studyflow.services.documents import DocumentPipeline
    from studyflow.services.store import StoreProvider

    stores = StoreProvider(session_maker=worker_session_maker())
    will_retry = self.request.retries < self.max_retries
    status = asyncio.run(DocumentPipeline(stores).run(document_id, will_retry=will_retry))

    logger.info(f"Document {document_id} finished as {status.value if status else 'missing'}")
    return {
        "document_id": document_id,
        "status": status.value if status else None,
    }


def enqueue_document(document_id: str) -> None:
    """Queue a document for processing on the durable worker."""
    process_document.apply_async(args=[document_id], queue="documents")
