"""Object storage service for uploaded documents and generated audio."""

import asyncio
import logging
from io import BytesIO

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from studyflow.config import get_settings
from studyflow.errors import UpstreamError

settings = get_settings()
logger = logging.getLogger(__name__)


class StorageError(UpstreamError):
    """Upload or download against object storage failed."""


class StorageService:
    """Service for managing object storage (MinIO/S3)."""

    def __init__(self):
        self._client = None
        self._bucket = settings.s3_bucket

    @property
    def client(self):
        """Lazy initialization of S3 client."""
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self.endpoint_url,
                aws_access_key_id=settings.s3_access_key,
                aws_secret_access_key=settings.s3_secret_key,
                config=Config(signature_version="s3v4"),
            )
            self._ensure_bucket()
        return self._client

    @property
    def endpoint_url(self) -> str:
        return f"{'https' if settings.s3_use_ssl else 'http'}://{settings.s3_endpoint}"

    def _ensure_bucket(self):
        """Create bucket if it doesn't exist."""
        try:
            self._client.head_bucket(Bucket=self._bucket)
        except ClientError:
            self._client.create_bucket(Bucket=self._bucket)

    def document_path(self, user_id: str, document_id: str, filename: str) -> str:
        """Generate storage path for an uploaded document."""
        return f"documents/{user_id}/{document_id}/{filename}"

    def audio_path(self, user_id: str, story_id: str, content_type: str) -> str:
        """Generate storage path for a story's narration audio."""
        return f"stories/{user_id}/{story_id}{self._get_extension(content_type)}"

    def public_url(self, path: str) -> str:
        """Public URL of an object, via the CDN base when one is configured."""
        base = settings.s3_public_base_url or f"{self.endpoint_url}/{self._bucket}"
        return f"{base.rstrip('/')}/{path}"

    def _put(self, path: str, content: bytes, content_type: str) -> None:
        try:
            self.client.upload_fileobj(
                BytesIO(content),
                self._bucket,
                path,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Upload to {path} failed: {e}")
            raise StorageError("Failed to upload file to storage") from e

    def _get(self, path: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self._bucket, Key=path)
            return response["Body"].read()
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Download of {path} failed: {e}")
            raise StorageError("Failed to download file from storage") from e

    async def upload_document(
        self,
        content: bytes,
        user_id: str,
        document_id: str,
        filename: str,
        content_type: str = "application/pdf",
    ) -> str:
        """
        Upload an uploaded document's bytes.
        Returns the storage path.
        """
        path = self.document_path(user_id, document_id, filename)
        await asyncio.to_thread(self._put, path, content, content_type)
        return path

    async def download_document(self, storage_path: str) -> bytes:
        """Download a document from storage."""
        return await asyncio.to_thread(self._get, storage_path)

    async def upload_audio(
        self,
        content: bytes,
        user_id: str,
        story_id: str,
        content_type: str = "audio/mpeg",
    ) -> str:
        """
        Upload narration audio, overwriting any earlier rendition.
        Returns the public URL.
        """
        path = self.audio_path(user_id, story_id, content_type)
        await asyncio.to_thread(self._put, path, content, content_type)
        return self.public_url(path)

    def _get_extension(self, content_type: str) -> str:
        """Get file extension from content type."""
        mapping = {
            "audio/wav": ".wav",
            "audio/x-wav": ".wav",
            "audio/mpeg": ".mp3",
            "audio/mp3": ".mp3",
            "audio/ogg": ".ogg",
            "audio/webm": ".webm",
            "application/pdf": ".pdf",
        }
        return mapping.get(content_type, ".bin")


# Singleton instance
storage_service = StorageService()
