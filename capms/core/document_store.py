"""Activity proof documents, stored in MinIO.

The engine only keeps the returned ``url`` and ``storage_id``. Uploads arrive
as base64 data URIs (``data:<mime>;base64,<payload>``) or bare base64.
"""

import base64
import binascii
import logging
import mimetypes
import uuid
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from io import BytesIO

import anyio
from minio import Minio
from minio.error import S3Error

from capms.core.config import settings
from capms.services.errors import ValidationError, DependencyError

logger = logging.getLogger(__name__)

MAX_DOCUMENT_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class StoredDocument:
    url: str
    storage_id: str


def decode_data_uri(data: str) -> tuple[bytes, str]:
    """Return ``(bytes, content_type)`` or raise ValidationError."""
    raw = (data or "").strip()
    if not raw:
        raise ValidationError("Document is required")

    content_type = "application/octet-stream"
    if raw.startswith("data:"):
        header, sep, raw = raw.partition(",")
        if not sep or ";base64" not in header:
            raise ValidationError("Document must be a base64 data URI")
        content_type = header[5:].split(";", 1)[0] or content_type

    try:
        payload = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Document is not valid base64")

    if not payload:
        raise ValidationError("Document is empty")
    if len(payload) > MAX_DOCUMENT_BYTES:
        raise ValidationError("Document exceeds 10 MB")
    return payload, content_type


class DocumentStore:
    async def store(self, data: str, folder: str = "activity_documents") -> StoredDocument:
        raise NotImplementedError

    async def delete(self, storage_id: str) -> None:
        raise NotImplementedError


class MinioDocumentStore(DocumentStore):
    def __init__(self, client: Minio, bucket: str, public_base: str | None = None):
        self.client = client
        self.bucket = bucket
        self.public_base = (public_base or "").rstrip("/")

    def _ensure_bucket(self) -> None:
        if not self.client.bucket_exists(self.bucket):
            self.client.make_bucket(self.bucket)

    def _put(self, object_name: str, payload: bytes, content_type: str) -> str:
        self._ensure_bucket()
        self.client.put_object(
            self.bucket,
            object_name,
            BytesIO(payload),
            length=len(payload),
            content_type=content_type,
        )
        if self.public_base:
            return f"{self.public_base}/{self.bucket}/{object_name}"
        # fallback: presigned URL
        return self.client.presigned_get_object(self.bucket, object_name, expires=timedelta(days=7))

    async def store(self, data: str, folder: str = "activity_documents") -> StoredDocument:
        payload, content_type = decode_data_uri(data)
        ext = (mimetypes.guess_extension(content_type) or ".bin").lstrip(".")
        object_name = f"{folder}/{uuid.uuid4().hex}.{ext}"

        try:
            url = await anyio.to_thread.run_sync(self._put, object_name, payload, content_type)
        except (S3Error, OSError) as e:
            logger.error("document upload failed: %s", e)
            raise DependencyError("Document storage unavailable") from e
        return StoredDocument(url=url, storage_id=object_name)

    async def delete(self, storage_id: str) -> None:
        try:
            await anyio.to_thread.run_sync(self.client.remove_object, self.bucket, storage_id)
        except (S3Error, OSError) as e:
            raise DependencyError("Document delete failed") from e


@lru_cache()
def _minio_store() -> MinioDocumentStore:
    client = Minio(
        endpoint=settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_SECURE,
    )
    return MinioDocumentStore(client, settings.MINIO_BUCKET, settings.MINIO_PUBLIC_URL)


def get_document_store() -> DocumentStore:
    """FastAPI dependency; tests override it with an in-memory store."""
    return _minio_store()


async def discard_quietly(store: DocumentStore, storage_id: str | None) -> None:
    """Best-effort delete used for cleanup paths."""
    if not storage_id:
        return
    try:
        await store.delete(storage_id)
    except DependencyError:
        logger.warning("could not delete stored document %s", storage_id, exc_info=True)
