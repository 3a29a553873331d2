"""
evidence.py — photo evidence storage.

Design:
  - ObjectStore is the seam to the blob backend (upload + public URL)
  - LocalObjectStore keeps blobs under settings.evidence_root/<bucket>/<key>;
    main.py serves that directory at /storage so URLs resolve
  - Keys are "{submission_ms}-{submission_id}-{index}.{ext}"; submission_id is
    random per call, so two submissions in the same millisecond never collide
  - LocalObjectStore writes to a temp file and renames it into place, so a
    failed attempt leaves nothing behind; existing keys are never overwritten
  - upload_evidence() uploads sequentially in attachment order and fails
    closed: the first photo that still fails after retries aborts the whole
    submission (already-uploaded blobs are left as orphans)
"""
import asyncio
import logging
import mimetypes
import os
import time
import uuid
from pathlib import Path
from typing import Optional, Protocol, Sequence

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from secureport.config import settings
from secureport.errors import TransportError
from secureport.reports.schemas import EvidenceFile

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    async def upload(self, bucket: str, key: str, blob: bytes, content_type: str) -> None:
        """Store a blob. Raises OSError on failure."""

    def get_public_url(self, bucket: str, key: str) -> str:
        """Stable, publicly resolvable URL for an uploaded blob."""


class LocalObjectStore:
    """Filesystem-backed object store."""

    def __init__(self, root: str, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _path(self, bucket: str, key: str) -> Path:
        if "/" in key or key.startswith("."):
            raise ValueError(f"Invalid object key: {key!r}")
        return self.root / bucket / key

    async def upload(self, bucket: str, key: str, blob: bytes, content_type: str) -> None:
        path = self._path(bucket, key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.exists():
                raise FileExistsError(f"Object already exists: {bucket}/{key}")
            partial = path.with_name(f".{key}.{uuid.uuid4().hex}.part")
            try:
                partial.write_bytes(blob)
                os.replace(partial, path)
            finally:
                partial.unlink(missing_ok=True)

        await asyncio.to_thread(_write)

    def get_public_url(self, bucket: str, key: str) -> str:
        return f"{self.base_url}/{bucket}/{key}"


def new_submission_id() -> str:
    return uuid.uuid4().hex[:8]


def make_evidence_key(
    timestamp_ms: int,
    submission_id: str,
    index: int,
    filename: str,
    content_type: str = "",
) -> str:
    """Build the blob key for the `index`-th photo of a submission."""
    ext = Path(filename).suffix.lstrip(".").lower()
    if not ext:
        guessed = mimetypes.guess_extension(content_type) if content_type else None
        ext = guessed.lstrip(".") if guessed else "bin"
    return f"{timestamp_ms}-{submission_id}-{index}.{ext}"


async def upload_evidence(
    store: ObjectStore,
    photos: Sequence[EvidenceFile],
    bucket: Optional[str] = None,
    attempts: Optional[int] = None,
) -> list[str]:
    """
    Upload photos in attachment order and return their public URLs in that order.

    Each upload is retried on OSError with exponential backoff;
    FileExistsError is not retried.

    Raises:
        TransportError: when a photo still fails after the last attempt.
    """
    bucket = bucket or settings.evidence_bucket
    attempts = attempts or settings.upload_attempts
    submitted_ms = int(time.time() * 1000)
    submission_id = new_submission_id()
    urls: list[str] = []

    for index, photo in enumerate(photos):
        key = make_evidence_key(submitted_ms, submission_id, index, photo.filename, photo.content_type)
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(OSError) & retry_if_not_exception_type(FileExistsError),
                wait=wait_exponential(multiplier=settings.upload_backoff_seconds, max=10),
                stop=stop_after_attempt(attempts),
                reraise=True,
            ):
                with attempt:
                    await store.upload(bucket, key, photo.data, photo.content_type)
        except OSError as exc:
            logger.warning(
                "Evidence upload failed index=%d of=%d key=%s", index, len(photos), key,
            )
            raise TransportError(f"Failed to upload photo: {exc}") from exc

        urls.append(store.get_public_url(bucket, key))
        logger.info("Evidence uploaded index=%d key=%s bytes=%d", index, key, len(photo.data))

    return urls
