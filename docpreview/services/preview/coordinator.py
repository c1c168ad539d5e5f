"""Preview cache state machine.

For every ``(namespace, id, version)`` the coordinator decides whether the
preview blob is ready, already being generated, or needs a (re)enqueue::

    missing --claim--> queued --blob written--> ready
                         |
                         +--failure--> error --next ensure--> queued

The blob store is the source of truth for "ready". Claims live in an
in-memory map guarded by an ``asyncio.Lock`` and expire after
``claim_ttl_seconds`` so work lost in another process is retried.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Union

from docpreview.core.exceptions import MissingBlobError, QueueError
from docpreview.services.identity_service import DocumentIdentity
from docpreview.services.preview.jobs import PreviewJob
from docpreview.services.preview.queue import PreviewQueue
from docpreview.services.storage.base import BlobStore
from docpreview.services.storage.keys import preview_key, preview_prefix
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_RETRY_AFTER_MS = 1500


class PreviewStatus(str, Enum):
    MISSING = "missing"
    QUEUED = "queued"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class PreviewRecord:
    """Derived view of one preview blob."""

    status: PreviewStatus
    blob_key: str
    content_type: Optional[str] = None
    retry_after_ms: Optional[int] = None

    @property
    def is_ready(self) -> bool:
        return self.status is PreviewStatus.READY


@dataclass(frozen=True)
class PreviewContent:
    blob_key: str
    content_type: str
    data: bytes


@dataclass
class _Claim:
    status: PreviewStatus
    claimed_at: float


class PreviewCoordinator:
    """Single-writer owner of preview generation claims."""

    def __init__(
        self,
        store: BlobStore,
        queue: PreviewQueue,
        content_type: str = "image/png",
        retry_after_ms: int = DEFAULT_RETRY_AFTER_MS,
        claim_ttl_seconds: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.queue = queue
        self.content_type = content_type
        self.retry_after_ms = retry_after_ms
        self.claim_ttl_seconds = claim_ttl_seconds
        self._clock = clock
        self._claims: Dict[str, _Claim] = {}
        self._lock = asyncio.Lock()
        queue.subscribe(self.mark_ready, self.mark_failed)

    @staticmethod
    def blob_key_for(identity: DocumentIdentity) -> str:
        return preview_key(identity.id, identity.version, identity.namespace)

    def _ready(self, key: str) -> PreviewRecord:
        return PreviewRecord(PreviewStatus.READY, key, content_type=self.content_type)

    def _pending(self, key: str, status: PreviewStatus = PreviewStatus.QUEUED) -> PreviewRecord:
        return PreviewRecord(status, key, retry_after_ms=self.retry_after_ms)

    def _is_fresh(self, claim: Optional[_Claim]) -> bool:
        if claim is None or claim.status is not PreviewStatus.QUEUED:
            return False
        return self._clock() - claim.claimed_at < self.claim_ttl_seconds

    def claim_status(self, identity: DocumentIdentity) -> PreviewStatus:
        """In-memory claim state, without probing the store."""
        claim = self._claims.get(self.blob_key_for(identity))
        return claim.status if claim else PreviewStatus.MISSING

    async def ensure(self, identity: DocumentIdentity) -> PreviewRecord:
        """Report the preview state, enqueueing generation when nothing is in flight."""
        key = self.blob_key_for(identity)
        if await self.store.exists(key):
            async with self._lock:
                self._claims.pop(key, None)
            return self._ready(key)
        return await self._claim_and_enqueue(identity, key)

    async def enqueue(self, identity: DocumentIdentity) -> PreviewRecord:
        """Claim and enqueue generation; a no-op while a fresh claim exists."""
        return await self._claim_and_enqueue(identity, self.blob_key_for(identity))

    async def _claim_and_enqueue(self, identity: DocumentIdentity, key: str) -> PreviewRecord:
        async with self._lock:
            if self._is_fresh(self._claims.get(key)):
                return self._pending(key)
            self._claims[key] = _Claim(PreviewStatus.QUEUED, self._clock())

        job = PreviewJob(
            document_id=identity.id,
            document_type=identity.document_type,
            version=identity.version,
            namespace=identity.namespace,
        )
        try:
            await self.queue.enqueue(job)
        except QueueError as e:
            LOGGER.error(f"Could not enqueue preview for {identity.id}: {e.message}", extra={"blob_key": key})
            async with self._lock:
                self._claims[key] = _Claim(PreviewStatus.ERROR, self._clock())
            return self._pending(key, PreviewStatus.ERROR)

        LOGGER.info(f"Enqueued preview for {identity.id}", extra={"blob_key": key, "version": identity.version})
        return self._pending(key)

    async def fetch(self, identity: DocumentIdentity) -> Union[PreviewContent, PreviewRecord]:
        """Read the preview bytes, or report why they are not available yet.

        A blob that disappears between the probe and the read (eventual
        consistency, concurrent delete) demotes the record and re-enqueues
        instead of raising.
        """
        record = await self.ensure(identity)
        if not record.is_ready:
            return record

        try:
            data = await self.store.get(record.blob_key)
        except MissingBlobError:
            LOGGER.warning(f"Preview blob vanished after probe, re-enqueueing: {record.blob_key}")
            async with self._lock:
                self._claims.pop(record.blob_key, None)
            return await self._claim_and_enqueue(identity, record.blob_key)

        return PreviewContent(record.blob_key, record.content_type or self.content_type, data)

    async def mark_ready(self, job: PreviewJob) -> None:
        async with self._lock:
            self._claims.pop(job.blob_key, None)

    async def mark_failed(self, job: PreviewJob, error: BaseException) -> None:
        async with self._lock:
            self._claims[job.blob_key] = _Claim(PreviewStatus.ERROR, self._clock())
        LOGGER.warning(f"Preview marked failed for {job.document_id}: {error}", extra={"blob_key": job.blob_key})

    async def forget(self, document_id: str, namespace: Optional[str] = None) -> int:
        """Drop every claim for a document (all versions)."""
        prefix = preview_prefix(document_id, namespace)
        async with self._lock:
            stale = [key for key in self._claims if key.startswith(prefix)]
            for key in stale:
                del self._claims[key]
        return len(stale)
