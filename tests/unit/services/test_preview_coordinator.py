import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from docpreview.core.exceptions import MissingBlobError
from docpreview.services.preview.coordinator import (
    PreviewContent,
    PreviewCoordinator,
    PreviewRecord,
    PreviewStatus,
)
from docpreview.services.storage.keys import preview_key
from tests.conftest import PNG_BYTES, RecordingQueue, make_identity


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_coordinator(store, queue, clock=None, claim_ttl_seconds=120.0):
    return PreviewCoordinator(
        store,
        queue,
        content_type="image/png",
        retry_after_ms=1500,
        claim_ttl_seconds=claim_ttl_seconds,
        clock=clock or FakeClock(),
    )


@pytest.mark.asyncio
async def test_missing_preview_is_enqueued_once_under_concurrency(blob_store, recording_queue):
    coordinator = make_coordinator(blob_store, recording_queue)
    identity = make_identity()

    records = await asyncio.gather(*[coordinator.ensure(identity) for _ in range(20)])

    assert {r.status for r in records} == {PreviewStatus.QUEUED}
    assert all(r.retry_after_ms == 1500 for r in records)
    assert len(recording_queue.jobs) == 1
    job = recording_queue.jobs[0]
    assert (job.document_id, job.version, job.document_type) == ("doc1", 1000, "pdf")


@pytest.mark.asyncio
async def test_ready_preview_reports_content_type(blob_store, recording_queue):
    coordinator = make_coordinator(blob_store, recording_queue)
    identity = make_identity("doc1", 1000, "pdf")
    await blob_store.put(preview_key("doc1", 1000), PNG_BYTES, "image/png")

    first = await coordinator.ensure(identity)
    second = await coordinator.ensure(identity)

    assert first.status is PreviewStatus.READY
    assert first.content_type == "image/png"
    assert second == first
    assert recording_queue.jobs == []


@pytest.mark.asyncio
async def test_fetch_returns_bytes_when_ready(blob_store, recording_queue):
    coordinator = make_coordinator(blob_store, recording_queue)
    await blob_store.put(preview_key("doc1", 1000), PNG_BYTES, "image/png")

    content = await coordinator.fetch(make_identity())

    assert isinstance(content, PreviewContent)
    assert content.data == PNG_BYTES
    assert content.content_type == "image/png"


@pytest.mark.asyncio
async def test_fetch_self_heals_when_blob_vanishes_after_probe(recording_queue):
    key = preview_key("doc1", 1000)
    store = MagicMock()
    store.exists = AsyncMock(return_value=True)
    store.get = AsyncMock(side_effect=MissingBlobError(key))
    coordinator = make_coordinator(store, recording_queue)

    result = await coordinator.fetch(make_identity())

    assert isinstance(result, PreviewRecord)
    assert result.status is PreviewStatus.QUEUED
    assert result.retry_after_ms == 1500
    assert [j.blob_key for j in recording_queue.jobs] == [key]


@pytest.mark.asyncio
async def test_enqueue_failure_reports_error_then_recovers(blob_store):
    queue = RecordingQueue(fail=True)
    coordinator = make_coordinator(blob_store, queue)
    identity = make_identity()

    failed = await coordinator.ensure(identity)
    assert failed.status is PreviewStatus.ERROR
    assert failed.retry_after_ms == 1500
    assert coordinator.claim_status(identity) is PreviewStatus.ERROR

    queue.fail = False
    retried = await coordinator.ensure(identity)
    assert retried.status is PreviewStatus.QUEUED
    assert len(queue.jobs) == 1


@pytest.mark.asyncio
async def test_stale_claim_is_reclaimed(blob_store, recording_queue):
    clock = FakeClock()
    coordinator = make_coordinator(blob_store, recording_queue, clock=clock, claim_ttl_seconds=120)
    identity = make_identity()

    await coordinator.ensure(identity)
    clock.now = 60
    await coordinator.ensure(identity)
    assert len(recording_queue.jobs) == 1

    clock.now = 121
    await coordinator.ensure(identity)
    assert len(recording_queue.jobs) == 2


@pytest.mark.asyncio
async def test_failed_job_is_retried_on_next_ensure(blob_store, recording_queue):
    coordinator = make_coordinator(blob_store, recording_queue)
    identity = make_identity()

    await coordinator.ensure(identity)
    await coordinator.mark_failed(recording_queue.jobs[0], RuntimeError("boom"))
    record = await coordinator.ensure(identity)

    assert record.status is PreviewStatus.QUEUED
    assert len(recording_queue.jobs) == 2


@pytest.mark.asyncio
async def test_new_version_uses_a_fresh_key(blob_store, recording_queue):
    coordinator = make_coordinator(blob_store, recording_queue)
    await blob_store.put(preview_key("doc1", 1000), PNG_BYTES, "image/png")

    record = await coordinator.ensure(make_identity(version=2000))

    assert record.status is PreviewStatus.QUEUED
    assert record.blob_key == preview_key("doc1", 2000)
    assert len(recording_queue.jobs) == 1


@pytest.mark.asyncio
async def test_namespaced_identity_uses_namespaced_key(blob_store, recording_queue):
    coordinator = make_coordinator(blob_store, recording_queue)

    record = await coordinator.ensure(make_identity(namespace="ns1"))

    assert record.blob_key == "ns/ns1/previews/doc1/1000"


@pytest.mark.asyncio
async def test_forget_drops_every_version(blob_store, recording_queue):
    coordinator = make_coordinator(blob_store, recording_queue)
    await coordinator.ensure(make_identity(version=1))
    await coordinator.ensure(make_identity(version=2))
    await coordinator.ensure(make_identity("doc2"))

    assert await coordinator.forget("doc1") == 2
    assert coordinator.claim_status(make_identity(version=1)) is PreviewStatus.MISSING
    assert coordinator.claim_status(make_identity("doc2")) is PreviewStatus.QUEUED


@pytest.mark.asyncio
async def test_explicit_enqueue_is_noop_while_claim_is_fresh(blob_store, recording_queue):
    coordinator = make_coordinator(blob_store, recording_queue)
    identity = make_identity()

    await coordinator.enqueue(identity)
    await coordinator.enqueue(identity)

    assert len(recording_queue.jobs) == 1
