from unittest.mock import AsyncMock

import pytest

from docpreview.core.exceptions import StorageError
from docpreview.services.preview.coordinator import PreviewCoordinator, PreviewStatus
from docpreview.services.preview.delivery import DeliveryKind, PresignedDelivery
from docpreview.services.storage.keys import preview_key
from tests.conftest import PNG_BYTES, make_identity


@pytest.fixture
def delivery(blob_store, recording_queue):
    coordinator = PreviewCoordinator(blob_store, recording_queue, retry_after_ms=1500)
    return PresignedDelivery(coordinator, blob_store, ttl_seconds=300)


@pytest.mark.asyncio
async def test_pending_when_preview_missing(delivery, recording_queue):
    result = await delivery.deliver(make_identity())

    assert result.kind is DeliveryKind.PENDING
    assert result.record.status is PreviewStatus.QUEUED
    assert len(recording_queue.jobs) == 1


@pytest.mark.asyncio
async def test_redirects_when_presign_succeeds(delivery, blob_store):
    await blob_store.put(preview_key("doc1", 1000), PNG_BYTES, "image/png")
    blob_store.presign_get = AsyncMock(return_value="https://cdn.test/preview?sig=1")

    result = await delivery.deliver(make_identity())

    assert result.kind is DeliveryKind.REDIRECT
    assert result.url == "https://cdn.test/preview?sig=1"
    blob_store.presign_get.assert_awaited_once_with(preview_key("doc1", 1000), 300)


@pytest.mark.asyncio
async def test_streams_when_presign_unavailable(delivery, blob_store):
    await blob_store.put(preview_key("doc1", 1000), PNG_BYTES, "image/png")

    result = await delivery.deliver(make_identity())

    assert result.kind is DeliveryKind.STREAM
    assert result.content.data == PNG_BYTES
    assert result.content.content_type == "image/png"


@pytest.mark.asyncio
async def test_fallback_redirect_when_streaming_not_requested(delivery, blob_store):
    await blob_store.put(preview_key("doc1", 1000), PNG_BYTES, "image/png")

    result = await delivery.deliver(make_identity(), stream_fallback=False)

    assert result.kind is DeliveryKind.FALLBACK
    assert result.content is None


@pytest.mark.asyncio
async def test_presign_errors_fall_back_to_streaming(delivery, blob_store):
    await blob_store.put(preview_key("doc1", 1000), PNG_BYTES, "image/png")
    blob_store.presign_get = AsyncMock(side_effect=StorageError("signing down"))

    assert await delivery.direct_url(make_identity()) is None
    result = await delivery.deliver(make_identity())
    assert result.kind is DeliveryKind.STREAM
