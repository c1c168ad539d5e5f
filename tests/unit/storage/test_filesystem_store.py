import asyncio

import pytest

from docpreview.core.exceptions import MissingBlobError, StorageError
from docpreview.services.storage.filesystem import FilesystemBlobStore


@pytest.fixture
def store(tmp_path):
    return FilesystemBlobStore(str(tmp_path), prefix="docpreview", presign_max_ttl_seconds=600)


@pytest.mark.asyncio
async def test_put_get_exists(store, tmp_path):
    assert await store.put("previews/doc1/1000", b"png", "image/png") is True

    assert await store.exists("previews/doc1/1000")
    assert await store.get("previews/doc1/1000") == b"png"
    assert (tmp_path / "docpreview" / "previews" / "doc1" / "1000").is_file()


@pytest.mark.asyncio
async def test_conditional_put_does_not_overwrite(store):
    await store.put("documents/doc1", b"first", "application/pdf")

    assert await store.put("documents/doc1", b"second", "application/pdf", overwrite=False) is False
    assert await store.get("documents/doc1") == b"first"


@pytest.mark.asyncio
async def test_get_missing_raises(store):
    assert not await store.exists("documents/nope")
    with pytest.raises(MissingBlobError) as exc_info:
        await store.get("documents/nope")
    assert exc_info.value.key == "documents/nope"


@pytest.mark.asyncio
async def test_delete_by_prefix_only_matches_prefix(store):
    await store.put("previews/doc1/1", b"a", "image/png")
    await store.put("previews/doc1/2", b"b", "image/png")
    await store.put("previews/doc10/1", b"c", "image/png")

    assert await store.delete_by_prefix("previews/doc1/") == 2
    assert await store.exists("previews/doc10/1")
    assert not await store.exists("previews/doc1/1")


@pytest.mark.asyncio
async def test_delete_single_blob(store):
    await store.put("documents/doc1", b"a", "application/pdf")

    assert await store.delete("documents/doc1") is True
    assert await store.delete("documents/doc1") is False


@pytest.mark.asyncio
async def test_keys_cannot_escape_root(store):
    with pytest.raises(StorageError):
        await store.put("../../outside", b"x", "text/plain")


@pytest.mark.asyncio
async def test_presign_is_unavailable(store):
    assert await store.presign_get("previews/doc1/1", 60) is None


def test_ttl_is_clamped(store):
    assert store.clamp_ttl(0) == 1
    assert store.clamp_ttl(10_000) == 600
    assert store.clamp_ttl(300) == 300


@pytest.mark.asyncio
async def test_concurrent_overwrites_leave_one_complete_blob(store, tmp_path):
    payloads = [bytes([i]) * 4096 for i in range(16)]

    results = await asyncio.gather(
        *(store.put("previews/doc1/1000", data, "image/png") for data in payloads)
    )

    assert all(results)
    assert await store.get("previews/doc1/1000") in payloads
    folder = tmp_path / "docpreview" / "previews" / "doc1"
    assert [p.name for p in folder.iterdir()] == ["1000"]
