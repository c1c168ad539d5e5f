import json

import httpx
import pytest

from docpreview.core.exceptions import MissingBlobError, StorageError
from docpreview.services.storage.supabase import SupabaseBlobStore

SUPABASE_URL = "http://supabase.test"

_REAL_ASYNC_CLIENT = httpx.AsyncClient


@pytest.fixture
def requests_seen():
    return []


@pytest.fixture
def route(monkeypatch, requests_seen):
    """Install a handler that answers every request the store makes."""

    def install(handler):
        def recording_handler(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return handler(request)

        transport = httpx.MockTransport(recording_handler)
        monkeypatch.setattr(
            httpx,
            "AsyncClient",
            lambda *args, **kwargs: _REAL_ASYNC_CLIENT(transport=transport),
        )

    return install


@pytest.fixture
def store():
    return SupabaseBlobStore(
        url=SUPABASE_URL,
        service_role_key="service-key",
        bucket="documents",
        prefix="docpreview",
        presign_max_ttl_seconds=600,
    )


@pytest.mark.asyncio
async def test_put_posts_object_with_upsert(store, route, requests_seen):
    route(lambda request: httpx.Response(200, json={"Key": "documents/docpreview/previews/doc1/1"}))

    assert await store.put("previews/doc1/1", b"png", "image/png") is True

    request = requests_seen[0]
    assert request.method == "POST"
    assert request.url.path == "/storage/v1/object/documents/docpreview/previews/doc1/1"
    assert request.headers["x-upsert"] == "true"
    assert request.headers["Content-Type"] == "image/png"
    assert request.headers["Authorization"] == "Bearer service-key"


@pytest.mark.asyncio
async def test_conditional_put_reports_duplicate(store, route, requests_seen):
    route(lambda request: httpx.Response(400, json={"error": "Duplicate", "message": "The resource already exists"}))

    assert await store.put("documents/doc1", b"pdf", "application/pdf", overwrite=False) is False
    assert requests_seen[0].headers["x-upsert"] == "false"


@pytest.mark.asyncio
async def test_put_failure_raises(store, route):
    route(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(StorageError):
        await store.put("documents/doc1", b"pdf", "application/pdf")


@pytest.mark.asyncio
async def test_get_not_found_raises_missing_blob(store, route):
    route(lambda request: httpx.Response(400, json={"statusCode": "404", "error": "not_found", "message": "Object not found"}))

    with pytest.raises(MissingBlobError):
        await store.get("previews/doc1/1")


@pytest.mark.asyncio
async def test_get_returns_content(store, route, requests_seen):
    route(lambda request: httpx.Response(200, content=b"png"))

    assert await store.get("previews/doc1/1") == b"png"
    assert requests_seen[0].url.path == "/storage/v1/object/authenticated/documents/docpreview/previews/doc1/1"


@pytest.mark.asyncio
async def test_exists(store, route):
    route(lambda request: httpx.Response(200 if request.url.path.endswith("/1") else 404))

    assert await store.exists("previews/doc1/1") is True
    assert await store.exists("previews/doc1/2") is False


@pytest.mark.asyncio
async def test_delete_by_prefix_lists_recursively(store, route, requests_seen):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/storage/v1/object/list/documents":
            folder = json.loads(request.content)["prefix"]
            if folder == "docpreview/previews":
                return httpx.Response(200, json=[
                    {"name": "doc1", "id": None},
                    {"name": "doc10", "id": None},
                ])
            if folder == "docpreview/previews/doc1":
                return httpx.Response(200, json=[{"name": "1000", "id": "a"}, {"name": "2000", "id": "b"}])
            return httpx.Response(200, json=[])
        if request.method == "DELETE":
            names = json.loads(request.content)["prefixes"]
            return httpx.Response(200, json=[{"name": name} for name in names])
        return httpx.Response(404)

    route(handler)

    assert await store.delete_by_prefix("previews/doc1/") == 2

    deletes = [r for r in requests_seen if r.method == "DELETE"]
    assert len(deletes) == 1
    assert json.loads(deletes[0].content)["prefixes"] == [
        "docpreview/previews/doc1/1000",
        "docpreview/previews/doc1/2000",
    ]


@pytest.mark.asyncio
async def test_presign_builds_absolute_url(store, route, requests_seen):
    route(lambda request: httpx.Response(200, json={"signedURL": "/object/sign/documents/docpreview/previews/doc1/1?token=t"}))

    url = await store.presign_get("previews/doc1/1", 10_000)

    assert url == f"{SUPABASE_URL}/storage/v1/object/sign/documents/docpreview/previews/doc1/1?token=t"
    assert json.loads(requests_seen[0].content) == {"expiresIn": 600}


@pytest.mark.asyncio
async def test_presign_failure_returns_none(store, route):
    route(lambda request: httpx.Response(403, json={"message": "forbidden"}))

    assert await store.presign_get("previews/doc1/1", 60) is None
