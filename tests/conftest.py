"""Pytest configuration and shared fixtures."""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

import jwt
import pytest

from docpreview.core.auth import AuthContext
from docpreview.core.config import (
    AuthSettings,
    DatabaseSettings,
    DocstoreSettings,
    PreviewSettings,
    Settings,
    StorageSettings,
)
from docpreview.core.context import RequestContext
from docpreview.core.exceptions import QueueError
from docpreview.services.identity_service import DocumentIdentity
from docpreview.services.preview.converter import PreviewConverter
from docpreview.services.preview.jobs import PreviewJob
from docpreview.services.preview.queue import PreviewQueue
from docpreview.services.storage.filesystem import FilesystemBlobStore

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-preview"
PDF_BYTES = b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<<\n/Type /Catalog\n>>\nendobj\n"

AUTH_SECRET = "test-secret-with-enough-length-for-hs256"
AUTH_BASE_URL = "http://auth.test"


@dataclass
class FakeRow:
    """Stand-in for a documents table row."""

    id: str
    user_id: str
    type: str = "pdf"
    last_modified: int = 1000
    name: str = "doc.pdf"


class FakeLookup:
    """In-memory document lookup that records the owner ids it was asked for."""

    def __init__(self, rows: Optional[List[FakeRow]] = None):
        self.rows = rows or []
        self.calls: List[tuple] = []

    async def find_for_owners(self, document_id: str, owner_ids: Sequence[str]) -> List[FakeRow]:
        self.calls.append((document_id, tuple(owner_ids)))
        return [r for r in self.rows if r.id == document_id and r.user_id in owner_ids]


class RecordingQueue(PreviewQueue):
    """Queue that only records jobs; nothing is ever generated."""

    def __init__(self, fail: bool = False):
        super().__init__()
        self.jobs: List[PreviewJob] = []
        self.fail = fail

    async def enqueue(self, job: PreviewJob) -> None:
        if self.fail:
            raise QueueError("queue unavailable")
        self.jobs.append(job)


class StaticConverter(PreviewConverter):
    """Converter that returns fixed PNG bytes."""

    content_type = "image/png"
    supported_types = ("pdf", "epub")

    def __init__(self, output: bytes = PNG_BYTES, error: Optional[Exception] = None):
        self.output = output
        self.error = error
        self.calls = 0

    async def convert(self, data: bytes, document_type: str) -> bytes:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.output


def make_identity(
    document_id: str = "doc1",
    version: int = 1000,
    document_type: str = "pdf",
    namespace: Optional[str] = None,
) -> DocumentIdentity:
    return DocumentIdentity(
        id=document_id,
        owner_user_id="unclaimed",
        document_type=document_type,
        version=version,
        namespace=namespace,
    )


def make_settings(tmp_path: Path, storage_backend: str = "filesystem", auth: bool = False) -> Settings:
    return Settings(
        db=DatabaseSettings(backend="sqlite", sqlite_path=str(tmp_path / "test.db")),
        storage=StorageSettings(backend=storage_backend, root=str(tmp_path / "blobs"), prefix=""),
        auth=AuthSettings(
            secret=AUTH_SECRET if auth else "",
            base_url=AUTH_BASE_URL if auth else "",
        ),
        preview=PreviewSettings(retry_after_ms=1500, claim_ttl_seconds=120, queue_backend="local"),
        docstore=DocstoreSettings(root=str(tmp_path / "docstore")),
    )


@pytest.fixture
def anonymous_ctx() -> RequestContext:
    return RequestContext(auth=AuthContext(auth_enabled=False))


@pytest.fixture
def blob_store(tmp_path) -> FilesystemBlobStore:
    return FilesystemBlobStore(str(tmp_path / "blobs"))


@pytest.fixture
def recording_queue() -> RecordingQueue:
    return RecordingQueue()


def make_token(sub="user-1", secret=AUTH_SECRET, iss=AUTH_BASE_URL, exp_offset=300, **extra) -> str:
    now = int(time.time())
    payload = {
        "sub": sub,
        "iat": now,
        "exp": now + exp_offset,
        "iss": iss,
        "aud": "authenticated",
        **extra,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def write_blob(root: Path, key: str, data: bytes) -> Path:
    """Place a blob directly on disk for a prefix-less filesystem store."""
    path = root / key
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path
