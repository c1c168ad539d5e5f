from typing import List, Optional

import pytest

from docpreview.api.dependencies import get_document_lookup, get_document_repository
from docpreview.container import build_container
from docpreview.main import create_app
from tests.conftest import FakeLookup, FakeRow, RecordingQueue, make_settings


@pytest.fixture
def build_app(tmp_path, blob_store):
    """Factory for an app wired to a filesystem store, a recording queue and fake lookups."""

    def build(
        rows: Optional[List[FakeRow]] = None,
        storage: bool = True,
        auth: bool = False,
        queue: Optional[RecordingQueue] = None,
        repository=None,
        store=None,
    ):
        settings = make_settings(tmp_path, storage_backend="filesystem" if storage else "", auth=auth)
        container = build_container(
            settings,
            blob_store=(store or blob_store) if storage else None,
            queue=queue or RecordingQueue(),
        )
        app = create_app(container)
        lookup = FakeLookup(rows)
        app.dependency_overrides[get_document_lookup] = lambda: lookup
        if repository is not None:
            app.dependency_overrides[get_document_repository] = lambda: repository
        return app

    return build
