from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from tests.conftest import PDF_BYTES

DOC_ID = "b" * 64


def test_v1_rekeys_audiobooks(build_app, tmp_path):
    legacy = tmp_path / "docstore" / "abc-audiobook"
    legacy.mkdir(parents=True)
    (legacy / "chapter1.mp3").write_bytes(b"audio")
    app = build_app()

    with TestClient(app) as client:
        response = client.post("/api/v1/migrations/v1", json={"mappings": [{"oldId": "abc", "id": "xyz"}]})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["rekey"] == {"renamed": 1, "merged": 0, "skipped": 0}
    assert body["audiobooksReady"] is True
    assert (tmp_path / "docstore" / "audiobooks_v1" / "xyz-audiobook" / "chapter1.mp3").exists()


def test_v1_without_body(build_app):
    app = build_app()

    with TestClient(app) as client:
        response = client.post("/api/v1/migrations/v1")

    assert response.status_code == 200
    assert response.json()["rekey"] == {"renamed": 0, "merged": 0, "skipped": 0}


def test_v1_ignores_non_string_pairs(build_app):
    app = build_app()

    with TestClient(app) as client:
        response = client.post("/api/v1/migrations/v1", json={"mappings": [{"oldId": 1, "id": "xyz"}]})

    assert response.status_code == 200


def test_v1_rejects_unsafe_mapping(build_app, tmp_path):
    legacy = tmp_path / "docstore" / "abc-audiobook"
    legacy.mkdir(parents=True)
    app = build_app()

    with TestClient(app) as client:
        response = client.post(
            "/api/v1/migrations/v1",
            json={"mappings": [{"oldId": "abc", "id": "xyz"}, {"oldId": "abc", "id": "../escape"}]},
        )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid document id mapping", "code": "INVALID_MAPPING"}
    assert legacy.is_dir()


def test_v1_requires_session_when_auth_enabled(build_app):
    app = build_app(auth=True)

    with TestClient(app) as client:
        response = client.post("/api/v1/migrations/v1")

    assert response.status_code == 401


def test_v2_imports_documents(build_app, tmp_path, blob_store):
    docs_dir = tmp_path / "docstore" / "documents_v1"
    docs_dir.mkdir(parents=True)
    (docs_dir / f"{DOC_ID}__Book.pdf").write_bytes(PDF_BYTES)
    repository = AsyncMock()
    repository.repoint_file_paths.return_value = 0
    repository.seed_missing.return_value = 1
    app = build_app(repository=repository)

    with TestClient(app) as client:
        response = client.post("/api/v1/migrations/v2", json={"deleteLocal": True})

    assert response.status_code == 200
    body = response.json()
    assert body["filesScanned"] == 1
    assert body["uploaded"] == 1
    assert body["deletedLocal"] == 1
    assert body["dbRowsSeeded"] == 1
    assert (tmp_path / "blobs" / "documents" / DOC_ID).read_bytes() == PDF_BYTES
    assert not (docs_dir / f"{DOC_ID}__Book.pdf").exists()


def test_v2_dry_run(build_app, tmp_path):
    docs_dir = tmp_path / "docstore" / "documents_v1"
    docs_dir.mkdir(parents=True)
    (docs_dir / f"{DOC_ID}__Book.pdf").write_bytes(PDF_BYTES)
    repository = AsyncMock()
    repository.repoint_file_paths.return_value = 3
    repository.seed_missing.return_value = 1
    app = build_app(repository=repository)

    with TestClient(app) as client:
        response = client.post("/api/v1/migrations/v2", json={"dryRun": True})

    body = response.json()
    assert body["dryRun"] is True
    assert body["uploaded"] == 0
    assert body["dbRowsUpdated"] == 3
    assert not (tmp_path / "blobs" / "documents" / DOC_ID).exists()


def test_v2_requires_storage(build_app):
    app = build_app(storage=False, repository=AsyncMock())

    with TestClient(app) as client:
        response = client.post("/api/v1/migrations/v2")

    assert response.status_code == 503
    assert response.json()["code"] == "STORAGE_UNAVAILABLE"


def test_v1_reports_collisions_as_skipped(build_app, tmp_path):
    docstore = tmp_path / "docstore"
    (docstore / "audiobooks_v1" / "abc-audiobook").mkdir(parents=True)
    (docstore / "audiobooks_v1" / "abc-audiobook" / "a.mp3").write_bytes(b"audio")
    (docstore / "audiobooks_v1" / "xyz-audiobook").write_bytes(b"stray")
    app = build_app()

    with TestClient(app) as client:
        response = client.post("/api/v1/migrations/v1", json={"mappings": [{"oldId": "abc", "id": "xyz"}]})

    assert response.status_code == 200
    assert response.json()["rekey"] == {"renamed": 0, "merged": 0, "skipped": 1}
