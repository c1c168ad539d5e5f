"""Import of ``documents_v1`` files into the blob store.

Each file becomes ``documents/<id>`` in the (namespaced) blob store and gets
a metadata row for the namespace's unclaimed owner. Uploads are conditional
creates, so re-running the import never overwrites content.
"""

import asyncio
import hashlib
import mimetypes
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

from docpreview.repositories.document_repository import DocumentRepository
from docpreview.services.storage.base import BlobStore
from docpreview.services.storage.keys import document_key
from docpreview.utils.identifiers import is_safe_id
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

_ID_PREFIX_RE = re.compile(r"^([a-f0-9]{64})__", re.IGNORECASE)
_ZIP_PROBE_BYTES = 1024 * 1024

_EXTENSION_TYPES = {".pdf": "pdf", ".epub": "epub", ".docx": "docx"}
_TYPE_EXTENSIONS = {"pdf": ".pdf", "epub": ".epub", "docx": ".docx"}
_TYPE_CONTENT_TYPES = {
    "pdf": "application/pdf",
    "epub": "application/epub+zip",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def extract_id_from_file_name(file_name: str) -> Optional[str]:
    match = _ID_PREFIX_RE.match(file_name)
    if not match:
        return None
    document_id = match.group(1).lower()
    return document_id if is_safe_id(document_id) else None


def decode_name_from_file_name(file_name: str, document_id: str) -> str:
    prefix = f"{document_id}__"
    if not file_name.startswith(prefix):
        return f"{document_id}.bin"
    try:
        return unquote(file_name[len(prefix):], errors="strict")
    except UnicodeDecodeError:
        return f"{document_id}.bin"


def document_type_from_name(name: str) -> str:
    return _EXTENSION_TYPES.get(Path(name).suffix.lower(), "html")


def sniff_document_type(data: bytes) -> Optional[str]:
    """Recognize PDF, EPUB and DOCX content from its leading bytes."""
    if data[:5] == b"%PDF-":
        return "pdf"

    is_zip = (
        len(data) >= 4
        and data[0:2] == b"PK"
        and data[2] in (0x03, 0x05, 0x07)
        and data[3] in (0x04, 0x06, 0x08)
    )
    if not is_zip:
        return None

    probe = data[:_ZIP_PROBE_BYTES].decode("latin-1")
    if "application/epub+zip" in probe or "META-INF/container.xml" in probe:
        return "epub"
    if "[Content_Types].xml" in probe and "word/" in probe:
        return "docx"
    return None


def normalize_name_for_type(name: str, document_id: str, document_type: str) -> str:
    expected = _TYPE_EXTENSIONS.get(document_type)
    if expected is None or name.lower().endswith(expected):
        return name
    base = re.sub(r"\.bin$", "", name, flags=re.IGNORECASE)
    return f"{base or document_id}{expected}"


def content_type_for(document_type: str, name: str) -> str:
    if document_type in _TYPE_CONTENT_TYPES:
        return _TYPE_CONTENT_TYPES[document_type]
    guessed, _ = mimetypes.guess_type(name)
    return guessed or "application/octet-stream"


@dataclass
class ImportReport:
    dry_run: bool
    delete_local: bool
    docs_dir: str
    files_scanned: int = 0
    uploaded: int = 0
    already_present: int = 0
    skipped_invalid: int = 0
    deleted_local: int = 0
    db_rows_updated: int = 0
    db_rows_seeded: int = 0
    candidates: List[Dict[str, Any]] = field(default_factory=list, repr=False)


class LegacyDocumentImporter:
    """Uploads ``documents_v1`` files and reconciles document rows."""

    def __init__(self, store: BlobStore, documents_dir: Path):
        self.store = store
        self.documents_dir = Path(documents_dir)

    def docs_dir_for(self, namespace: Optional[str]) -> Path:
        return self.documents_dir / namespace if namespace else self.documents_dir

    async def _import_file(self, path: Path, namespace: Optional[str], report: ImportReport) -> None:
        data = await asyncio.to_thread(path.read_bytes)
        stats = await asyncio.to_thread(path.stat)

        document_id = extract_id_from_file_name(path.name) or hashlib.sha256(data).hexdigest()
        if not is_safe_id(document_id):
            report.skipped_invalid += 1
            return

        name = decode_name_from_file_name(path.name, document_id)
        document_type = document_type_from_name(name)
        if document_type == "html":
            document_type = sniff_document_type(data) or document_type
        name = normalize_name_for_type(name, document_id, document_type)
        mtime_ms = int(stats.st_mtime * 1000) if stats.st_mtime else int(time.time() * 1000)

        report.candidates.append(
            {
                "id": document_id,
                "name": name,
                "type": document_type,
                "size": len(data),
                "last_modified": mtime_ms,
            }
        )

        if report.dry_run:
            return

        created = await self.store.put(
            document_key(document_id, namespace),
            data,
            content_type_for(document_type, name),
            overwrite=False,
        )
        if created:
            report.uploaded += 1
        else:
            report.already_present += 1

        if report.delete_local:
            try:
                await asyncio.to_thread(path.unlink)
                report.deleted_local += 1
            except FileNotFoundError:
                pass

    async def run(
        self,
        repository: DocumentRepository,
        unclaimed_user_id: str,
        namespace: Optional[str] = None,
        dry_run: bool = False,
        delete_local: bool = False,
    ) -> ImportReport:
        docs_dir = self.docs_dir_for(namespace)
        report = ImportReport(dry_run=dry_run, delete_local=delete_local, docs_dir=str(docs_dir))

        if docs_dir.is_dir():
            files = sorted(p for p in docs_dir.iterdir() if p.is_file())
            report.files_scanned = len(files)
            for path in files:
                await self._import_file(path, namespace, report)

        report.db_rows_updated = await repository.repoint_file_paths(dry_run=dry_run)
        if report.candidates:
            report.db_rows_seeded = await repository.seed_missing(unclaimed_user_id, report.candidates, dry_run=dry_run)

        LOGGER.info(
            f"Legacy import finished for {docs_dir}",
            extra={
                "dry_run": dry_run,
                "files_scanned": report.files_scanned,
                "uploaded": report.uploaded,
                "already_present": report.already_present,
            },
        )
        return report
