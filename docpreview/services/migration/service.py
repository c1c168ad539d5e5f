"""Maintenance services behind the migration endpoints."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional

from docpreview.core.context import RequestContext
from docpreview.core.exceptions import StorageNotConfiguredError
from docpreview.repositories.document_repository import DocumentRepository
from docpreview.services.base_service import BaseService
from docpreview.services.migration.docstore import DocstoreMigrator
from docpreview.services.migration.legacy_import import ImportReport, LegacyDocumentImporter
from docpreview.services.migration.merger import LegacyMapping, LegacyMigrationMerger, RekeyResult
from docpreview.services.storage.base import BlobStore


@dataclass
class MigrationReport:
    documents_ready: bool
    audiobooks_ready: bool
    documents_migrated: bool
    audiobooks_migrated: bool
    rekey: RekeyResult


class MigrationService(BaseService):
    """Docstore v1 migration plus audiobook re-keying."""

    def __init__(self, docstore_root: Path):
        super().__init__()
        self.docstore = DocstoreMigrator(docstore_root)
        self.merger = LegacyMigrationMerger(self.docstore.audiobooks_dir)

    def validate(self, mappings: Iterable[Any] = ()):
        LegacyMigrationMerger.validate(mappings)

    def _migrate(self, mappings: List[LegacyMapping]) -> MigrationReport:
        documents_migrated = self.docstore.ensure_documents_ready()
        audiobooks_migrated = self.docstore.ensure_audiobooks_ready()
        rekey = self.merger.migrate(mappings)
        return MigrationReport(
            documents_ready=self.docstore.is_documents_ready(),
            audiobooks_ready=self.docstore.is_audiobooks_ready(),
            documents_migrated=documents_migrated,
            audiobooks_migrated=audiobooks_migrated,
            rekey=rekey,
        )

    async def run(self, mappings: Iterable[Any] = ()) -> MigrationReport:
        validated = LegacyMigrationMerger.validate(mappings)
        report = await asyncio.to_thread(self._migrate, validated)
        self.logger.info(
            "Docstore migrations complete",
            extra={"rekey": report.rekey.to_dict(), "documents_migrated": report.documents_migrated},
        )
        return report


class LegacyImportService(BaseService):
    """Moves ``documents_v1`` content into the blob store."""

    def __init__(self, store: Optional[BlobStore], documents_dir: Path, repository: DocumentRepository):
        super().__init__()
        self.store = store
        self.documents_dir = documents_dir
        self.repository = repository

    def validate(self, ctx: RequestContext, dry_run: bool = False, delete_local: bool = False):
        if self.store is None:
            raise StorageNotConfiguredError("Blob storage is not configured")

    async def run(self, ctx: RequestContext, dry_run: bool = False, delete_local: bool = False) -> ImportReport:
        importer = LegacyDocumentImporter(self.store, self.documents_dir)
        return await importer.run(
            self.repository,
            unclaimed_user_id=ctx.unclaimed_user_id,
            namespace=ctx.namespace,
            dry_run=dry_run,
            delete_local=delete_local,
        )
