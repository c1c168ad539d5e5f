"""Maintenance migration endpoints."""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Body

from docpreview.api.dependencies import ContainerDep, RepositoryDep, RequestContextDep, require_storage
from docpreview.schemas.migrations import (
    MigrationV1Request,
    MigrationV1Response,
    MigrationV2Request,
    MigrationV2Response,
    RekeyCounts,
)
from docpreview.services.migration.service import LegacyImportService, MigrationService
from docpreview.utils.responses import json_response

router = APIRouter()


@router.post(
    "/v1",
    response_model=MigrationV1Response,
    summary="Run docstore v1 migrations",
    description="Move legacy documents and audiobooks into the v1 layout and re-key audiobook directories.",
    operation_id="run_v1_migrations",
)
async def run_v1_migrations(
    container: ContainerDep,
    ctx: RequestContextDep,
    payload: Optional[MigrationV1Request] = Body(default=None),
):
    ctx.require_authenticated()
    mappings = payload.string_mappings() if payload else []

    service = MigrationService(Path(container.settings.docstore.root))
    report = await service.execute(mappings=mappings)

    return json_response(
        MigrationV1Response(
            documents_ready=report.documents_ready,
            audiobooks_ready=report.audiobooks_ready,
            documents_migrated=report.documents_migrated,
            audiobooks_migrated=report.audiobooks_migrated,
            rekey=RekeyCounts(**report.rekey.to_dict()),
        )
    )


@router.post(
    "/v2",
    response_model=MigrationV2Response,
    summary="Import v1 documents into blob storage",
    description="Upload documents_v1 files to the blob store and reconcile document rows.",
    operation_id="run_v2_migrations",
)
async def run_v2_migrations(
    container: ContainerDep,
    ctx: RequestContextDep,
    repository: RepositoryDep,
    payload: Optional[MigrationV2Request] = Body(default=None),
):
    ctx.require_authenticated()
    store = require_storage(container)
    payload = payload or MigrationV2Request()

    service = LegacyImportService(store, container.settings.docstore.documents_dir, repository)
    report = await service.execute(ctx, dry_run=payload.dry_run, delete_local=payload.delete_local)

    return json_response(
        MigrationV2Response(
            dry_run=report.dry_run,
            delete_local=report.delete_local,
            docs_dir=report.docs_dir,
            files_scanned=report.files_scanned,
            uploaded=report.uploaded,
            already_present=report.already_present,
            skipped_invalid=report.skipped_invalid,
            deleted_local=report.deleted_local,
            db_rows_updated=report.db_rows_updated,
            db_rows_seeded=report.db_rows_seeded,
        )
    )
