"""Migration endpoint payloads."""

from typing import Any, Dict, List

from pydantic import Field

from docpreview.schemas.base import CamelModel


class MigrationV1Request(CamelModel):
    mappings: List[Dict[str, Any]] = Field(default_factory=list, description="oldId -> id rename pairs")

    def string_mappings(self) -> List[Dict[str, Any]]:
        """Pairs whose ``oldId`` and ``id`` are both strings; anything else is ignored."""
        return [
            m for m in self.mappings
            if isinstance(m.get("oldId"), str) and isinstance(m.get("id"), str)
        ]


class RekeyCounts(CamelModel):
    renamed: int = 0
    merged: int = 0
    skipped: int = 0


class MigrationV1Response(CamelModel):
    success: bool = True
    documents_ready: bool
    audiobooks_ready: bool
    documents_migrated: bool
    audiobooks_migrated: bool
    rekey: RekeyCounts


class MigrationV2Request(CamelModel):
    dry_run: bool = False
    delete_local: bool = False


class MigrationV2Response(CamelModel):
    success: bool = True
    dry_run: bool
    delete_local: bool
    docs_dir: str
    files_scanned: int
    uploaded: int
    already_present: int
    skipped_invalid: int
    deleted_local: int
    db_rows_updated: int
    db_rows_seeded: int
