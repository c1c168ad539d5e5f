"""On-disk docstore layout migrations.

The flat legacy layout stored ``<x>.json`` metadata next to ``<id>.<type>``
content in the docstore root, and ``<id>-audiobook`` directories beside
them. The v1 layout moves documents into ``documents_v1/`` as
``<sha256>__<urlencoded name>`` and audiobooks into ``audiobooks_v1/``.
Progress is recorded in ``.migrations/state.json``.
"""

import hashlib
import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import quote

from docpreview.services.migration.merger import AUDIOBOOK_DIR_SUFFIX, merge_tree
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

MAX_FILE_NAME_LENGTH = 240
STATE_KEYS = ("documentsV1Migrated", "audiobooksV1Migrated", "updatedAt")


def migrated_document_file_name(document_id: str, name: str) -> str:
    """``<id>__<urlencoded name>``, hashed when it would exceed the length limit."""
    prefix = f"{document_id}__"
    # Escaped like encodeURIComponent so the web client can decode names
    encoded = quote(name, safe="!*'()")
    file_name = f"{prefix}{encoded}"
    if len(file_name) > MAX_FILE_NAME_LENGTH:
        name_hash = hashlib.sha256(name.encode("utf-8")).hexdigest()[:32]
        file_name = f"{prefix}truncated-{name_hash}"
    return file_name


def safe_document_name(raw_name: Optional[str], fallback: str) -> str:
    base_name = os.path.basename(raw_name or fallback)
    return base_name.replace("\x00", "")[:MAX_FILE_NAME_LENGTH] or fallback


def _is_legacy_metadata(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    numeric = (int, float)
    return (
        isinstance(value.get("id"), str)
        and isinstance(value.get("name"), str)
        and isinstance(value.get("type"), str)
        and isinstance(value.get("size"), numeric)
        and not isinstance(value.get("size"), bool)
        and isinstance(value.get("lastModified"), numeric)
        and not isinstance(value.get("lastModified"), bool)
    )


class DocstoreMigrator:
    """Brings a docstore directory up to the v1 layout."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.documents_dir = self.root / "documents_v1"
        self.audiobooks_dir = self.root / "audiobooks_v1"
        self.state_path = self.root / ".migrations" / "state.json"

    # State

    def load_state(self) -> Dict[str, Any]:
        try:
            state = json.loads(self.state_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return state if isinstance(state, dict) else {}

    def save_state(self, **update: Any) -> Dict[str, Any]:
        state = self.load_state()
        next_state = {
            "documentsV1Migrated": state.get("documentsV1Migrated"),
            "audiobooksV1Migrated": state.get("audiobooksV1Migrated"),
            **update,
            "updatedAt": int(time.time() * 1000),
        }
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        self.state_path.write_text(json.dumps(next_state, indent=2), encoding="utf-8")
        return next_state

    # Documents

    def _legacy_documents(self):
        """Yield ``(metadata_path, content_path, metadata)`` for complete legacy pairs."""
        if not self.root.is_dir():
            return
        for metadata_path in sorted(self.root.iterdir()):
            if not metadata_path.is_file() or metadata_path.suffix != ".json":
                continue
            try:
                metadata = json.loads(metadata_path.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                continue
            if not _is_legacy_metadata(metadata):
                continue
            content_path = self.root / f"{metadata['id']}.{metadata['type']}"
            if not content_path.is_file():
                continue
            yield metadata_path, content_path, metadata

    def has_legacy_document_files(self) -> bool:
        return next(self._legacy_documents(), None) is not None

    def is_documents_ready(self) -> bool:
        if not self.root.is_dir() or not self.documents_dir.is_dir():
            return False
        if not self.load_state().get("documentsV1Migrated"):
            return False
        return not self.has_legacy_document_files()

    def ensure_documents_ready(self) -> bool:
        """Migrate flat legacy documents.

        Returns:
            True when a migration pass actually ran
        """
        self.documents_dir.mkdir(parents=True, exist_ok=True)

        if not self.has_legacy_document_files():
            if not self.load_state().get("documentsV1Migrated"):
                self.save_state(documentsV1Migrated=True)
            return False

        for metadata_path, content_path, metadata in list(self._legacy_documents()):
            content = content_path.read_bytes()
            document_id = hashlib.sha256(content).hexdigest()
            name = safe_document_name(metadata["name"], f"{document_id}.{metadata['type']}")
            target = self.documents_dir / migrated_document_file_name(document_id, name)

            if not target.exists():
                target.write_bytes(content)
                last_modified = metadata["lastModified"]
                if last_modified > 0:
                    stamp = last_modified / 1000.0
                    try:
                        os.utime(target, (stamp, stamp))
                    except OSError as e:
                        LOGGER.warning(f"Could not preserve mtime on {target.name}: {e}")

            for path in (metadata_path, content_path):
                try:
                    path.unlink()
                except FileNotFoundError:
                    pass
            LOGGER.info(f"Migrated legacy document {metadata['id']} -> {target.name}")

        self.save_state(documentsV1Migrated=not self.has_legacy_document_files())
        return True

    # Audiobooks

    def has_legacy_audiobook_dirs(self) -> bool:
        if not self.root.is_dir():
            return False
        return any(p.is_dir() and p.name.endswith(AUDIOBOOK_DIR_SUFFIX) for p in self.root.iterdir())

    def is_audiobooks_ready(self) -> bool:
        if not self.root.is_dir() or not self.audiobooks_dir.is_dir():
            return False
        if not self.load_state().get("audiobooksV1Migrated"):
            return False
        return not self.has_legacy_audiobook_dirs()

    def ensure_audiobooks_ready(self) -> bool:
        """Move legacy ``*-audiobook`` directories into ``audiobooks_v1``.

        Returns:
            True when a migration pass actually ran
        """
        self.audiobooks_dir.mkdir(parents=True, exist_ok=True)
        state = self.load_state()

        if not self.has_legacy_audiobook_dirs():
            if not state.get("audiobooksV1Migrated") or set(state) - set(STATE_KEYS):
                self.save_state(audiobooksV1Migrated=True)
            return False

        for source in sorted(self.root.iterdir()):
            if not source.is_dir() or not source.name.endswith(AUDIOBOOK_DIR_SUFFIX):
                continue
            target = self.audiobooks_dir / source.name
            if not target.exists():
                os.rename(source, target)
                continue
            if not target.is_dir():
                LOGGER.warning(f"Legacy audiobook dir kept, {target} is not a directory")
                continue

            tally = merge_tree(source, target)
            try:
                source.rmdir()
            except OSError:
                LOGGER.warning(
                    f"Legacy audiobook dir not fully migrated (kept): {source}",
                    extra={"skipped": tally.skipped},
                )

        self.save_state(audiobooksV1Migrated=not self.has_legacy_audiobook_dirs())
        return True
