"""Legacy audiobook directory re-keying.

Older clients stored audiobook output under ``<oldId>-audiobook``. When a
document's id changes, its directory is renamed to ``<id>-audiobook``; if the
destination already exists the two trees are merged, and files already at
the destination always win.
"""

import asyncio
import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List

from docpreview.core.exceptions import InvalidMappingError
from docpreview.utils.identifiers import is_safe_id
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

AUDIOBOOK_DIR_SUFFIX = "-audiobook"


class MergeOutcome(str, Enum):
    MOVED = "moved"
    SKIPPED = "skipped"
    RECURSED = "recursed"


@dataclass
class MergeTally:
    moved: int = 0
    skipped: int = 0
    recursed: int = 0

    def add(self, outcome: MergeOutcome) -> "MergeTally":
        if outcome is MergeOutcome.MOVED:
            self.moved += 1
        elif outcome is MergeOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.recursed += 1
        return self


@dataclass(frozen=True)
class LegacyMapping:
    old_id: str
    id: str


@dataclass
class RekeyResult:
    renamed: int = 0
    merged: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"renamed": self.renamed, "merged": self.merged, "skipped": self.skipped}


def _remove_if_empty(path: Path) -> bool:
    try:
        path.rmdir()
        return True
    except OSError:
        # Not empty, or already gone
        return False


def iter_merge(source: Path, target: Path) -> Iterator[MergeOutcome]:
    """Move everything under ``source`` into ``target``, one outcome per entry.

    Existing target files are never overwritten. Subdirectories are merged
    recursively and removed once empty. Entries that are neither regular
    files nor directories are left alone.
    """
    try:
        entries = sorted(os.scandir(source), key=lambda e: e.name)
    except OSError:
        return

    for entry in entries:
        src = Path(entry.path)
        dst = target / entry.name

        if entry.is_dir(follow_symlinks=False):
            # A file already sitting at the destination name wins
            if dst.exists() and not dst.is_dir():
                yield MergeOutcome.SKIPPED
                continue
            try:
                dst.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                LOGGER.warning(f"Could not create {dst}: {e}")
                yield MergeOutcome.SKIPPED
                continue
            yield from iter_merge(src, dst)
            _remove_if_empty(src)
            yield MergeOutcome.RECURSED
            continue

        if not entry.is_file(follow_symlinks=False):
            continue

        if dst.exists():
            yield MergeOutcome.SKIPPED
            continue

        try:
            os.rename(src, dst)
        except OSError as e:
            LOGGER.warning(f"Could not move {src} -> {dst}: {e}")
            yield MergeOutcome.SKIPPED
            continue
        yield MergeOutcome.MOVED


def merge_tree(source: Path, target: Path) -> MergeTally:
    tally = MergeTally()
    for outcome in iter_merge(source, target):
        tally.add(outcome)
    return tally


class LegacyMigrationMerger:
    """Renames or merges ``<oldId>-audiobook`` directories below ``root``."""

    def __init__(self, root: Path, suffix: str = AUDIOBOOK_DIR_SUFFIX):
        self.root = Path(root)
        self.suffix = suffix

    @staticmethod
    def validate(mappings: Iterable[Any]) -> List[LegacyMapping]:
        """Coerce and check raw mappings before anything touches the filesystem.

        Accepts ``LegacyMapping`` instances or dicts with ``oldId``/``id``
        (``old_id`` also accepted).

        Raises:
            InvalidMappingError: If any pair contains an unsafe id
        """
        validated: List[LegacyMapping] = []
        for raw in mappings:
            if isinstance(raw, LegacyMapping):
                old_id, new_id = raw.old_id, raw.id
            elif isinstance(raw, Mapping):
                old_id = raw.get("oldId", raw.get("old_id"))
                new_id = raw.get("id")
            else:
                old_id = getattr(raw, "old_id", None)
                new_id = getattr(raw, "id", None)

            if not is_safe_id(old_id) or not is_safe_id(new_id):
                raise InvalidMappingError("Invalid document id mapping")
            validated.append(LegacyMapping(old_id=old_id, id=new_id))
        return validated

    def _dir_for(self, document_id: str) -> Path:
        return self.root / f"{document_id}{self.suffix}"

    def migrate(self, mappings: Iterable[Any]) -> RekeyResult:
        """Apply every mapping; safe to run repeatedly."""
        validated = self.validate(mappings)
        result = RekeyResult()

        for mapping in validated:
            if mapping.old_id == mapping.id:
                continue
            source = self._dir_for(mapping.old_id)
            if not source.is_dir():
                continue

            target = self._dir_for(mapping.id)
            if not target.exists():
                try:
                    os.rename(source, target)
                    result.renamed += 1
                    LOGGER.info(f"Renamed {source.name} -> {target.name}")
                    continue
                except OSError as e:
                    LOGGER.warning(f"Rename of {source.name} failed, merging instead: {e}")

            if target.exists() and not target.is_dir():
                LOGGER.warning(f"Cannot merge {source.name}: {target.name} is not a directory")
                result.skipped += 1
                continue
            try:
                target.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                LOGGER.warning(f"Cannot create {target.name}, skipping: {e}")
                result.skipped += 1
                continue

            tally = merge_tree(source, target)
            if tally.moved > 0:
                result.merged += 1
            result.skipped += tally.skipped
            _remove_if_empty(source)
            LOGGER.info(
                f"Merged {source.name} into {target.name}",
                extra={"moved": tally.moved, "skipped": tally.skipped},
            )

        return result

    async def migrate_async(self, mappings: Iterable[Any]) -> RekeyResult:
        return await asyncio.to_thread(self.migrate, list(mappings))
