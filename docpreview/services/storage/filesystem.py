"""Local filesystem blob store.

Used for single-node deployments and tests. It cannot sign URLs, so
delivery always falls back to streaming.
"""

import asyncio
import os
import shutil
from pathlib import Path
from typing import Optional
from uuid import uuid4

from docpreview.core.exceptions import MissingBlobError, StorageError
from docpreview.services.storage.base import BlobStore
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class FilesystemBlobStore(BlobStore):
    """Blob store rooted at a local directory."""

    def __init__(self, root: str, prefix: str = "", presign_max_ttl_seconds: int = 3600):
        super().__init__(prefix=prefix, presign_max_ttl_seconds=presign_max_ttl_seconds)
        self.root = Path(root).resolve()

    def _path(self, key: str) -> Path:
        path = (self.root / self.full_key(key)).resolve()
        if path != self.root and self.root not in path.parents:
            raise StorageError(f"Blob key escapes the store root: {key}")
        return path

    def _write(self, path: Path, data: bytes, overwrite: bool) -> bool:
        path.parent.mkdir(parents=True, exist_ok=True)
        if not overwrite:
            try:
                with open(path, "xb") as fh:
                    fh.write(data)
                return True
            except FileExistsError:
                return False

        # One temp file per write, even for concurrent writers of the same key
        tmp = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
        try:
            with open(tmp, "wb") as fh:
                fh.write(data)
            os.replace(tmp, path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
        return True

    async def put(self, key: str, data: bytes, content_type: str, overwrite: bool = True) -> bool:
        path = self._path(key)
        try:
            return await asyncio.to_thread(self._write, path, data, overwrite)
        except OSError as e:
            LOGGER.error(f"Error writing blob {key}: {str(e)}", exc_info=True)
            raise StorageError(f"Storage write error: {str(e)}", original_error=e)

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except (FileNotFoundError, IsADirectoryError) as e:
            raise MissingBlobError(key, original_error=e)
        except OSError as e:
            raise StorageError(f"Storage read error: {str(e)}", original_error=e)

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self._path(key).is_file)

    async def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            await asyncio.to_thread(path.unlink)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Storage delete error: {str(e)}", original_error=e)

    def _delete_prefix(self, full_prefix: str) -> int:
        folder, _, name_prefix = full_prefix.rpartition("/")
        base = (self.root / folder).resolve() if folder else self.root
        if base != self.root and self.root not in base.parents:
            raise StorageError(f"Blob prefix escapes the store root: {full_prefix}")
        if not base.is_dir():
            return 0

        removed = 0
        for entry in list(base.iterdir()):
            if not entry.name.startswith(name_prefix):
                continue
            if entry.is_dir():
                removed += sum(1 for p in entry.rglob("*") if p.is_file())
                shutil.rmtree(entry)
            else:
                entry.unlink()
                removed += 1
        return removed

    async def delete_by_prefix(self, prefix: str) -> int:
        try:
            removed = await asyncio.to_thread(self._delete_prefix, self.full_key(prefix))
        except OSError as e:
            LOGGER.error(f"Error deleting blobs by prefix: {str(e)}", exc_info=True)
            raise StorageError(f"Storage delete error: {str(e)}", original_error=e)
        LOGGER.info(f"Deleted {removed} blobs under {prefix}")
        return removed

    async def presign_get(self, key: str, ttl_seconds: int) -> Optional[str]:
        return None
