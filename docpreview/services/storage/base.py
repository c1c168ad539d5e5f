"""Blob store interface."""

from abc import ABC, abstractmethod
from typing import Optional


class BlobStore(ABC):
    """Async key/value object store.

    Implementations prepend their configured prefix to every key; callers
    only deal in the relative keys built by :mod:`keys`.
    """

    def __init__(self, prefix: str = "", presign_max_ttl_seconds: int = 3600):
        self.prefix = prefix.strip("/")
        self.presign_max_ttl_seconds = max(1, presign_max_ttl_seconds)

    def full_key(self, key: str) -> str:
        key = key.lstrip("/")
        return f"{self.prefix}/{key}" if self.prefix else key

    def clamp_ttl(self, ttl_seconds: int) -> int:
        return max(1, min(int(ttl_seconds), self.presign_max_ttl_seconds))

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str, overwrite: bool = True) -> bool:
        """Store ``data`` under ``key``.

        Returns:
            False when ``overwrite`` is False and the key already exists,
            True otherwise.
        """

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Read a blob.

        Raises:
            MissingBlobError: If the key does not exist
            StorageError: On any other backend failure
        """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Cheap existence probe."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a single blob. Returns False when it did not exist."""

    @abstractmethod
    async def delete_by_prefix(self, prefix: str) -> int:
        """Delete every blob whose key starts with ``prefix``.

        Returns:
            Number of blobs deleted
        """

    @abstractmethod
    async def presign_get(self, key: str, ttl_seconds: int) -> Optional[str]:
        """Short-lived direct download URL, or None when the backend cannot sign."""

    async def close(self) -> None:
        """Release backend resources."""
        return None
