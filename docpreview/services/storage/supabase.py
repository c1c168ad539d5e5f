"""Supabase Storage backend (REST API over httpx)."""

from typing import Any, Dict, List, Optional

import httpx

from docpreview.core.exceptions import MissingBlobError, StorageError
from docpreview.services.storage.base import BlobStore
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

LIST_PAGE_SIZE = 1000
DELETE_BATCH_SIZE = 100


class SupabaseBlobStore(BlobStore):
    """Blob store backed by a single Supabase Storage bucket."""

    def __init__(
        self,
        url: str,
        service_role_key: str,
        bucket: str,
        prefix: str = "",
        presign_max_ttl_seconds: int = 3600,
        http_timeout: float = 60.0,
    ):
        super().__init__(prefix=prefix, presign_max_ttl_seconds=presign_max_ttl_seconds)
        self.url = url.rstrip("/")
        self.bucket = bucket
        self.base_api_url = f"{self.url}/storage/v1"
        self.http_timeout = http_timeout
        self.headers = {
            "Authorization": f"Bearer {service_role_key}",
            "apikey": service_role_key,
        }

    def _object_url(self, key: str, authenticated: bool = False) -> str:
        scope = "object/authenticated" if authenticated else "object"
        return f"{self.base_api_url}/{scope}/{self.bucket}/{self.full_key(key)}"

    @staticmethod
    def _is_not_found(response: httpx.Response) -> bool:
        if response.status_code == 404:
            return True
        # Supabase reports missing objects as 400 with a "not found" body
        return response.status_code == 400 and "not found" in response.text.lower()

    @staticmethod
    def _is_duplicate(response: httpx.Response) -> bool:
        if response.status_code == 409:
            return True
        text = response.text.lower()
        return response.status_code == 400 and ("duplicate" in text or "already exists" in text)

    async def put(self, key: str, data: bytes, content_type: str, overwrite: bool = True) -> bool:
        """Upload a blob.

        Raises:
            StorageError: If the upload fails
        """
        headers = {
            **self.headers,
            "Content-Type": content_type,
            "x-upsert": "true" if overwrite else "false",
        }
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self._object_url(key),
                    headers=headers,
                    content=data,
                    timeout=self.http_timeout,
                )
        except httpx.HTTPError as e:
            LOGGER.error(f"Error uploading blob to Supabase: {str(e)}", exc_info=True)
            raise StorageError(f"Storage upload error: {str(e)}", original_error=e)

        if not overwrite and self._is_duplicate(response):
            LOGGER.debug(f"Blob already present, skipping upload: {key}")
            return False

        if response.status_code != 200:
            LOGGER.error(
                f"Failed to upload blob to Supabase: {response.text}",
                extra={"bucket": self.bucket, "key": key, "status_code": response.status_code},
            )
            raise StorageError(f"Upload failed: {response.text}")
        return True

    async def get(self, key: str) -> bytes:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    self._object_url(key, authenticated=True),
                    headers=self.headers,
                    timeout=self.http_timeout,
                )
        except httpx.HTTPError as e:
            LOGGER.error(f"Error downloading blob from Supabase: {str(e)}", exc_info=True)
            raise StorageError(f"Storage download error: {str(e)}", original_error=e)

        if self._is_not_found(response):
            raise MissingBlobError(key)
        if response.status_code != 200:
            LOGGER.error(
                f"Failed to download blob from Supabase: {response.text}",
                extra={"bucket": self.bucket, "key": key, "status_code": response.status_code},
            )
            raise StorageError(f"Download failed: {response.text}")
        return response.content

    async def exists(self, key: str) -> bool:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.head(
                    self._object_url(key, authenticated=True),
                    headers=self.headers,
                    timeout=self.http_timeout,
                )
        except httpx.HTTPError as e:
            LOGGER.error(f"Error probing blob in Supabase: {str(e)}", exc_info=True)
            raise StorageError(f"Storage probe error: {str(e)}", original_error=e)

        if response.status_code == 200:
            return True
        if response.status_code in (400, 404):
            return False
        raise StorageError(f"Existence probe failed with status {response.status_code}")

    async def delete(self, key: str) -> bool:
        removed = await self._remove([self.full_key(key)])
        return removed > 0

    async def _list_page(self, client: httpx.AsyncClient, folder: str, offset: int) -> List[Dict[str, Any]]:
        response = await client.post(
            f"{self.base_api_url}/object/list/{self.bucket}",
            headers=self.headers,
            json={"prefix": folder, "limit": LIST_PAGE_SIZE, "offset": offset},
            timeout=self.http_timeout,
        )
        if response.status_code != 200:
            raise StorageError(f"List failed: {response.text}")
        return response.json() or []

    async def _list_keys(self, client: httpx.AsyncClient, folder: str, name_prefix: str = "") -> List[str]:
        """Recursively collect full object names below ``folder``."""
        keys: List[str] = []
        offset = 0
        while True:
            entries = await self._list_page(client, folder, offset)
            for entry in entries:
                name = entry.get("name") or ""
                if not name or not name.startswith(name_prefix):
                    continue
                path = f"{folder}/{name}" if folder else name
                # Folders come back without an object id
                if entry.get("id") is None:
                    keys.extend(await self._list_keys(client, path))
                else:
                    keys.append(path)
            if len(entries) < LIST_PAGE_SIZE:
                return keys
            offset += LIST_PAGE_SIZE

    async def _remove(self, names: List[str]) -> int:
        removed = 0
        async with httpx.AsyncClient() as client:
            for i in range(0, len(names), DELETE_BATCH_SIZE):
                batch = names[i:i + DELETE_BATCH_SIZE]
                response = await client.request(
                    "DELETE",
                    f"{self.base_api_url}/object/{self.bucket}",
                    headers=self.headers,
                    json={"prefixes": batch},
                    timeout=self.http_timeout,
                )
                if response.status_code != 200:
                    LOGGER.error(
                        f"Failed to delete blobs from Supabase: {response.text}",
                        extra={"bucket": self.bucket, "count": len(batch), "status_code": response.status_code},
                    )
                    raise StorageError(f"Delete failed: {response.text}")
                removed += len(response.json() or [])
        return removed

    async def delete_by_prefix(self, prefix: str) -> int:
        full_prefix = self.full_key(prefix)
        folder, _, name_prefix = full_prefix.rpartition("/")
        try:
            async with httpx.AsyncClient() as client:
                names = await self._list_keys(client, folder, name_prefix)
            if not names:
                return 0
            removed = await self._remove(names)
        except httpx.HTTPError as e:
            LOGGER.error(f"Error deleting blobs by prefix: {str(e)}", exc_info=True)
            raise StorageError(f"Storage delete error: {str(e)}", original_error=e)

        LOGGER.info(f"Deleted {removed} blobs under {prefix}", extra={"bucket": self.bucket})
        return removed

    async def presign_get(self, key: str, ttl_seconds: int) -> Optional[str]:
        """Generate a signed download URL.

        Failures are logged and reported as None so callers can stream instead.
        """
        url = f"{self.base_api_url}/object/sign/{self.bucket}/{self.full_key(key)}"
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    url,
                    headers=self.headers,
                    json={"expiresIn": self.clamp_ttl(ttl_seconds)},
                    timeout=self.http_timeout,
                )
        except httpx.HTTPError as e:
            LOGGER.warning(f"Error generating signed URL: {str(e)}", extra={"key": key})
            return None

        if response.status_code != 200:
            LOGGER.warning(
                f"Failed to generate signed URL: {response.text}",
                extra={"bucket": self.bucket, "key": key, "status_code": response.status_code},
            )
            return None

        signed_path = (response.json() or {}).get("signedURL")
        if not signed_path:
            LOGGER.warning("Supabase response did not contain signedURL", extra={"key": key})
            return None

        # Depending on the server version the path is relative to the host or to /storage/v1
        if signed_path.startswith("/storage/v1/"):
            return f"{self.url}{signed_path}"
        if signed_path.startswith("/"):
            return f"{self.base_api_url}{signed_path}"
        return signed_path
