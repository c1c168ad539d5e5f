"""S3-compatible object storage (AWS S3 / MinIO / R2)."""

import asyncio
from typing import List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from docpreview.core.exceptions import MissingBlobError, StorageError
from docpreview.services.storage.base import BlobStore
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

DELETE_BATCH_SIZE = 1000
_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}
_PRECONDITION_CODES = {"412", "PreconditionFailed", "ConditionalRequestConflict"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3BlobStore(BlobStore):
    """Blob store backed by one S3 bucket.

    boto3 is synchronous, so every call runs in a worker thread.
    """

    def __init__(
        self,
        bucket: str,
        access_key_id: str,
        secret_access_key: str,
        region: str = "us-east-1",
        endpoint: Optional[str] = None,
        prefix: str = "",
        presign_max_ttl_seconds: int = 3600,
        client=None,
    ):
        super().__init__(prefix=prefix, presign_max_ttl_seconds=presign_max_ttl_seconds)
        self._bucket = bucket
        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint or None,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
            config=Config(signature_version="s3v4"),
        )

    async def put(self, key: str, data: bytes, content_type: str, overwrite: bool = True) -> bool:
        params = {
            "Bucket": self._bucket,
            "Key": self.full_key(key),
            "Body": data,
            "ContentType": content_type,
        }
        if not overwrite:
            params["IfNoneMatch"] = "*"
        try:
            await asyncio.to_thread(self._client.put_object, **params)
        except ClientError as e:
            if not overwrite and _error_code(e) in _PRECONDITION_CODES:
                LOGGER.debug(f"Blob already present, skipping upload: {key}")
                return False
            LOGGER.error(f"Failed to upload blob to S3: {str(e)}", extra={"bucket": self._bucket, "key": key})
            raise StorageError(f"Upload failed: {str(e)}", original_error=e)
        except BotoCoreError as e:
            LOGGER.error(f"Error uploading blob to S3: {str(e)}", exc_info=True)
            raise StorageError(f"Storage upload error: {str(e)}", original_error=e)

        LOGGER.info(f"Uploaded {key} ({len(data)} bytes)")
        return True

    async def get(self, key: str) -> bytes:
        try:
            resp = await asyncio.to_thread(
                self._client.get_object,
                Bucket=self._bucket,
                Key=self.full_key(key),
            )
            return await asyncio.to_thread(resp["Body"].read)
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise MissingBlobError(key, original_error=e)
            LOGGER.error(f"Failed to download blob from S3: {str(e)}", extra={"bucket": self._bucket, "key": key})
            raise StorageError(f"Download failed: {str(e)}", original_error=e)
        except BotoCoreError as e:
            LOGGER.error(f"Error downloading blob from S3: {str(e)}", exc_info=True)
            raise StorageError(f"Storage download error: {str(e)}", original_error=e)

    async def exists(self, key: str) -> bool:
        try:
            await asyncio.to_thread(
                self._client.head_object,
                Bucket=self._bucket,
                Key=self.full_key(key),
            )
            return True
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return False
            raise StorageError(f"Existence probe failed: {str(e)}", original_error=e)
        except BotoCoreError as e:
            raise StorageError(f"Storage probe error: {str(e)}", original_error=e)

    async def delete(self, key: str) -> bool:
        if not await self.exists(key):
            return False
        try:
            await asyncio.to_thread(
                self._client.delete_object,
                Bucket=self._bucket,
                Key=self.full_key(key),
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Delete failed: {str(e)}", original_error=e)
        LOGGER.info(f"Deleted {key}")
        return True

    def _list_keys(self, full_prefix: str) -> List[str]:
        paginator = self._client.get_paginator("list_objects_v2")
        keys: List[str] = []
        for page in paginator.paginate(Bucket=self._bucket, Prefix=full_prefix):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return keys

    def _delete_keys(self, keys: List[str]) -> int:
        removed = 0
        for i in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[i:i + DELETE_BATCH_SIZE]
            resp = self._client.delete_objects(
                Bucket=self._bucket,
                Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
            )
            errors = resp.get("Errors") or []
            if errors:
                LOGGER.warning(f"{len(errors)} blobs could not be deleted", extra={"bucket": self._bucket})
            removed += len(batch) - len(errors)
        return removed

    async def delete_by_prefix(self, prefix: str) -> int:
        try:
            keys = await asyncio.to_thread(self._list_keys, self.full_key(prefix))
            if not keys:
                return 0
            removed = await asyncio.to_thread(self._delete_keys, keys)
        except (BotoCoreError, ClientError) as e:
            LOGGER.error(f"Error deleting blobs by prefix: {str(e)}", exc_info=True)
            raise StorageError(f"Storage delete error: {str(e)}", original_error=e)

        LOGGER.info(f"Deleted {removed} blobs under {prefix}", extra={"bucket": self._bucket})
        return removed

    async def presign_get(self, key: str, ttl_seconds: int) -> Optional[str]:
        try:
            return await asyncio.to_thread(
                self._client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self._bucket, "Key": self.full_key(key)},
                ExpiresIn=self.clamp_ttl(ttl_seconds),
            )
        except (BotoCoreError, ClientError) as e:
            LOGGER.warning(f"Error generating presigned URL: {str(e)}", extra={"key": key})
            return None
