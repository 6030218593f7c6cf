"""
Blob Storage Client

Thin async client for the Supabase Storage REST API. Stores the documents
attached to applications under path-style keys in a single bucket.

Operations:
- put: upload bytes under a key (non-overwriting by default)
- remove_many: delete a batch of keys in one call
- sign: create a time-limited retrieval URL for a key

Every failure (network error, timeout, non-2xx response) surfaces as
StorageError so callers can decide whether it is fatal.
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from recruitment_api.core.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a blob store operation fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class SupabaseStorage:
    """Blob store backed by a Supabase Storage bucket."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }

    def _object_url(self, *parts: str) -> str:
        return "/".join([f"{self.base_url}/storage/v1/object", *parts])

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise StorageError(f"Storage request failed: {exc}") from exc

        if response.status_code >= 400:
            raise StorageError(
                f"Storage returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        upsert: bool = False,
    ) -> None:
        """
        Upload bytes under `key`.

        With upsert=False the store refuses to replace an existing object.

        Raises:
            StorageError: If the upload fails or the key already exists
        """
        await self._request(
            "POST",
            self._object_url(self.bucket, quote(key)),
            content=data,
            headers={
                "Content-Type": content_type,
                "x-upsert": "true" if upsert else "false",
            },
        )
        logger.info(f"Stored object {key} ({len(data)} bytes)")

    async def remove_many(self, keys: list[str]) -> None:
        """
        Delete a batch of keys.

        Keys that do not exist are ignored by the store.

        Raises:
            StorageError: If the batch call fails
        """
        if not keys:
            return
        await self._request(
            "DELETE",
            self._object_url(self.bucket),
            json={"prefixes": keys},
        )
        logger.info(f"Removed {len(keys)} object(s) from bucket {self.bucket}")

    async def sign(self, key: str, ttl_seconds: int) -> str:
        """
        Create a signed retrieval URL valid for `ttl_seconds`.

        Raises:
            StorageError: If signing fails or the response has no URL
        """
        response = await self._request(
            "POST",
            self._object_url("sign", self.bucket, quote(key)),
            json={"expiresIn": ttl_seconds},
        )
        signed_path = response.json().get("signedURL")
        if not signed_path:
            raise StorageError(f"Storage returned no signed URL for {key}")
        return f"{self.base_url}/storage/v1{signed_path}"


_storage: SupabaseStorage | None = None


def get_storage() -> SupabaseStorage:
    """
    FastAPI dependency returning the shared blob store client.

    Override in tests with app.dependency_overrides[get_storage].
    """
    global _storage
    if _storage is None:
        if not settings.supabase_url or not settings.supabase_service_role_key:
            logger.warning("Supabase storage is not configured (SUPABASE_URL / key missing)")
        _storage = SupabaseStorage(
            base_url=settings.supabase_url,
            service_key=settings.supabase_service_role_key,
            bucket=settings.supabase_bucket,
            timeout_seconds=settings.storage_timeout_seconds,
        )
    return _storage
