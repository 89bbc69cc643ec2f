"""
Remote object storage client.

Talks to a Supabase-Storage compatible REST API:

- ``POST {base}/storage/v1/object/{bucket}/{name}``  write an object
- ``{base}/storage/v1/object/public/{bucket}/{path}`` public read URL

Writes are create-only (``x-upsert: false``): a name collision is an
error, never a silent overwrite. Nothing here retries; a failed upload is
reported to the caller, and an object whose URL cannot be resolved is
left in place.
"""

import logging
import secrets
import string
import time
from urllib.parse import quote

import httpx

from app.config import Settings
from app.core.exceptions import UploadError, UrlResolutionError
from app.core.interfaces import IObjectStorage
from app.core.models import LocalImage

logger = logging.getLogger(__name__)

STORAGE_API = "/storage/v1/object"
_BASE36 = string.digits + string.ascii_lowercase


def generate_object_name(extension: str, now_ms: int | None = None) -> str:
    """
    Build a collision-resistant object name.

    Format: ``{epoch millis}-{random base36}.{extension}``, lower-cased.
    """
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    ext = (extension or "jpg").lower().lstrip(".")
    return f"{millis}-{suffix}.{ext}".lower()


class ObjectStorageClient(IObjectStorage):
    """
    Uploads images to a public bucket and resolves their URLs.

    Usage:
        storage = ObjectStorageClient.from_settings(get_settings())
        url = await storage.upload_image(image)
    """

    def __init__(
        self,
        base_url: str,
        service_key: str = "",
        bucket: str = "product-images",
        timeout: float = 30.0,
        cache_control: str = "3600",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._service_key = service_key
        self._bucket = bucket
        self._timeout = timeout
        self._cache_control = cache_control
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ObjectStorageClient":
        return cls(
            base_url=settings.storage_url,
            service_key=settings.storage_service_key,
            bucket=settings.storage_bucket,
            timeout=settings.storage_timeout_seconds,
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    def _get_headers(self, content_type: str, overwrite: bool) -> dict[str, str]:
        headers = {
            "Content-Type": content_type,
            "cache-control": f"max-age={self._cache_control}",
            "x-upsert": "true" if overwrite else "false",
        }
        if self._service_key:
            headers["Authorization"] = f"Bearer {self._service_key}"
            headers["apikey"] = self._service_key
        return headers

    async def put(
        self,
        bucket: str,
        name: str,
        data: bytes,
        content_type: str,
        overwrite: bool = False,
    ) -> str:
        """
        Write an object.

        Returns:
            The object's path inside the bucket.

        Raises:
            UploadError: transport failure, name collision, or any non-2xx answer.
        """
        if not self._base_url:
            raise UploadError("Object storage is not configured (STORAGE_URL is empty)")

        url = f"{self._base_url}{STORAGE_API}/{bucket}/{quote(name)}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    url,
                    content=data,
                    headers=self._get_headers(content_type, overwrite),
                )
        except httpx.HTTPError as e:
            raise UploadError(
                f"Failed to upload image: {e}",
                details={"bucket": bucket, "name": name},
            ) from e

        if response.status_code == 409 or (
            response.status_code == 400 and "duplicate" in response.text.lower()
        ):
            raise UploadError(
                f"An object named '{name}' already exists",
                details={"bucket": bucket, "name": name, "status": response.status_code},
            )

        if not response.is_success:
            raise UploadError(
                f"Storage rejected upload ({response.status_code})",
                details={
                    "bucket": bucket,
                    "name": name,
                    "status": response.status_code,
                    "response": response.text[:500],
                },
            )

        return _path_from_response(response, bucket, name)

    def public_url(self, bucket: str, path: str) -> str:
        """
        Resolve a stored path to its public URL.

        Raises:
            UrlResolutionError: no path, or storage base URL unknown.
        """
        if not path or not self._base_url:
            raise UrlResolutionError(
                "Failed to get image URL",
                details={"bucket": bucket, "path": path},
            )
        return f"{self._base_url}{STORAGE_API}/public/{bucket}/{quote(path)}"

    async def upload_image(self, image: LocalImage) -> str:
        """Store the image under a fresh name and return its public URL."""
        name = generate_object_name(image.extension)
        path = await self.put(self._bucket, name, image.data, image.content_type)
        url = self.public_url(self._bucket, path)
        logger.info(f"Uploaded {image.size} bytes to {self._bucket}/{path}")
        return url


def _path_from_response(response: httpx.Response, bucket: str, name: str) -> str:
    """
    Extract the stored path from the upload response.

    The API answers ``{"Key": "<bucket>/<path>"}``; older deployments
    return no body, in which case the requested name is the path.
    """
    try:
        body = response.json()
    except ValueError:
        return name

    key = body.get("Key") or body.get("path") if isinstance(body, dict) else None
    if not key:
        return name

    prefix = f"{bucket}/"
    return key[len(prefix):] if key.startswith(prefix) else key
