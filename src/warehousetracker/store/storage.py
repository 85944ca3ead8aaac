"""Firebase Cloud Storage: resolving image paths to URLs and uploading images.

Uses the Firebase Storage REST endpoint:
    https://firebasestorage.googleapis.com/v0/b/{bucket}/o/{url-encoded path}

- GET  .../o/{path}               object metadata (includes downloadTokens)
- GET  .../o/{path}?alt=media     object content (the public download URL)
- POST .../o?name={path}          upload raw bytes

Resolution never fails loudly: any error resolving a path yields the
placeholder image. Uploads are the opposite: upload_all fans out every file
concurrently and fails as a whole if any single upload fails.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings
from ..models import ImageRef
from ..utils import async_request_with_retries, get_with_retries
from .base import UploadError, ensure_setting

logger = logging.getLogger(__name__)

STORAGE_BASE = "https://firebasestorage.googleapis.com/v0/b"
UPLOAD_PREFIX = "shipments"


class BlobUpload(BaseModel):
    """One file to upload."""

    filename: str
    data: bytes
    content_type: str = Field("application/octet-stream")

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "BlobUpload":
        p = Path(path)
        ctype, _ = mimetypes.guess_type(p.name)
        return cls(
            filename=p.name,
            data=p.read_bytes(),
            content_type=ctype or "application/octet-stream",
        )

    model_config = ConfigDict()


class BlobStorage:
    """Thin client for one Firebase Storage bucket."""

    def __init__(
        self,
        settings: Settings,
        *,
        client: Optional[httpx.Client] = None,
        async_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings
        self.bucket = ensure_setting(settings, "storage_bucket", "FIREBASE_STORAGE_BUCKET")
        self.client = client
        self.async_client = async_client

    @property
    def placeholder(self) -> str:
        return self.settings.placeholder_image

    def build_headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.settings.id_token:
            headers["Authorization"] = f"Firebase {self.settings.id_token}"
        if extra:
            headers.update(extra)
        return headers

    def object_url(self, path: str) -> str:
        return f"{STORAGE_BASE}/{self.bucket}/o/{quote(path, safe='')}"

    def download_url(self, path: str, token: Optional[str] = None) -> str:
        url = f"{self.object_url(path)}?alt=media"
        if token:
            url += f"&token={token}"
        return url

    def _url_from_metadata(self, path: str, metadata: Any) -> str:
        if not isinstance(metadata, dict):
            raise ValueError(f"Unexpected metadata for {path}: {type(metadata).__name__}")
        tokens = (metadata.get("downloadTokens") or "").split(",")
        return self.download_url(metadata.get("name") or path, tokens[0] or None)

    # --- Resolution ---
    def resolve_url(self, ref: ImageRef) -> str:
        """URL for one image reference, or the placeholder if it can't be resolved."""
        if ref.url:
            return ref.url
        if not ref.path:
            return self.placeholder
        try:
            resp = get_with_retries(
                self.object_url(ref.path),
                headers=self.build_headers(),
                timeout=self.settings.timeout,
                client=self.client,
            )
            return self._url_from_metadata(ref.path, resp.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Could not resolve image %s: %s", ref.path, exc)
            return self.placeholder

    def resolve_urls(self, refs: Sequence[ImageRef]) -> List[str]:
        return [self.resolve_url(ref) for ref in refs]

    async def aresolve_url(self, ref: ImageRef) -> str:
        if ref.url:
            return ref.url
        if not ref.path:
            return self.placeholder
        try:
            resp = await async_request_with_retries(
                "GET",
                self.object_url(ref.path),
                headers=self.build_headers(),
                timeout=self.settings.timeout,
                client=self.async_client,
            )
            return self._url_from_metadata(ref.path, resp.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Could not resolve image %s: %s", ref.path, exc)
            return self.placeholder

    async def aresolve_urls(self, refs: Sequence[ImageRef]) -> List[str]:
        """Resolve all references concurrently; order matches ``refs``."""
        return list(await asyncio.gather(*(self.aresolve_url(ref) for ref in refs)))

    # --- Uploads ---
    @staticmethod
    def storage_path(filename: str) -> str:
        return f"{UPLOAD_PREFIX}/{uuid.uuid4().hex}_{filename}"

    async def upload(self, blob: BlobUpload) -> str:
        """Upload one file and return its storage path."""
        path = self.storage_path(blob.filename)
        resp = await async_request_with_retries(
            "POST",
            f"{STORAGE_BASE}/{self.bucket}/o",
            params={"name": path},
            content=blob.data,
            headers=self.build_headers({"Content-Type": blob.content_type}),
            timeout=self.settings.timeout,
            client=self.async_client,
            max_attempts=1,
        )
        try:
            body = resp.json()
        except ValueError:
            return path
        return (body.get("name") if isinstance(body, dict) else None) or path

    async def upload_all(self, blobs: Sequence[BlobUpload]) -> List[str]:
        """Upload every blob concurrently; all succeed or UploadError is raised."""
        if not blobs:
            return []
        results = await asyncio.gather(
            *(self.upload(blob) for blob in blobs), return_exceptions=True
        )
        failures = [
            (blob.filename, res)
            for blob, res in zip(blobs, results)
            if isinstance(res, BaseException)
        ]
        if failures:
            detail = "; ".join(f"{name}: {exc}" for name, exc in failures)
            raise UploadError(
                f"{len(failures)} of {len(blobs)} uploads failed ({detail})"
            ) from failures[0][1]
        logger.info("Uploaded %d images", len(blobs))
        return list(results)
