import hashlib
import logging
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from starlette.concurrency import run_in_threadpool

from app.core.config import Settings
from app.core.exceptions import StorageUploadError

logger = logging.getLogger(__name__)

CLOUDINARY_BASE = "https://api.cloudinary.com/v1_1"

# Per-folder delivery transformations
FOLDER_TRANSFORMATIONS = {
    "profiles": "c_fill,h_400,w_400/q_auto/f_auto",
}


@dataclass(frozen=True)
class UploadedImage:
    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename)[1].lower()


class ImageStorage:
    async def store(self, image: UploadedImage, folder: str) -> str:
        """Persist the image and return its URL (absolute or site-relative)."""
        raise NotImplementedError


class LocalImageStorage(ImageStorage):
    """Writes images under ``upload_dir``; they are served from /uploads."""

    url_prefix = "/uploads"

    def __init__(self, upload_dir: str):
        self.upload_dir = Path(upload_dir)

    def ensure_dir(self) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def _generate_name(self, image: UploadedImage, folder: str) -> str:
        stamp = int(time.time() * 1000)
        return f"{folder}-{stamp}-{uuid.uuid4().hex[:12]}{image.extension}"

    def _write(self, target: Path, data: bytes) -> None:
        self.ensure_dir()
        target.write_bytes(data)

    async def store(self, image: UploadedImage, folder: str) -> str:
        name = self._generate_name(image, folder)
        target = self.upload_dir / name
        try:
            await run_in_threadpool(self._write, target, image.data)
        except OSError as e:
            logger.error(f"Failed to write upload {target}: {e}")
            raise StorageUploadError(str(e))
        logger.info(f"Stored {len(image.data)} byte image at {target}")
        return f"{self.url_prefix}/{name}"


class CloudinaryImageStorage(ImageStorage):
    def __init__(self, cloud_name: str, api_key: str, api_secret: str, timeout: float = 60):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.timeout = timeout

    def _sign(self, params: Dict[str, Any]) -> str:
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    def _upload_params(self, folder: str, timestamp: Optional[int] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "folder": folder,
            "timestamp": timestamp or int(time.time()),
        }
        transformation = FOLDER_TRANSFORMATIONS.get(folder)
        if transformation:
            params["transformation"] = transformation
        return params

    async def store(self, image: UploadedImage, folder: str) -> str:
        url = f"{CLOUDINARY_BASE}/{self.cloud_name}/image/upload"
        params = self._upload_params(folder)
        data = {**params, "api_key": self.api_key, "signature": self._sign(params)}
        files = {"file": (image.filename, image.data, image.content_type)}

        logger.info(f"Uploading image to Cloudinary: {image.filename}, folder: {folder}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, data=data, files=files)
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPError as e:
            logger.error(f"Cloudinary upload failed: {e}")
            raise StorageUploadError(str(e))

        secure_url = payload.get("secure_url")
        if not secure_url:
            raise StorageUploadError("response did not include secure_url")
        return secure_url


def build_storage(settings: Settings) -> ImageStorage:
    if settings.storage_backend == "cloudinary":
        return CloudinaryImageStorage(
            settings.cloudinary_cloud_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret,
        )
    storage = LocalImageStorage(settings.upload_dir)
    storage.ensure_dir()
    return storage
