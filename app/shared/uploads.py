import logging
import os
import re
from typing import Optional

from fastapi import Depends, Request
from starlette.datastructures import UploadFile

from app.core.config import Settings
from app.core.dependencies import get_settings, get_storage
from app.core.exceptions import UploadRejectedError
from app.shared.storage import ImageStorage, UploadedImage

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_filename(filename: str) -> str:
    """Drop any directory part and replace characters outside [A-Za-z0-9._-]."""
    name = os.path.basename(filename.replace("\\", "/"))
    name = _UNSAFE_CHARS_RE.sub("_", name).lstrip(".")
    return name or "upload"


async def read_image(upload: UploadFile, settings: Settings) -> UploadedImage:
    content_type = (upload.content_type or "").lower()
    filename = sanitize_filename(upload.filename or "")
    extension = os.path.splitext(filename)[1].lower()

    if content_type not in settings.allowed_file_types_list:
        raise UploadRejectedError(
            "Invalid file type",
            f"Only {', '.join(settings.allowed_file_types_list)} files are allowed!",
        )
    if extension not in settings.allowed_file_extensions_list:
        raise UploadRejectedError(
            "Invalid file type",
            f"Only {', '.join(settings.allowed_file_extensions_list)} extensions are allowed!",
        )

    data = await upload.read(settings.max_file_size + 1)
    if len(data) > settings.max_file_size:
        max_mb = settings.max_file_size / (1024 * 1024)
        raise UploadRejectedError(
            "File too large", f"File size must be less than {max_mb:g}MB"
        )

    return UploadedImage(filename=filename, content_type=content_type, data=data)


class ImageUpload:
    """
    Dependency accepting at most one image in ``field_name``.

    Stores the image and returns its URL, or None when the request carries no
    file. Rejections raise before the route handler runs.
    """

    def __init__(self, field_name: str, folder: str):
        self.field_name = field_name
        self.folder = folder

    async def __call__(
        self,
        request: Request,
        settings: Settings = Depends(get_settings),
        storage: ImageStorage = Depends(get_storage),
    ) -> Optional[str]:
        if not request.headers.get("content-type", "").startswith("multipart/form-data"):
            return None

        form = await request.form()
        files = [
            (key, value)
            for key, value in form.multi_items()
            if isinstance(value, UploadFile) and value.filename
        ]
        if not files:
            return None
        if len(files) > 1:
            raise UploadRejectedError(
                "Too many files", "Only one file is allowed per request"
            )

        key, upload = files[0]
        if key != self.field_name:
            raise UploadRejectedError(
                "Unexpected field", f"Upload the file in the '{self.field_name}' field"
            )

        image = await read_image(upload, settings)
        url = await storage.store(image, folder=self.folder)
        if url.startswith("/"):
            url = str(request.base_url).rstrip("/") + url
        logger.info(f"Accepted upload {image.filename} ({len(image.data)} bytes) -> {url}")
        return url


artwork_image = ImageUpload("image", folder="artworks")
profile_picture = ImageUpload("profilePic", folder="profiles")
