"""
Media ingestion: turn a user's selection into exactly one in-memory image.

Two sources are supported:
- an uploaded file (multipart form field) received by the API
- a path on the local filesystem

Both return ``None`` when nothing was selected (the user cancelled), and
never touch remote storage.
"""

import logging
import os
from pathlib import Path

from app.core.exceptions import PermissionDeniedError, UnsupportedMediaError
from app.core.models import LocalImage

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 10 * 1024 * 1024


def content_type_for(filename: str) -> str:
    """PNG files are sent as image/png; everything else as JPEG."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return "image/png" if ext == "png" else "image/jpeg"


def _check_size(data: bytes, filename: str, max_bytes: int) -> None:
    if len(data) > max_bytes:
        raise UnsupportedMediaError(
            f"Image '{filename}' is larger than {max_bytes // (1024 * 1024)} MB",
            details={"filename": filename, "size": len(data)},
        )


def image_from_upload(
    filename: str | None,
    content_type: str | None,
    data: bytes,
    max_bytes: int = MAX_IMAGE_BYTES,
) -> LocalImage | None:
    """
    Wrap one uploaded file.

    Args:
        filename: Client-supplied file name (may be empty).
        content_type: Declared MIME type, if any.
        data: Raw file bytes.

    Returns:
        The image, or None if no file was actually sent.

    Raises:
        UnsupportedMediaError: the upload is not an image or is too large.
    """
    if not filename or not data:
        return None

    if content_type and not content_type.startswith("image/"):
        raise UnsupportedMediaError(
            f"'{filename}' is not an image ({content_type})",
            details={"filename": filename, "content_type": content_type},
        )

    _check_size(data, filename, max_bytes)
    return LocalImage(
        data=data,
        filename=filename,
        content_type=content_type or content_type_for(filename),
    )


def load_local_image(
    path: str | os.PathLike | None,
    max_bytes: int = MAX_IMAGE_BYTES,
) -> LocalImage | None:
    """
    Read one image from the local filesystem.

    Returns:
        The image, or None when no path was chosen or the file is gone.

    Raises:
        PermissionDeniedError: the process may not read the file. The caller
            should tell the user to grant access and must not continue.
    """
    if not path:
        return None

    file_path = Path(path)
    if not file_path.is_file():
        logger.warning(f"Selected image does not exist: {file_path}")
        return None

    try:
        data = file_path.read_bytes()
    except PermissionError as e:
        raise PermissionDeniedError(
            "Permission required to access the media library. "
            "Allow access in settings and try again.",
            details={"path": str(file_path)},
        ) from e

    _check_size(data, file_path.name, max_bytes)
    return LocalImage(
        data=data,
        filename=file_path.name,
        content_type=content_type_for(file_path.name),
    )
