"""
Image Upload Service - photographic evidence for quality tests.

Images are validated (JPEG, PNG or WebP, at most 10MB) and stored under the
configured image directory as <folder>/<timestamp>_<random>.<ext>. The
returned reference is a file URI that is stored on QualityTestResult.photo_url.
"""

import logging
import mimetypes
import time
from pathlib import Path
from typing import Optional, Tuple, Union
from urllib.parse import urlparse
from urllib.request import url2pathname
from uuid import uuid4

from juiceplan.services.exceptions import InvalidImageError
from juiceplan.services.logging_utils import get_service_logger, log_operation
from juiceplan.utils.config import get_config, get_message
from juiceplan.utils.constants import (
    ALLOWED_IMAGE_TYPES,
    MAX_IMAGE_SIZE_BYTES,
    QUALITY_TEST_IMAGE_FOLDER,
)

logger = get_service_logger(__name__)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}

# Not every platform's mimetypes table knows WebP
mimetypes.add_type("image/webp", ".webp")


def guess_content_type(filename: Optional[str]) -> Optional[str]:
    """Content type from a file name's extension, or None."""
    if not filename:
        return None
    content_type, _ = mimetypes.guess_type(filename)
    return content_type


def validate_image_file(
    filename: Optional[str],
    size: int,
    content_type: Optional[str] = None,
) -> Tuple[bool, str]:
    """
    Validate an image before upload.

    Args:
        filename: Original file name (used to guess the type when
            content_type is not given)
        size: File size in bytes
        content_type: Optional declared content type

    Returns:
        Tuple of (is_valid, error_message)

    Example:
        >>> validate_image_file("brix.png", 2048)
        (True, '')
        >>> validate_image_file("report.pdf", 2048)[0]
        False
    """
    content_type = (content_type or guess_content_type(filename) or "").lower()
    if content_type not in ALLOWED_IMAGE_TYPES:
        return False, get_message("image_type_invalid")
    if size > MAX_IMAGE_SIZE_BYTES:
        return False, get_message("image_too_large")
    return True, ""


def upload_image(
    source: Union[str, Path, bytes],
    folder: str = QUALITY_TEST_IMAGE_FOLDER,
    *,
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
) -> str:
    """
    Validate and store an image.

    Args:
        source: Path to an image file, or the image bytes
        folder: Sub-folder of the image directory
        filename: Original file name; required to infer the type of bytes
            unless content_type is given
        content_type: Optional declared content type

    Returns:
        File URI of the stored image

    Raises:
        InvalidImageError: If the type or size is not allowed
        OSError: If the source cannot be read or the image cannot be written
    """
    if isinstance(source, (str, Path)):
        source_path = Path(source)
        data = source_path.read_bytes()
        filename = filename or source_path.name
    else:
        data = bytes(source)

    content_type = (content_type or guess_content_type(filename) or "").lower()
    is_valid, error = validate_image_file(filename, len(data), content_type)
    if not is_valid:
        log_operation(
            logger,
            operation="upload_image",
            outcome="rejected",
            level=logging.WARNING,
            source_name=filename,
            content_type=content_type,
            size=len(data),
        )
        raise InvalidImageError(error)

    target_dir = get_config().image_dir / folder
    target_dir.mkdir(parents=True, exist_ok=True)

    stored_name = f"{int(time.time() * 1000)}_{uuid4().hex[:12]}.{_EXTENSIONS[content_type]}"
    target = target_dir / stored_name
    target.write_bytes(data)

    log_operation(
        logger,
        operation="upload_image",
        outcome="success",
        source_name=filename,
        stored_as=f"{folder}/{stored_name}",
        size=len(data),
    )
    return target.resolve().as_uri()


def delete_image(image_url: str) -> bool:
    """
    Delete a stored image by its reference.

    Failures are logged, never raised.

    Returns:
        True if a file was deleted
    """
    parsed = urlparse(image_url or "")
    if parsed.scheme != "file":
        logger.warning(f"Not a stored image reference: {image_url}")
        return False

    path = Path(url2pathname(parsed.path))
    try:
        path.unlink()
    except OSError as e:
        logger.warning(f"Failed to delete image {path}: {e}")
        return False
    return True
