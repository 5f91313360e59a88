import io
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .errors import InvalidUploadError

MAX_IMAGE_BYTES = 10 * 1024 * 1024
MAX_VIDEO_BYTES = 100 * 1024 * 1024

# WebM files start with the EBML header
_EBML_MAGIC = b"\x1a\x45\xdf\xa3"


def detect_image_type(data: bytes) -> Optional[str]:
    """MIME type from magic bytes (JPEG/PNG/GIF/WebP), None if unrecognised"""
    if not data or len(data) < 4:
        return None
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:4] == b"\x89PNG":
        return "image/png"
    if data[:3] == b"GIF":
        return "image/gif"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def is_webm(data: bytes) -> bool:
    return bool(data) and data[:4] == _EBML_MAGIC


def validate_image(data: Optional[bytes], label: str = "Image") -> str:
    """Check an uploaded image's size and magic bytes; returns its MIME type"""
    if not data:
        raise InvalidUploadError(f"{label} file is required")
    if len(data) > MAX_IMAGE_BYTES:
        raise InvalidUploadError(f"{label} must be under 10MB")
    mime_type = detect_image_type(data)
    if mime_type is None:
        raise InvalidUploadError("Invalid image file. Please upload a valid JPEG, PNG, GIF, or WebP image.")
    return mime_type


def validate_webm(data: Optional[bytes]) -> None:
    if not data:
        raise InvalidUploadError("WebM video file is required")
    if len(data) > MAX_VIDEO_BYTES:
        raise InvalidUploadError("Video must be under 100MB")
    if not is_webm(data):
        raise InvalidUploadError("Invalid WebM file. Please upload a valid WebM video.")


def normalize_character_image(data: bytes) -> bytes:
    """Decode the character image and re-encode it as an RGBA PNG"""
    validate_image(data, label="Character image")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode != "RGBA":
                img = img.convert("RGBA")
            out = io.BytesIO()
            img.save(out, "PNG")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise InvalidUploadError("Character image could not be read") from e
    return out.getvalue()
