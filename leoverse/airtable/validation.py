"""Local checks applied to image bytes before they are uploaded as attachments."""

from leoverse.core.errors import ValidationError

MAX_ATTACHMENT_BYTES = 5 * 1024 * 1024

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/bmp": "bmp",
    "image/x-icon": "ico",
}


def sniff_content_type(data: bytes) -> str:
    """Guess a MIME type from leading magic bytes."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:14] == b"WEBPVP":
        return "image/webp"
    if data[:2] == b"BM":
        return "image/bmp"
    if data[:4] in (b"\x00\x00\x01\x00", b"\x00\x00\x02\x00"):
        return "image/x-icon"
    return "application/octet-stream"


def extension_for(content_type: str) -> str:
    return EXTENSIONS.get(content_type, "png")


def validate_image(data: bytes, max_bytes: int = MAX_ATTACHMENT_BYTES) -> str:
    """Return the sniffed image MIME type, or raise `ValidationError`."""
    if not data:
        raise ValidationError("empty image data provided")
    if len(data) > max_bytes:
        raise ValidationError(
            f"image size exceeds maximum allowed size of {max_bytes / 1024 / 1024:.0f}MB "
            f"(current size: {len(data) / 1024 / 1024:.2f}MB)"
        )

    content_type = sniff_content_type(data)
    if not content_type.startswith("image/"):
        raise ValidationError(f"invalid image format: {content_type}")
    return content_type
