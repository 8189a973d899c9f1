"""Helpers for moving images between data URLs, raw bytes and PNG."""

import base64
import binascii
import io

from PIL import Image, UnidentifiedImageError


def decode_data_url(data: str) -> bytes:
    """Decode a base64 data URL (or bare base64 string) into raw bytes."""
    if data.startswith("data:"):
        # Remove data URL prefix (e.g., "data:image/png;base64,")
        _, data = data.split(",", 1)
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Image is not valid base64: {e}") from e


def encode_data_url(data: bytes, media_type: str = "image/png") -> str:
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def sniff_media_type(data: bytes, default: str = "image/png") -> str:
    """Detect image format from magic bytes."""
    if data[:3] == b'\xff\xd8\xff':
        return "image/jpeg"
    if data[:8] == b'\x89PNG\r\n\x1a\n':
        return "image/png"
    if data[:4] == b'RIFF' and data[8:12] == b'WEBP':
        return "image/webp"
    if data[:6] in (b'GIF87a', b'GIF89a'):
        return "image/gif"
    return default


def normalize_to_png(data: bytes) -> bytes:
    """Convert image bytes to PNG so the workflow always loads one format.

    Bytes Pillow cannot read are returned unchanged and left to the
    synthesis service to accept or reject.
    """
    try:
        img = Image.open(io.BytesIO(data))
        # Convert to RGB if needed (e.g., RGBA, P mode)
        if img.mode in ('RGBA', 'P'):
            img = img.convert('RGB')
        output = io.BytesIO()
        img.save(output, format='PNG')
        return output.getvalue()
    except (UnidentifiedImageError, OSError):
        return data
