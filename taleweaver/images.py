"""Data-URL helpers for images embedded in scenes, portraits and thumbnails."""

from __future__ import annotations

import base64
import binascii
import hashlib
import mimetypes
import re

DEFAULT_MIME = "image/png"

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}
_MIMES = {ext: mime for mime, ext in _EXTENSIONS.items()}
_MIMES["jpeg"] = "image/jpeg"


class ImageDecodeError(ValueError):
    """Raised when an embedded image is not a decodable base64 data URL."""


def is_data_url(value: str) -> bool:
    return value.startswith("data:")


def to_data_url(data: bytes, mime: str = DEFAULT_MIME) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def from_data_url(value: str) -> tuple[bytes, str]:
    """Decode "data:<mime>;base64,<payload>" into (bytes, mime)."""
    if not is_data_url(value) or "," not in value:
        raise ImageDecodeError("Not a data URL")
    header, payload = value.split(",", 1)
    mime = header[len("data:"):].split(";", 1)[0] or DEFAULT_MIME
    try:
        return base64.b64decode(payload, validate=True), mime
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Invalid base64 image payload: {e}") from e


def extension_for(mime: str) -> str:
    """File extension for a mime type. mime_for() maps it back to the same type."""
    if mime in _EXTENSIONS:
        return _EXTENSIONS[mime]
    guessed = mimetypes.guess_extension(mime)
    if guessed and mimetypes.guess_type(f"x{guessed}")[0] == mime:
        return guessed.lstrip(".")
    # image/avif -> "avif" when the platform mime table does not know it
    subtype = mime.rsplit("/", 1)[-1].lower()
    if mime.startswith("image/") and re.fullmatch(r"[a-z0-9][a-z0-9+-]*", subtype):
        return subtype
    return "png"


def mime_for(filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if ext in _MIMES:
        return _MIMES[ext]
    guessed = mimetypes.guess_type(f"x.{ext}")[0] if ext else None
    if guessed:
        return guessed
    return f"image/{ext}" if ext else DEFAULT_MIME


def short_hash(value: str) -> str:
    """Stable 8-char digest used to keep archive filenames unique."""
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:8]
