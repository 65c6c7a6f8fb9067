"""Avatar image helpers: file bytes to inline base64 and back."""

from __future__ import annotations

import base64
import binascii
from pathlib import Path

from .config import AVATAR_MAX_BYTES
from .errors import PayloadTooLarge


def encode_avatar(data: bytes, max_bytes: int = AVATAR_MAX_BYTES) -> str:
    if len(data) > max_bytes:
        raise PayloadTooLarge(
            f"Image is {len(data) / 1024:.0f} KB, the limit is {max_bytes / 1024:.0f} KB."
        )
    return base64.b64encode(data).decode("ascii")


def encode_avatar_file(path: Path, max_bytes: int = AVATAR_MAX_BYTES) -> str:
    """Read an image file and return it base64-encoded.

    Raises PayloadTooLarge before encoding when the file exceeds ``max_bytes``.
    """
    return encode_avatar(Path(path).read_bytes(), max_bytes)


def decode_avatar(encoded: str) -> bytes:
    return base64.b64decode(encoded, validate=True)


def is_valid_base64(encoded: str | None) -> bool:
    if not encoded:
        return False
    try:
        base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        return False
    return True


def base64_size_kb(encoded: str) -> float:
    """Approximate decoded size of a base64 string, in KB."""
    return (len(encoded) * 3 / 4) / 1024
