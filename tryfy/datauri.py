"""Helpers for ``data:<media-type>;base64,<payload>`` URIs."""

from __future__ import annotations

import base64
import binascii
import re
from typing import Tuple

DEFAULT_MEDIA_TYPE = "image/png"

_DATA_URI_RE = re.compile(r"^data:(?P<media>[^;,]*)(?:;[^;,]+)*?;base64,(?P<payload>.*)$", re.S)


def encode_payload(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_payload(payload: str) -> bytes:
    """Decode a base64 payload, raising ``ValueError`` on malformed input."""
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


def build(media_type: str, payload: str) -> str:
    """Prefix an encoded payload so it can be displayed directly."""
    return f"data:{media_type or DEFAULT_MEDIA_TYPE};base64,{payload}"


def parse(uri: str) -> Tuple[str, str]:
    """Split a data URI into ``(media_type, payload)``."""
    match = _DATA_URI_RE.match(uri.strip())
    if not match:
        raise ValueError("Not a base64 data URI.")
    return match.group("media") or DEFAULT_MEDIA_TYPE, match.group("payload")


def strip_prefix(text: str) -> str:
    """Return the bare payload whether or not ``text`` carries a data URI prefix."""
    text = text.strip()
    if text.startswith("data:"):
        return text.split(",", 1)[1] if "," in text else ""
    return text
