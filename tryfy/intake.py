"""Image intake: turn an uploaded file into an immutable ``ImageRecord``.

A record carries the same bytes twice over: once registered in a
``PreviewStore`` for on-screen display, once as the base64 payload the
generation client sends. Both come from a single read of the file.
"""

from __future__ import annotations

import logging
import mimetypes
import uuid
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from . import datauri
from .errors import IntakeError

logger = logging.getLogger(__name__)

ACCEPTED_MEDIA_TYPES = ("image/jpeg", "image/png")
PREVIEW_PREFIX = "/previews/"

FileInput = Union[str, Path, bytes, BinaryIO]


class PreviewStore:
    """In-memory preview resources, addressed by ``/previews/<id>`` URIs."""

    def __init__(self):
        self._entries: Dict[str, Tuple[bytes, str]] = {}

    def allocate(self, data: bytes, media_type: str) -> str:
        preview_id = uuid.uuid4().hex
        self._entries[preview_id] = (data, media_type)
        return PREVIEW_PREFIX + preview_id

    def resolve(self, uri: str) -> Optional[Tuple[bytes, str]]:
        return self._entries.get(self._key(uri))

    def revoke(self, uri: str) -> bool:
        """Free a preview. Returns False if it was already gone."""
        return self._entries.pop(self._key(uri), None) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, uri: str) -> bool:
        return self._key(uri) in self._entries

    @staticmethod
    def _key(uri: str) -> str:
        return uri[len(PREVIEW_PREFIX):] if uri.startswith(PREVIEW_PREFIX) else uri


@dataclass(frozen=True)
class SourceFile:
    filename: str
    media_type: str
    size: int


@dataclass(frozen=True)
class ImageRecord:
    source: SourceFile
    preview_uri: str
    encoded_payload: str
    _release: Callable[[str], bool] = field(repr=False, compare=False)

    @property
    def media_type(self) -> str:
        return self.source.media_type

    def release(self) -> None:
        # Revoking an already-freed preview is a no-op.
        if self._release(self.preview_uri):
            logger.debug("Released preview %s (%s)", self.preview_uri, self.source.filename)

    def __enter__(self) -> "ImageRecord":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def _read(file: FileInput) -> Tuple[bytes, Optional[str]]:
    if isinstance(file, (bytes, bytearray)):
        return bytes(file), None
    if isinstance(file, (str, Path)):
        path = Path(file)
        return path.read_bytes(), path.name
    data = file.read()
    name = getattr(file, "name", None)
    return data, name if isinstance(name, str) else None


def _sniff_media_type(data: bytes) -> Optional[str]:
    try:
        with Image.open(BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError, ValueError):
        return None
    # Camera JPEGs often open as MPO.
    if fmt == "MPO":
        return "image/jpeg"
    return Image.MIME.get(fmt or "")


def ingest(
    file: FileInput,
    *,
    filename: Optional[str] = None,
    media_type: Optional[str] = None,
    store: PreviewStore,
) -> ImageRecord:
    """Read ``file`` once and build an ``ImageRecord`` from its bytes.

    ``file`` may be a path, raw bytes, or a binary file object. The media type
    is read from the content with Pillow; when the content cannot be
    identified it falls back to ``media_type``, then to the filename. Raises
    ``IntakeError`` if the file cannot be read; no preview is allocated in that
    case.
    """
    try:
        data, read_name = _read(file)
    except (OSError, ValueError) as e:
        raise IntakeError(f"Could not read file: {e}") from e

    name = filename or (Path(read_name).name if read_name else "upload")
    media_type = _sniff_media_type(data) or media_type or mimetypes.guess_type(name)[0]
    if not media_type:
        raise IntakeError(f"Could not determine the image type of {name}")

    payload = datauri.encode_payload(data)
    preview_uri = store.allocate(data, media_type)
    logger.debug("Ingested %s (%s, %d bytes) as %s", name, media_type, len(data), preview_uri)
    return ImageRecord(
        source=SourceFile(filename=name, media_type=media_type, size=len(data)),
        preview_uri=preview_uri,
        encoded_payload=payload,
        _release=store.revoke,
    )


def ingest_data_uri(uri: str, *, store: PreviewStore, filename: str = "upload") -> ImageRecord:
    """Build a record from a ``data:`` URI as produced by a browser file reader."""
    try:
        media_type, payload = datauri.parse(uri)
        data = datauri.decode_payload(payload)
    except ValueError as e:
        raise IntakeError(f"Could not read image: {e}") from e
    return ingest(data, filename=filename, media_type=media_type, store=store)


def release(record: Optional[ImageRecord]) -> None:
    """Free a record's preview. Safe to call more than once, or with ``None``."""
    if record is not None:
        record.release()
