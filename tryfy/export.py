"""Result export: persist a successful try-on image as-is."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from . import datauri

logger = logging.getLogger(__name__)

RESULT_FILENAME = "tryfy-result.png"


def result_bytes(result_image: str) -> bytes:
    """Decode a result data URI back to the exact image bytes."""
    _, payload = datauri.parse(result_image)
    return datauri.decode_payload(payload)


def export_as_file(
    result_image: str,
    directory: Union[str, Path] = ".",
    filename: str = RESULT_FILENAME,
) -> Path:
    """Write the result image to ``directory/filename`` and return the path."""
    target = Path(directory) / filename
    target.parent.mkdir(parents=True, exist_ok=True)
    data = result_bytes(result_image)
    target.write_bytes(data)
    logger.info("Exported try-on result to %s (%d bytes)", target, len(data))
    return target
