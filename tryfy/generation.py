"""Generation client: the one call to Gemini that performs the try-on.

The client is stateless. Whatever the service does - return an image, answer
with text, block the prompt, or raise - ``generate`` hands back a
``GenerationResult``: either ``Generated`` with a displayable data URI or
``GenerationFailed`` carrying a single human-readable message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Union

import google.generativeai as genai

from . import datauri
from .config import DEFAULT_MODEL, Settings
from .errors import RefusalError, ServiceError, TryOnError
from .intake import ImageRecord

logger = logging.getLogger(__name__)

TRY_ON_INSTRUCTION = (
    "Perform a virtual garment try-on using these two images. "
    "The first image is the person and the second image is the garment. "
    "Generate a single photorealistic image of the person wearing the garment, "
    "preserving the person's face, hair, body proportions, pose and the original background."
)

NO_IMAGE_MESSAGE = "The model did not return an image. Try different photos."


@dataclass(frozen=True)
class Generated:
    image_uri: str


@dataclass(frozen=True)
class GenerationFailed:
    error: TryOnError

    @property
    def message(self) -> str:
        return str(self.error)


GenerationResult = Union[Generated, GenerationFailed]


class GenerationService(Protocol):
    async def generate(self, person: ImageRecord, garment: ImageRecord) -> GenerationResult:
        ...


def _blob(record: ImageRecord) -> Dict[str, Any]:
    return {"mime_type": record.media_type, "data": datauri.decode_payload(record.encoded_payload)}


def _reason_name(reason: Any) -> Optional[str]:
    if not reason:
        return None
    return getattr(reason, "name", None) or str(reason)


def _parts(response: Any) -> List[Any]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    return list(getattr(content, "parts", None) or [])


def parse_response(response: Any) -> GenerationResult:
    """Reduce a ``generate_content`` response to a ``GenerationResult``."""
    texts = []
    for part in _parts(response):
        inline_data = getattr(part, "inline_data", None)
        data = getattr(inline_data, "data", None) if inline_data is not None else None
        if data:
            media_type = getattr(inline_data, "mime_type", None) or datauri.DEFAULT_MEDIA_TYPE
            if isinstance(data, bytes):
                payload = datauri.encode_payload(data)
            else:
                payload = datauri.strip_prefix(str(data))
                try:
                    datauri.decode_payload(payload)
                except ValueError as e:
                    return GenerationFailed(ServiceError(f"The generation service returned an unreadable image: {e}"))
            return Generated(image_uri=datauri.build(media_type, payload))
        text = getattr(part, "text", None)
        if text:
            texts.append(text.strip())

    if texts:
        return GenerationFailed(RefusalError("\n".join(texts)))

    feedback = getattr(response, "prompt_feedback", None)
    block_reason = _reason_name(getattr(feedback, "block_reason", None))
    if block_reason:
        return GenerationFailed(RefusalError(f"Image generation failed. Reason: {block_reason}"))

    candidates = getattr(response, "candidates", None) or []
    finish_reason = _reason_name(getattr(candidates[0], "finish_reason", None)) if candidates else None
    if finish_reason and finish_reason != "STOP":
        return GenerationFailed(RefusalError(f"Image generation failed. Reason: {finish_reason}"))

    return GenerationFailed(RefusalError(NO_IMAGE_MESSAGE))


class GenerationClient:
    """Wraps a Gemini ``GenerativeModel`` for single-shot try-on requests."""

    def __init__(self, model: Any = None, *, model_name: str = DEFAULT_MODEL, temperature: float = 0.2):
        self.model = model if model is not None else genai.GenerativeModel(model_name=model_name)
        self.generation_config = {
            "temperature": temperature,
            "candidate_count": 1,
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "GenerationClient":
        return cls(model_name=settings.model_name, temperature=settings.temperature)

    async def generate(self, person: ImageRecord, garment: ImageRecord) -> GenerationResult:
        contents = [TRY_ON_INSTRUCTION, _blob(person), _blob(garment)]
        logger.info(
            "Requesting try-on for %s + %s",
            person.source.filename,
            garment.source.filename,
        )
        try:
            response = await self.model.generate_content_async(
                contents,
                generation_config=self.generation_config,
            )
        except Exception as e:
            logger.warning("Generation service call failed: %s", e)
            return GenerationFailed(ServiceError(str(e)))

        try:
            result = parse_response(response)
        except Exception as e:
            logger.exception("Could not interpret generation response")
            return GenerationFailed(ServiceError(f"Unexpected response from the generation service: {e}"))

        if isinstance(result, GenerationFailed):
            logger.warning("Generation produced no image: %s", result.message)
        return result
