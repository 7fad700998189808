"""Request orchestration for one user's try-on session.

``TryOnSession`` owns the person and garment slots and the request state. It
is the only writer of that state:

    Idle -> Loading -> Succeeded | Failed

A trigger with an empty slot goes straight to ``Failed`` without calling the
generation client. A trigger while ``Loading`` is rejected with
``GenerationInProgressError`` and leaves the in-flight request alone.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

from . import export
from .errors import GenerationInProgressError, NoResultError, ValidationError
from .generation import Generated, GenerationService
from .intake import ImageRecord, release
from .state import Failed, Loading, RequestState, RequestStateHolder, Succeeded

logger = logging.getLogger(__name__)

BOTH_IMAGES_REQUIRED = "Please upload both a person and a garment image."
UNEXPECTED_ERROR = "An unexpected error occurred."


class Slot(str, Enum):
    PERSON = "person"
    GARMENT = "garment"


class TryOnSession:
    def __init__(self, client: GenerationService, state: Optional[RequestStateHolder] = None):
        self.client = client
        self.state = state if state is not None else RequestStateHolder()
        self._images: Dict[Slot, Optional[ImageRecord]] = {Slot.PERSON: None, Slot.GARMENT: None}

    # -- slots -------------------------------------------------------------

    def image(self, slot: Slot) -> Optional[ImageRecord]:
        return self._images[Slot(slot)]

    @property
    def person(self) -> Optional[ImageRecord]:
        return self._images[Slot.PERSON]

    @property
    def garment(self) -> Optional[ImageRecord]:
        return self._images[Slot.GARMENT]

    def set_image(self, slot: Slot, record: ImageRecord) -> None:
        """Install ``record`` in ``slot``, releasing whatever it replaces."""
        slot = Slot(slot)
        previous = self._images[slot]
        self._images[slot] = record
        if previous is not None and previous is not record:
            release(previous)
        logger.info("%s image set to %s", slot.value, record.source.filename)

    def remove_image(self, slot: Slot) -> None:
        slot = Slot(slot)
        previous, self._images[slot] = self._images[slot], None
        release(previous)

    def close(self) -> None:
        """Release both slots. The session can still be reused afterwards."""
        for slot in Slot:
            self.remove_image(slot)

    def __enter__(self) -> "TryOnSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -- generation --------------------------------------------------------

    async def generate(self) -> RequestState:
        """Run one try-on attempt and return the state it settled in."""
        if self.state.is_loading:
            raise GenerationInProgressError("A try-on is already being generated.")

        person, garment = self.person, self.garment
        if person is None or garment is None:
            error = ValidationError(BOTH_IMAGES_REQUIRED)
            logger.warning("Generation rejected: %s", error)
            self.state.set(Failed(str(error)))
            return self.state.value

        settled = False
        try:
            self.state.set(Loading())
            result = await self.client.generate(person, garment)
            if isinstance(result, Generated):
                outcome: RequestState = Succeeded(result.image_uri)
            else:
                outcome = Failed(result.message or UNEXPECTED_ERROR)
            settled = True
            self.state.set(outcome)
        finally:
            if not settled:
                self.state.set(Failed(UNEXPECTED_ERROR))
        return self.state.value

    # -- export ------------------------------------------------------------

    @property
    def result_image(self) -> Optional[str]:
        state = self.state.value
        return state.result_image if isinstance(state, Succeeded) else None

    def export(self, directory: Union[str, Path] = ".") -> Path:
        result_image = self.result_image
        if result_image is None:
            raise NoResultError("There is no try-on result to export.")
        return export.export_as_file(result_image, directory)
