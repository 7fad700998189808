from __future__ import annotations

import asyncio
from typing import List, Optional, Tuple

import pytest

from tryfy.generation import Generated, GenerationFailed, GenerationResult
from tryfy.errors import RefusalError
from tryfy.intake import ImageRecord, PreviewStore, ingest

PERSON_BYTES = b"\xff\xd8\xff" + bytes(497)
GARMENT_BYTES = b"\x89PNG\r\n\x1a\n" + bytes(692)


class FakeClient:
    """Stands in for GenerationClient; records calls and returns a canned result."""

    def __init__(self, result: Optional[GenerationResult] = None):
        self.result = result if result is not None else Generated("data:image/png;base64,Zm9v")
        self.calls: List[Tuple[ImageRecord, ImageRecord]] = []
        self.release = None

    async def generate(self, person: ImageRecord, garment: ImageRecord) -> GenerationResult:
        self.calls.append((person, garment))
        if self.release is not None:
            await self.release.wait()
        return self.result


class BlockingClient(FakeClient):
    """A client whose call does not settle until ``release`` is set."""

    def __init__(self, result: Optional[GenerationResult] = None):
        super().__init__(result)
        self.release = asyncio.Event()


@pytest.fixture
def store() -> PreviewStore:
    return PreviewStore()


@pytest.fixture
def person(store) -> ImageRecord:
    return ingest(PERSON_BYTES, filename="person.jpg", store=store)


@pytest.fixture
def garment(store) -> ImageRecord:
    return ingest(GARMENT_BYTES, filename="garment.png", store=store)


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def refusing_client() -> FakeClient:
    return FakeClient(GenerationFailed(RefusalError("unsupported content")))


@pytest.fixture
def blocking_client() -> BlockingClient:
    return BlockingClient()


@pytest.fixture
def person_bytes() -> bytes:
    return PERSON_BYTES


@pytest.fixture
def garment_bytes() -> bytes:
    return GARMENT_BYTES
