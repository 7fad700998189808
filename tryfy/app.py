"""HTTP surface for a single try-on session."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import urlparse

import httpx
from fastapi import FastAPI, File, HTTPException, Request, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from . import __version__, datauri
from .config import Settings, configure_genai, load_settings
from .errors import GenerationInProgressError, IntakeError
from .export import RESULT_FILENAME, result_bytes
from .generation import GenerationClient, GenerationService
from .intake import ACCEPTED_MEDIA_TYPES, PREVIEW_PREFIX, ImageRecord, PreviewStore, ingest
from .session import Slot, TryOnSession
from .state import Failed, Loading, Succeeded

logger = logging.getLogger(__name__)

# Remote image hosts tend to reject requests without browser-like headers.
FETCH_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36",
    "Accept": "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8",
    "Referer": "https://www.google.com/",
}


# --- 1. Pydantic Models ---
class ImageSlotView(BaseModel):
    filename: str
    mediaType: str
    size: int
    previewUrl: str

    @classmethod
    def from_record(cls, record: Optional[ImageRecord]) -> Optional["ImageSlotView"]:
        if record is None:
            return None
        return cls(
            filename=record.source.filename,
            mediaType=record.media_type,
            size=record.source.size,
            previewUrl=record.preview_uri,
        )


class SessionView(BaseModel):
    status: str = Field(..., description="One of idle, loading, succeeded, failed.")
    loading: bool
    resultImage: Optional[str] = Field(None, description="The generated try-on image as a data URI.")
    error: Optional[str] = None
    personImage: Optional[ImageSlotView] = None
    garmentImage: Optional[ImageSlotView] = None

    @classmethod
    def from_session(cls, session: TryOnSession) -> "SessionView":
        state = session.state.value
        return cls(
            status=state.status,
            loading=isinstance(state, Loading),
            resultImage=state.result_image if isinstance(state, Succeeded) else None,
            error=state.message if isinstance(state, Failed) else None,
            personImage=ImageSlotView.from_record(session.person),
            garmentImage=ImageSlotView.from_record(session.garment),
        )


class ImageUrlPayload(BaseModel):
    url: str = Field(..., description="A direct link to a JPEG or PNG image.")


def _bare_media_type(content_type: Optional[str]) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def _session(request: Request) -> TryOnSession:
    return request.app.state.session


def _store(request: Request) -> PreviewStore:
    return request.app.state.previews


def _install(request: Request, slot: Slot, data: bytes, filename: str, media_type: str) -> ImageSlotView:
    if media_type not in ACCEPTED_MEDIA_TYPES:
        raise HTTPException(status_code=415, detail="Only JPG or PNG images are accepted.")
    try:
        record = ingest(data, filename=filename, media_type=media_type, store=_store(request))
    except IntakeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if record.media_type not in ACCEPTED_MEDIA_TYPES:
        record.release()
        raise HTTPException(status_code=415, detail="Only JPG or PNG images are accepted.")
    _session(request).set_image(slot, record)
    return ImageSlotView.from_record(record)


# --- 2. FastAPI Application Setup ---
def create_app(
    settings: Optional[Settings] = None,
    client: Optional[GenerationService] = None,
    previews: Optional[PreviewStore] = None,
) -> FastAPI:
    settings = settings or load_settings()
    if client is None:
        configure_genai(settings)
        client = GenerationClient.from_settings(settings)
    session = TryOnSession(client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        session.close()

    app = FastAPI(
        title="TryFy - AI Virtual Try-On",
        description="Upload a person photo and a garment photo, then generate a try-on image with Gemini.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session = session
    app.state.previews = previews if previews is not None else PreviewStore()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- 3. API Endpoints ---
    @app.get("/state", response_model=SessionView)
    async def get_state(request: Request):
        return SessionView.from_session(_session(request))

    @app.put("/images/{slot}", response_model=ImageSlotView)
    async def upload_image(request: Request, slot: Slot, file: UploadFile = File(...)):
        try:
            data = await file.read()
        except OSError as e:
            raise HTTPException(status_code=400, detail=f"Could not read upload: {e}")
        return _install(request, slot, data, file.filename or f"{slot.value}-upload", _bare_media_type(file.content_type))

    @app.post("/images/{slot}/from-url", response_model=ImageSlotView)
    async def upload_image_from_url(request: Request, slot: Slot, payload: ImageUrlPayload):
        timeout = request.app.state.settings.fetch_timeout
        async with httpx.AsyncClient() as http:
            try:
                response = await http.get(payload.url, follow_redirects=True, timeout=timeout, headers=FETCH_HEADERS)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise HTTPException(status_code=e.response.status_code, detail=f"Image server error: {e.response.status_code}")
            except httpx.RequestError as e:
                raise HTTPException(status_code=400, detail=f"Failed to fetch image: {e}")

        media_type = _bare_media_type(response.headers.get("content-type"))
        if not media_type.startswith("image/"):
            raise HTTPException(status_code=400, detail="URL is not a direct image link.")
        filename = PurePosixPath(urlparse(payload.url).path).name or f"{slot.value}-upload"
        return _install(request, slot, response.content, filename, media_type)

    @app.delete("/images/{slot}", status_code=204)
    async def remove_image(request: Request, slot: Slot):
        _session(request).remove_image(slot)
        return Response(status_code=204)

    @app.get("/previews/{preview_id}", response_class=Response)
    async def get_preview(request: Request, preview_id: str):
        entry = _store(request).resolve(PREVIEW_PREFIX + preview_id)
        if entry is None:
            raise HTTPException(status_code=404, detail="Preview not found.")
        data, media_type = entry
        return Response(content=data, media_type=media_type)

    @app.post("/generate", response_model=SessionView)
    async def generate_tryon(request: Request):
        session = _session(request)
        try:
            await session.generate()
        except GenerationInProgressError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return SessionView.from_session(session)

    @app.get(
        "/result",
        response_class=Response,
        responses={
            200: {
                "content": {"image/png": {}},
                "description": "The generated try-on image.",
            }
        },
    )
    async def download_result(request: Request):
        result_image = _session(request).result_image
        if result_image is None:
            raise HTTPException(status_code=404, detail="No try-on result available.")
        media_type, _ = datauri.parse(result_image)
        return Response(
            content=result_bytes(result_image),
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{RESULT_FILENAME}"'},
        )

    return app
