"""Runtime configuration, read from the environment and an optional ``.env`` file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv
import google.generativeai as genai

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-image-preview"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str] = None
    model_name: str = DEFAULT_MODEL
    temperature: float = 0.2
    export_dir: str = "."
    host: str = "127.0.0.1"
    port: int = 8000
    fetch_timeout: float = 15.0
    log_level: str = "INFO"


def load_settings(require_api_key: bool = False) -> Settings:
    """Build ``Settings`` from ``TRYFY_*`` variables and ``GEMINI_API_KEY``."""
    load_dotenv()
    api_key = os.getenv("GEMINI_API_KEY")

    if require_api_key and not api_key:
        raise RuntimeError("GEMINI_API_KEY not set in .env file")

    return Settings(
        api_key=api_key,
        model_name=os.getenv("TRYFY_MODEL", DEFAULT_MODEL),
        temperature=float(os.getenv("TRYFY_TEMPERATURE", "0.2")),
        export_dir=os.getenv("TRYFY_EXPORT_DIR", "."),
        host=os.getenv("TRYFY_HOST", "127.0.0.1"),
        port=int(os.getenv("TRYFY_PORT", "8000")),
        fetch_timeout=float(os.getenv("TRYFY_FETCH_TIMEOUT", "15")),
        log_level=os.getenv("TRYFY_LOG_LEVEL", "INFO").upper(),
    )


def configure_genai(settings: Settings) -> bool:
    """Hand the API key to the Gemini SDK. Returns False when no key is set."""
    if not settings.api_key:
        logger.warning("GEMINI_API_KEY is not set; generation requests will fail")
        return False
    genai.configure(api_key=settings.api_key)
    return True


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
