"""TryFy - AI virtual try-on with Gemini image models."""

__version__ = "1.0.0"
