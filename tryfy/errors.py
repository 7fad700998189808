"""Error taxonomy for the try-on workflow.

Every kind converges on one user-visible contract: a descriptive message shown
in place of a result. None of them is fatal to the process.
"""


class TryOnError(Exception):
    """Base class for all try-on errors."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class IntakeError(TryOnError):
    """An uploaded file could not be read."""


class ValidationError(TryOnError):
    """Generation was triggered without both images."""


class ServiceError(TryOnError):
    """The generation service could not be reached or failed."""


class RefusalError(TryOnError):
    """The generation service ran but produced no image."""


class GenerationInProgressError(TryOnError):
    """A generation request is already in flight for this session."""


class NoResultError(TryOnError):
    """There is no successful result to export."""
