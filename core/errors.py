"""
Domain errors raised by the core.

The backend maps each class to an HTTP status code; scripts print them.
"""

from typing import Optional


class OralScreenError(Exception):
    """Base class for errors raised by the core."""


class ValidationError(OralScreenError, ValueError):
    """Malformed input rejected before any mutation."""


class NotFoundError(OralScreenError, LookupError):
    """Unknown submission, annotation or stored artifact."""


class AuthorizationError(OralScreenError):
    """Caller role is not allowed to perform the operation."""


class PreconditionError(OralScreenError):
    """
    Operation not allowed in the current submission state.

    `missing_images` lists original image refs that still lack an
    annotation when the failure is a coverage problem.
    """

    def __init__(self, message: str, missing_images: Optional[list[str]] = None):
        super().__init__(message)
        self.missing_images = list(missing_images or [])
