"""SDK error types."""

from __future__ import annotations


class PTError(RuntimeError):
    """Base SDK error."""


class TokenValidationError(PTError):
    """API token is missing or blank."""


class TrackerUnavailableError(PTError):
    """Tracker could not be reached."""


class TrackerResponseError(TrackerUnavailableError):
    """Tracker answered with a body that is not a usable identity payload."""


class TrackerAuthError(PTError):
    """Tracker rejected the API token."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: object | None = None,
        body: object | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.body = body
