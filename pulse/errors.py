"""Error taxonomy for portfolio and digest workflows."""

from typing import Optional


class PulseError(Exception):
    """Base class for all Portfolio Pulse errors."""


class ValidationError(PulseError):
    """Portfolio input yielded zero valid holdings."""


class NotFoundError(PulseError):
    """No digest-like document exists (or none appeared before the timeout)."""


class ContentError(PulseError):
    """Fetched digest content is empty, too short, or produced no cards."""


class TransportError(PulseError):
    """Network or authentication failure talking to a remote collaborator."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(PulseError):
    """A section produced neither bullets nor a fallback paragraph."""
