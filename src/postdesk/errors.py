"""Error taxonomy shared by the remote client, services and HTTP layer.

Every error carries the HTTP status it maps to at the request boundary,
so the web layer needs a single handler instead of per-view branching.
"""

from __future__ import annotations


class PostdeskError(Exception):
    """Base error for all postdesk failures."""

    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or ""


class UnauthorizedError(PostdeskError):
    """No valid session, or the session email is not allow-listed."""

    status_code = 401


class NotFoundError(PostdeskError):
    """The requested resource does not exist in the repository."""

    status_code = 404


class ValidationError(PostdeskError):
    """A required field is missing or an input value is invalid."""

    status_code = 400


class FrontmatterError(ValidationError):
    """The metadata block of a post could not be parsed."""


class ConflictError(PostdeskError):
    """The write precondition failed: stale sha or occupied path."""

    status_code = 409


class UpstreamError(PostdeskError):
    """The GitHub API returned an unexpected failure."""

    status_code = 500

    def __init__(self, message: str = "", status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class ConfigurationError(PostdeskError):
    """Required configuration is missing or malformed."""

    status_code = 500
