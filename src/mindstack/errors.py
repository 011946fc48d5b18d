"""Exception taxonomy shared by the pipeline, the store and the HTTP surface.

Synchronous paths raise these to the caller; the API layer maps them to a
status code and an ``{"error": message}`` body. Background paths log them
and stop the affected unit of work.
"""

from __future__ import annotations


class MindstackError(Exception):
    """Base class for all MindStack errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MindstackError):
    """Missing required field, unknown capture type, malformed payload."""

    status_code = 400


class AuthorizationError(MindstackError):
    """No caller identity could be established for the request."""

    status_code = 401


class NotFoundError(MindstackError):
    """The record does not exist or is not visible to the caller."""

    status_code = 404


class UpstreamError(MindstackError):
    """A model, transcript, or object-storage call failed."""

    status_code = 502


class PersistenceError(MindstackError):
    """The structured store rejected a write or read."""

    status_code = 500
