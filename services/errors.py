"""
Error Handling Classes

Domain exception hierarchy shared by the note store, auth and AI layers.
Each error carries the HTTP status the app-level handler renders it with,
so the stores never build responses themselves.
"""

from typing import Any, Dict, Optional


class NotesError(Exception):
    """Base exception class for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class InvalidInput(NotesError):
    """Malformed or missing required fields."""
    status_code = 400


class NotFound(NotesError):
    """Resource absent or not owned by the caller."""
    status_code = 404


class Conflict(NotesError):
    """Unique-constraint violation."""
    status_code = 409


class Unauthorized(NotesError):
    """Missing or rejected credentials."""
    status_code = 401

    def __init__(self, message: str, *, status_code: int = 401, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class ProviderFailure(NotesError):
    """Every configured AI provider failed, or none is configured."""
    status_code = 500


class Internal(NotesError):
    """Unexpected storage or runtime failure."""
    status_code = 500


__all__ = [
    'NotesError',
    'InvalidInput',
    'NotFound',
    'Conflict',
    'Unauthorized',
    'ProviderFailure',
    'Internal',
]
