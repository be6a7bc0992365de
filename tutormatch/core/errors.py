# tutormatch/core/errors.py
from typing import Any, Dict, Optional


class MatchingError(Exception):
    """Base class for every error the matching core raises on purpose."""

    status_code = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message, **self.context}


class ValidationError(MatchingError):
    status_code = 400


class NotFoundError(MatchingError):
    status_code = 404


class ConflictError(MatchingError):
    """A state-machine precondition failed; nothing was written."""

    status_code = 409


class StorageError(MatchingError):
    status_code = 500
