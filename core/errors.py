"""
core/errors.py
--------------
Error taxonomy shared by the store adapters, the cache controller and the UI.

- Unauthenticated   : no valid session. Collections resolve empty; not a fault.
- RemoteFailure     : the store rejected a fetch / mutation / subscribe call.
- ValidationFailure : user input broke a domain rule. Raised before any
                      network call and rendered inline next to the form.
"""

from __future__ import annotations

from typing import Dict, Optional


class StudyInsightsError(Exception):
    """Base class for all application errors."""


class Unauthenticated(StudyInsightsError):
    """Raised by mutation paths when no identity can be resolved."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class RemoteFailure(StudyInsightsError):
    """A store call failed. Carries enough context for a readable toast."""

    def __init__(
        self,
        message: str,
        *,
        collection: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.collection = collection
        self.operation = operation

    def __str__(self) -> str:
        if self.collection and self.operation:
            return f"{self.operation} on '{self.collection}' failed: {self.message}"
        return self.message


class ValidationFailure(StudyInsightsError):
    """
    Input rejected by a domain rule.

    `errors` maps a field name to a human readable message; the form renders
    them inline. `str()` joins them for toast-style display.
    """

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__(self.summary())

    def summary(self) -> str:
        return "; ".join(f"{field}: {msg}" for field, msg in self.errors.items())

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationFailure":
        return cls({field: message})
