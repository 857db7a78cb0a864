"""Typed errors raised before a scan starts.

Each carries the HTTP status the API responds with and a short message
that is safe to show to end users.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any


class AuditError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message}


class InvalidInput(AuditError):
    status_code = 400

    def __init__(
        self,
        message: str = "Invalid URL. Please enter a full URL, e.g. https://example.com",
    ) -> None:
        super().__init__(message)


class NotAuthenticated(AuditError):
    status_code = 401

    def __init__(self, message: str = "Please log in to continue.") -> None:
        super().__init__(message)


class InsufficientCredits(AuditError):
    status_code = 402

    def __init__(self, required: int, available: int | None = None) -> None:
        super().__init__(f"You need {required} credits to run an audit.")
        self.required = required
        self.available = available

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "required": self.required, "available": self.available}


class TrialLimitExceeded(AuditError):
    status_code = 403

    def __init__(self, message: str, *, remaining: int = 0, reset_time: datetime | None = None) -> None:
        super().__init__(message)
        self.remaining = remaining
        self.reset_time = reset_time

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "remaining": self.remaining,
            "reset_time": self.reset_time.isoformat() if self.reset_time else None,
        }


class AccountNotFound(AuditError):
    status_code = 404

    def __init__(self, message: str = "User account not found.") -> None:
        super().__init__(message)


class UnlimitedAccessDenied(AuditError):
    status_code = 403

    def __init__(self, message: str = "Unlimited access requires a valid access key.") -> None:
        super().__init__(message)
