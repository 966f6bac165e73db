"""
Typed failures raised by the engine.

Every failure is recoverable by the caller except a storage connection that
cannot be established at startup. The glue layer maps these onto transport
responses using ``code`` and ``to_dict()``.
"""

from __future__ import annotations

from typing import Any


class FarmLedgerError(Exception):
    """Base class for all engine failures."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the failure to a plain dict for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# ---------------------------------------------------------------------------
# Input-shaped failures
# ---------------------------------------------------------------------------


class DuplicateIdentity(FarmLedgerError):
    """Username or email already belongs to an account."""


class NotFound(FarmLedgerError):
    """Requested record does not exist (or belongs to a deactivated user)."""


class MalformedPayload(FarmLedgerError):
    """Game snapshot payload failed structural validation."""


class DuplicateAchievement(FarmLedgerError):
    """The user already unlocked an achievement with this name."""


class UnknownCategory(FarmLedgerError):
    """Leaderboard category is not recognized."""


class InvalidArgument(FarmLedgerError):
    """An argument is out of its accepted range."""


class InvalidUsername(InvalidArgument):
    """Username does not satisfy the length or character rules."""


class WeakPassword(InvalidArgument):
    """Password does not satisfy the length rules."""


# ---------------------------------------------------------------------------
# Authentication failures
# ---------------------------------------------------------------------------


class BadCredential(FarmLedgerError):
    """Login failed. Never says whether the account or the password was wrong."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class InvalidSession(FarmLedgerError):
    """Token does not match a live session."""

    def __init__(self, message: str = "Invalid session") -> None:
        super().__init__(message)


class ExpiredSession(FarmLedgerError):
    """Token matches a session whose expiry has passed."""

    def __init__(self, message: str = "Session expired") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class StorageFailure(FarmLedgerError):
    """Underlying database problem. Not retried by the engine."""
