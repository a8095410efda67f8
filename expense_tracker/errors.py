from __future__ import annotations

from typing import Optional


class ExpenseTrackerError(RuntimeError):
    """Base class for every error raised by the tracker."""


class ConfigurationError(ExpenseTrackerError):
    pass


class ValidationError(ExpenseTrackerError):
    pass


# -------------------- Remote failures --------------------
class BackendError(ExpenseTrackerError):
    """A call to Firebase failed. `reason` is the remote message, if any."""

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason or message


class PermissionDeniedError(BackendError):
    pass


class AuthenticationError(ExpenseTrackerError):
    pass


class AccountCreationError(ExpenseTrackerError):
    pass


class FetchError(ExpenseTrackerError):
    pass


class MutationError(ExpenseTrackerError):
    pass
