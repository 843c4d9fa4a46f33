"""
Error taxonomy for the routing engine.

Every failure a caller of ``RoutingService.send_message`` can observe is a
subclass of ``RouterError``. Budget over-runs are advisory and surface as a
``BudgetExceeded`` warning instead.
"""

from typing import Optional, Sequence


class RouterError(Exception):
    """Base class for all routing engine failures."""


class NoProviderAvailable(RouterError):
    """Raised when the registry is empty or every provider is excluded/unavailable."""


class RateLimitExceeded(RouterError):
    """Raised when the sliding request window is full."""

    def __init__(self, message: str, retry_after_seconds: float = 60.0):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class SecurityViolation(RouterError):
    """Raised when a prompt carries credential-like content."""

    def __init__(self, message: str, detectors: Sequence[str] = ()):
        super().__init__(message)
        self.detectors = tuple(detectors)


class AllProvidersFailed(RouterError):
    """Raised when every candidate in the fallback chain failed."""

    def __init__(
        self,
        message: str,
        attempted: Sequence[str] = (),
        last_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.attempted = tuple(attempted)
        self.last_error = last_error


class SessionBusy(RouterError):
    """Raised when a session already has a send in progress."""


class BudgetExceeded(UserWarning):
    """Advisory warning: total spend is above the configured budget."""
