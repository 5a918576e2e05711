"""Custom exception hierarchy for moneyboard."""

from __future__ import annotations


class MoneyboardError(Exception):
    """Base exception for all moneyboard errors."""


class ConfigurationError(MoneyboardError):
    """Invalid or missing provider configuration."""


class InitializationError(MoneyboardError):
    """The Firebase app, auth service or store could not be created."""


class TransportError(MoneyboardError):
    """HTTP-level failure (network, non-200 without an API error body, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class ApiError(MoneyboardError):
    """The identity API answered with an error body (e.g. ``INVALID_CUSTOM_TOKEN``)."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        endpoint: str = "",
    ) -> None:
        self.code = code
        self.endpoint = endpoint
        super().__init__(message)


class AuthenticationError(ApiError):
    """Sign-in or token refresh was rejected."""


class SubscriptionError(MoneyboardError):
    """A collection listener reported a fault after it was attached.

    The listener is left detached; recovery is external (reload, credential
    refresh, rules change).
    """

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)
