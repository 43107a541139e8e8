"""Exception classes for the merge agent."""

from typing import Optional


class MergeAgentError(Exception):
    """Base exception for all merge agent errors."""


class ConfigurationError(MergeAgentError):
    """Raised when configuration is invalid or missing."""


class ClientError(MergeAgentError):
    """
    A failed request against GitHub or CircleCI.

    Classification is by HTTP status code. Transport failures (timeouts,
    connection resets) carry no status code.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        self.message = message
        if status_code is None:
            super().__init__(message)
        else:
            super().__init__(f"[{status_code}] {message}")

    def not_found(self) -> bool:
        return self.status_code == 404

    def method_not_allowed(self) -> bool:
        return self.status_code == 405

    def conflict(self) -> bool:
        return self.status_code == 409

    def unprocessable_entity(self) -> bool:
        return self.status_code == 422

    def rate_limited(self) -> bool:
        return self.status_code == 429


class RateLimitExhaustedError(ClientError):
    """Raised when rate limiting persisted past the retry budget."""

    def __init__(self, message: str = "rate limited, max attempts reached"):
        super().__init__(message, status_code=429)


class UnsupportedPullRequestStateError(MergeAgentError):
    """Raised when GitHub reports a pull request state we don't understand."""


class CannotProceedError(MergeAgentError):
    """
    The pull request is in a state polling will not fix.

    The caller is expected to stop polling and tell a human.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class NoMergeMethodAllowedError(CannotProceedError):
    """Raised when the repository rejected every merge method."""

    def __init__(self, reason: str = "no merge method allowed"):
        super().__init__(reason)


class InvalidJobUrlError(MergeAgentError):
    """Raised when a CI job URL belongs to a known provider but can't be parsed."""
