"""Error taxonomy.

Only the setup failures (identity, request shape, empty vault, job creation)
ever reach an HTTP caller.  Token and provider errors are raised inside the
per-provider loop and converted into a skipped or degraded result there.
"""

from __future__ import annotations


class MailRulesError(Exception):
    """Base class for every error raised by the package."""


class AuthenticationError(MailRulesError):
    """Missing or invalid caller identity."""


class ValidationError(MailRulesError):
    """Request is missing required fields or carries malformed values."""


class NoProvidersConnected(MailRulesError):
    """The user has no vault records at all."""

    def __init__(self, message: str = "No connected email providers found"):
        super().__init__(message)


class DecryptionError(MailRulesError):
    """Ciphertext could not be authenticated with the configured key."""


class TokenUnavailable(MailRulesError):
    """No usable access token could be produced for one provider."""

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider


class NoRefreshToken(TokenUnavailable):
    """Access token expired and the vault holds no refresh token."""

    def __init__(self, provider: str):
        super().__init__(provider, f"no refresh token stored for {provider}")


class RefreshFailed(TokenUnavailable):
    """The provider token endpoint did not return a new access token."""


class ProviderAPIError(MailRulesError):
    """Non-success answer (or transport failure) from Gmail / Graph."""

    def __init__(self, provider: str, operation: str, status_code: int | None = None, detail: str = ""):
        super().__init__(f"{provider} {operation} failed ({status_code}): {detail}")
        self.provider = provider
        self.operation = operation
        self.status_code = status_code
        self.detail = detail


class JobCreationError(MailRulesError):
    """The job row could not be inserted; no job id exists."""


class InvalidJobTransition(MailRulesError):
    """Attempted a job status change outside the allowed graph."""


class JobNotFound(MailRulesError):
    """No job with that id is visible to the caller."""

    def __init__(self, message: str = "Job not found"):
        super().__init__(message)


__all__ = [
    "MailRulesError",
    "AuthenticationError",
    "ValidationError",
    "NoProvidersConnected",
    "DecryptionError",
    "TokenUnavailable",
    "NoRefreshToken",
    "RefreshFailed",
    "ProviderAPIError",
    "JobCreationError",
    "InvalidJobTransition",
    "JobNotFound",
]
