"""Exception types for prlog."""


class PrlogError(Exception):
    """Base exception for all prlog errors surfaced to the CLI."""


class ConfigError(PrlogError):
    """Raised when configuration values are missing or invalid."""


class AuthenticationError(PrlogError):
    """Raised when the PR source is not authenticated."""


class PrerequisiteError(PrlogError):
    """Raised when a sync run cannot start (auth or AI backend unavailable)."""


class RemoteSourceError(PrlogError):
    """Raised by a PR source for a single failed query.

    The message is inspected by RemoteClient to decide whether the call is
    retried, so sources should keep "rate limit", "network" or "timeout" in
    it when that is the cause.
    """


class RemoteError(PrlogError):
    """Raised by RemoteClient once a query has failed for good."""


class EnrichmentError(PrlogError):
    """Raised when the AI backend call itself fails (network, auth, quota)."""
