from __future__ import annotations


class MomentrackerError(Exception):
    """Base error carrying a stable upper-case code."""

    code = "MOMENTRACKER_ERROR"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(self.code)
        self.detail = detail


class StorageError(MomentrackerError):
    """Raised when the store is unreachable or rejects a write."""

    code = "STORAGE_UNAVAILABLE"


class DuplicateSnapshotError(StorageError):
    """Raised when a batch holds a (symbol, minute) pair that is already stored."""

    code = "TRENDING_SNAPSHOT_DUPLICATE"


class ProviderError(MomentrackerError):
    """Raised when an upstream data provider is unavailable."""

    code = "PROVIDER_UNAVAILABLE"


class ProviderRateLimitedError(ProviderError):
    code = "PROVIDER_RATE_LIMITED"


class ProviderMalformedResponseError(ProviderError):
    code = "PROVIDER_MALFORMED_RESPONSE"


class TransportError(MomentrackerError):
    """Raised when the streaming trade connection drops."""

    code = "TRANSPORT_DISCONNECTED"


class TransportAuthError(TransportError):
    """Raised when the streaming provider rejects the credentials. Never retried."""

    code = "TRANSPORT_AUTH_REJECTED"
