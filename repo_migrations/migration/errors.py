"""Error taxonomy shared by every downloader.

The import pipeline decides abort-vs-skip per entity kind from the error type:

- ``AuthFailureError`` aborts the whole migration.
- ``NotFoundError`` is fatal for repository info, per entity kind otherwise.
- ``RateLimitedError`` can be retried by the caller after ``reset_at``.
- ``UnsupportedError`` means the service lacks the capability; skip the kind.
- ``MappingError`` means a remote record was malformed.
- ``RemoteError`` is any other transport or HTTP failure.
"""

from datetime import datetime, timezone


class MigrationError(Exception):
    """Base class for downloader errors.

    Attributes:
        entity_kind: Entity kind being fetched when the error occurred
        page: 1-based page index being fetched, if paginated
    """

    def __init__(
        self,
        message: str,
        entity_kind: str | None = None,
        page: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.entity_kind = entity_kind
        self.page = page

    def __str__(self) -> str:
        context = []
        if self.entity_kind:
            context.append(f"kind={self.entity_kind}")
        if self.page is not None:
            context.append(f"page={self.page}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class ConfigError(MigrationError):
    """Raised when a downloader cannot be constructed from its options."""


class AuthFailureError(MigrationError):
    """Raised when the remote service rejects the credentials."""


class NotFoundError(MigrationError):
    """Raised when the owner/name or a requested record does not resolve."""


class RateLimitedError(MigrationError):
    """Raised when the quota cannot be recovered within the allowed wait."""

    def __init__(
        self,
        reset_at: float | None = None,
        message: str = "Rate limit exceeded",
    ) -> None:
        self.reset_at = reset_at
        if reset_at is not None:
            reset = datetime.fromtimestamp(reset_at, tz=timezone.utc)
            message = f"{message}. Resets at {reset.isoformat()}"
        super().__init__(message)


class UnsupportedError(MigrationError):
    """Raised when the remote service does not offer a capability."""


class MappingError(MigrationError):
    """Raised when a remote record cannot be mapped to the canonical model."""


class RemoteError(MigrationError):
    """Raised on transport failures and unexpected HTTP responses."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
