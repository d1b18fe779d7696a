"""
Failure taxonomy of the update-notification engine.

- FetchError (PortalNetworkError, PortalDecodeError): the portal could not be
  read; the cycle aborts before the mod store is touched.
- PersistenceError: the end-of-cycle commit failed; the cycle's events are
  discarded and will be detected again next cycle.
- PlatformError: a single message could not be delivered; isolated to that
  message and classified by DeliveryErrorKind.
"""

from __future__ import annotations

from enum import Enum


class FetchError(Exception):
    """The portal catalog (or a mod detail page) could not be fetched."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class PortalNetworkError(FetchError):
    """Transport failure, timeout or non-success HTTP status."""


class PortalDecodeError(FetchError):
    """The portal answered but the payload could not be understood."""


class PersistenceError(Exception):
    """Staged mod store changes could not be committed."""


class DeliveryErrorKind(Enum):
    """How the messaging platform rejected a message."""

    RATE_LIMITED = "rate_limited"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"

    def __str__(self) -> str:
        return self.value

    @property
    def is_permanent(self) -> bool:
        """Permanent failures are never retried for the same message."""
        return self in (DeliveryErrorKind.FORBIDDEN, DeliveryErrorKind.NOT_FOUND)


class PlatformError(Exception):
    """A message send failed on the messaging platform."""

    def __init__(
        self,
        kind: DeliveryErrorKind,
        message: str = "",
        *,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message or kind.value)
        self.kind = kind
        self.retry_after = retry_after

    def __repr__(self) -> str:
        return f"PlatformError({self.kind.value!r}, {str(self)!r}, retry_after={self.retry_after!r})"
