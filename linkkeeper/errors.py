"""
linkkeeper.errors — Error Taxonomy
===================================

Every failure the services raise is a :class:`LinkKeeperError` carrying the
operation and (where relevant) the tier it happened in, so the bot and API
can render a meaningful message without parsing strings.

Categories:

* :class:`NotFound`           — member or list does not exist (404).
* :class:`AlreadyExists`      — duplicate creation attempt (409).
* :class:`PreconditionFailed` — business rule said no, e.g. nobody left to
  draw or nothing to force-complete (412).  A normal negative outcome.
* :class:`StoreUnavailable`   — persistence failed; the operation was rolled
  back and the caller decides whether to retry (503).
"""

from __future__ import annotations


class LinkKeeperError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        tier: str | None = None,
    ) -> None:
        self.message = message
        self.operation = operation
        self.tier = tier
        super().__init__(self._format())

    def _format(self) -> str:
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.tier:
            context.append(f"tier={self.tier}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "detail": self.message,
            "operation": self.operation,
            "tier": self.tier,
        }


class NotFound(LinkKeeperError):
    status_code = 404


class AlreadyExists(LinkKeeperError):
    status_code = 409


class PreconditionFailed(LinkKeeperError):
    status_code = 412


class StoreUnavailable(LinkKeeperError):
    status_code = 503


class ConcurrentUpdate(StoreUnavailable):
    """Optimistic version check kept failing after the retry budget."""
