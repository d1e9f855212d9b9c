"""Rate limiter interfaces.

The API should depend on this abstraction (not the concrete implementation)
so we can swap storage backends later (e.g., Redis) with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of admitting one request for a key.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window.
        remaining: Requests left in the current window (0 when rejected).
        reset_at: UNIX epoch seconds when the current window ends.
        retry_after_seconds: Suggested wait in seconds when rejected.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @property
    @abstractmethod
    def limit(self) -> int:
        """Maximum number of requests admitted per window."""
        raise NotImplementedError

    @property
    @abstractmethod
    def window_seconds(self) -> int:
        """Window length in seconds."""
        raise NotImplementedError

    @abstractmethod
    def admit(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether it may proceed.

        Args:
            key: Client identifier (e.g., source address).

        Returns:
            RateLimitDecision describing whether it was allowed.
        """
        raise NotImplementedError
