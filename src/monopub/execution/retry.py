"""Retry policy for recoverable per-package failures."""

from __future__ import annotations

from dataclasses import dataclass, field

from monopub.config import RetryConfig
from monopub.errors import ErrorKind


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with exponential backoff.

    Attributes:
        max_attempts: Total attempts, including the first.
        delay: Delay before the first retry, in seconds.
        backoff_multiplier: Delay growth per retry.
        max_delay: Cap for a single delay.
        recoverable_kinds: Error kinds that may be retried.
    """

    max_attempts: int = 1
    delay: float = 0.0
    backoff_multiplier: float = 2.0
    max_delay: float = 60.0
    recoverable_kinds: frozenset[ErrorKind] = field(default_factory=frozenset)

    @classmethod
    def from_config(cls, config: RetryConfig) -> RetryPolicy:
        return cls(
            max_attempts=config.max_attempts,
            delay=config.delay,
            backoff_multiplier=config.backoff_multiplier,
            max_delay=config.max_delay,
            recoverable_kinds=frozenset(config.auto_recoverable_error_kinds),
        )

    def should_retry(self, kind: ErrorKind, attempt: int) -> bool:
        """Whether a failure of ``kind`` on attempt number ``attempt`` is retried."""
        return kind in self.recoverable_kinds and attempt < self.max_attempts

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        return min(self.delay * self.backoff_multiplier ** (attempt - 1), self.max_delay)
