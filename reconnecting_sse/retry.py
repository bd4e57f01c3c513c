"""Retry policies deciding whether, and after how long, a failed stream reconnects."""

from abc import ABC, abstractmethod
from typing import NamedTuple

from reconnecting_sse.errors import EventSourceError


class RetryState(NamedTuple):
    attempt: int
    delay: float


def default_should_retry(error: EventSourceError) -> bool:
    return error.retryable


class RetryPolicy(ABC):
    """Maps a failure and the retry history to a delay, or None to give up.

    ``retry_state`` is None for the first failure after a successful
    connection. Implementations only compute a value; the EventSource does
    the waiting.
    """

    @abstractmethod
    def decide(
        self, error: EventSourceError, retry_state: RetryState | None
    ) -> float | None: ...

    def set_reconnection_time(self, delay: float) -> None:
        """Apply a reconnection time advertised by the server."""


def _within_limit(max_retries: int | None, retry_state: RetryState | None) -> bool:
    if max_retries is None:
        return True
    attempt = retry_state.attempt if retry_state else 0
    return attempt < max_retries


class ExponentialBackoff(RetryPolicy):
    def __init__(
        self,
        start: float,
        factor: float,
        max_delay: float,
        max_retries: int | None = None,
    ):
        if start < 0:
            raise ValueError(f"start must not be negative, got {start}")
        if factor < 1:
            raise ValueError(f"factor must be at least 1, got {factor}")
        if start > max_delay:
            raise ValueError(f"start ({start}) exceeds max_delay ({max_delay})")
        self.start = start
        self.factor = factor
        self.max_delay = max_delay
        self.max_retries = max_retries

    def __repr__(self) -> str:
        return (
            f"ExponentialBackoff(start={self.start}, factor={self.factor}, "
            f"max_delay={self.max_delay}, max_retries={self.max_retries})"
        )

    def decide(self, error, retry_state):
        if not default_should_retry(error):
            return None
        if not _within_limit(self.max_retries, retry_state):
            return None
        if retry_state is None:
            return self.start
        return min(retry_state.delay * self.factor, self.max_delay)

    def set_reconnection_time(self, delay: float) -> None:
        self.start = min(delay, self.max_delay)


class Constant(RetryPolicy):
    def __init__(self, delay: float, max_retries: int | None = None):
        if delay < 0:
            raise ValueError(f"delay must not be negative, got {delay}")
        self.delay = delay
        self.max_retries = max_retries

    def __repr__(self) -> str:
        return f"Constant(delay={self.delay}, max_retries={self.max_retries})"

    def decide(self, error, retry_state):
        if not default_should_retry(error):
            return None
        if not _within_limit(self.max_retries, retry_state):
            return None
        return self.delay

    def set_reconnection_time(self, delay: float) -> None:
        self.delay = delay


class Never(RetryPolicy):
    """Disables automatic reconnection."""

    def __repr__(self) -> str:
        return "Never()"

    def decide(self, error, retry_state):
        if not default_should_retry(error):
            return None
        return None


def default_retry_policy() -> ExponentialBackoff:
    return ExponentialBackoff(start=0.3, factor=2.0, max_delay=5.0)
