"""Reconnect backoff policy for streaming connectors."""

from __future__ import annotations

from dataclasses import dataclass


def backoff_delay(attempt: int, base_delay: float = 1.0, max_delay: float = 30.0) -> float:
    """Delay before reconnect number `attempt` (0-based): base doubled per attempt, capped."""
    return min(base_delay * (2 ** attempt), max_delay)


@dataclass
class ReconnectBudget:
    """Counts consecutive failed connections. Reset on every successful open."""

    base_delay: float = 1.0
    max_delay: float = 30.0
    max_attempts: int = 10
    attempts: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def next_delay(self) -> float:
        """Delay for the next attempt; consumes one attempt."""
        delay = backoff_delay(self.attempts, self.base_delay, self.max_delay)
        self.attempts += 1
        return delay

    def reset(self) -> None:
        self.attempts = 0
