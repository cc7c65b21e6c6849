"""
Delay policies for the ``wait`` recovery step.

The executor asks the policy for the delay of a given retry count, so manual
retries of the same error can back off further each time.
"""
import random
from abc import ABC, abstractmethod


class BackoffPolicy(ABC):
    """Base class for wait-step delay policies."""

    def __init__(self, max_delay: float = 60.0):
        if max_delay < 0:
            raise ValueError(f"max_delay must be >= 0, got {max_delay}")
        self.max_delay = max_delay

    @abstractmethod
    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate the wait delay.

        Args:
            attempt: Retry count of the error being recovered (0 for the
                automatic attempt)

        Returns:
            Delay in seconds
        """

    @property
    @abstractmethod
    def name(self) -> str:
        """Policy name for logging."""


class FixedDelay(BackoffPolicy):
    """Same delay for every attempt."""

    def __init__(self, delay: float = 1.0):
        super().__init__(max_delay=max(delay, 0.0))
        self.delay = max(delay, 0.0)

    def calculate_delay(self, attempt: int) -> float:
        return self.delay

    @property
    def name(self) -> str:
        return f"FixedDelay(delay={self.delay})"


class LinearBackoff(BackoffPolicy):
    """delay = min(initial_delay + increment * attempt, max_delay)"""

    def __init__(self, initial_delay: float = 1.0, increment: float = 1.0, max_delay: float = 60.0):
        super().__init__(max_delay)
        self.initial_delay = initial_delay
        self.increment = increment

    def calculate_delay(self, attempt: int) -> float:
        return min(self.initial_delay + self.increment * max(attempt, 0), self.max_delay)

    @property
    def name(self) -> str:
        return f"LinearBackoff(initial={self.initial_delay}, increment={self.increment})"


class ExponentialBackoff(BackoffPolicy):
    """
    delay = min(initial_delay * backoff_factor ** attempt, max_delay),
    optionally spread by +/- jitter_range.
    """

    def __init__(
        self,
        initial_delay: float = 1.0,
        backoff_factor: float = 2.0,
        max_delay: float = 60.0,
        jitter: bool = False,
        jitter_range: float = 0.1,
        rng: random.Random | None = None
    ):
        super().__init__(max_delay)
        self.initial_delay = initial_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter
        self.jitter_range = jitter_range
        self._rng = rng or random.Random()

    def calculate_delay(self, attempt: int) -> float:
        delay = min(self.initial_delay * (self.backoff_factor ** max(attempt, 0)), self.max_delay)

        if self.jitter and delay > 0:
            spread = delay * self.jitter_range
            delay = max(0.0, delay + self._rng.uniform(-spread, spread))

        return delay

    @property
    def name(self) -> str:
        return f"ExponentialBackoff(initial={self.initial_delay}, factor={self.backoff_factor})"
