"""Retry and error-wrapping helpers shared by revision-guarded commits."""

import logging
import random
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from canteen_ordering.domain.errors import InternalError, OrderingError

_logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """Bounded retry with full-jitter exponential backoff."""

    max_attempts: int = 3
    backoff_seconds: float = 0.05
    backoff_max_seconds: float = 0.5
    sleep: Callable[[float], None] = field(default=time.sleep)

    def attempts(self) -> range:
        """Return the attempt numbers, starting at 1."""
        return range(1, max(self.max_attempts, 1) + 1)

    def delay(self, attempt: int) -> float:
        """Return a jittered delay to wait after failed ``attempt``."""
        ceiling = min(
            self.backoff_max_seconds, self.backoff_seconds * 2 ** (attempt - 1)
        )
        return random.uniform(0, ceiling)  # noqa: S311

    def pause(self, attempt: int) -> None:
        """Sleep before the next attempt unless ``attempt`` was the last."""
        if attempt < self.max_attempts:
            self.sleep(self.delay(attempt))


@contextmanager
def internal_errors(action: str, **context: object) -> Iterator[None]:
    """Let typed failures through and wrap anything else as InternalError."""
    try:
        yield
    except OrderingError:
        raise
    except Exception as exc:
        _logger.exception("%s failed: %s", action, context)
        raise InternalError(f"{action} failed") from exc
