"""Bounded retry with linear backoff for any fallible call."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from flatsketch.config import VISION_MAX_RETRIES, VISION_RETRY_DELAY_S
from flatsketch.errors import FlatSketchError

log = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(attempt_index: int) -> float:
    """Seconds to wait after the *attempt_index*-th failure (1-based)."""
    return attempt_index * VISION_RETRY_DELAY_S


def is_transient(err: BaseException) -> bool:
    return isinstance(err, FlatSketchError) and err.retryable


@dataclass
class RetryPolicy:
    """Run an operation up to ``max_attempts`` times.

    Only errors accepted by ``retryable`` are retried; anything else is
    raised from the attempt that produced it.  After the last attempt
    the last error is raised unchanged.
    """

    max_attempts: int = VISION_MAX_RETRIES + 1
    backoff: Callable[[int], float] = linear_backoff
    retryable: Callable[[BaseException], bool] = is_transient
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def run(self, operation: Callable[[], T], *, label: str = "operation") -> T:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return operation()
            except Exception as e:
                if not self.retryable(e) or attempt == self.max_attempts:
                    raise
                delay = self.backoff(attempt)
                log.warning("%s failed (attempt %d/%d): %s; retrying in %.1fs",
                            label, attempt, self.max_attempts, e, delay)
                self.sleep(delay)
        raise RuntimeError("Max retries exceeded")
