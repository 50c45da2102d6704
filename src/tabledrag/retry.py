"""Bounded retry with exponential backoff on top of a :class:`Scheduler`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from tabledrag.scheduler import Scheduler, Slot


@dataclass(frozen=True)
class BackoffPolicy:
    max_attempts: int = 5
    base_delay_ms: int = 10
    max_delay_ms: int = 100

    def delay_ms(self, retry: int) -> int:
        """Delay before the *retry*-th retry (1-based): 10, 20, 40, 80, 100."""
        return min(self.base_delay_ms * (2 ** (retry - 1)), self.max_delay_ms)


class RetryTask:
    """Runs *attempt* until it reports success or the policy is exhausted.

    *attempt* returns ``True`` on success.  A failed run re-arms the task
    after the policy delay; success or exhaustion disarms it and resets the
    counter so the next :meth:`run` starts a fresh episode.
    """

    def __init__(
        self,
        attempt: Callable[[], bool],
        scheduler: Scheduler,
        policy: BackoffPolicy | None = None,
        on_exhausted: Callable[[], None] | None = None,
    ) -> None:
        self._attempt = attempt
        self._scheduler = scheduler
        self._policy = policy or BackoffPolicy()
        self._on_exhausted = on_exhausted
        self._slot = Slot()
        self.retries = 0

    @property
    def armed(self) -> bool:
        return self._slot.pending

    def run(self) -> bool:
        """Attempt now; on failure arm a retry unless attempts are used up."""
        self._slot.cancel()
        if self._attempt():
            self.retries = 0
            return True
        if self.retries >= self._policy.max_attempts:
            self.retries = 0
            if self._on_exhausted is not None:
                self._on_exhausted()
            return False
        self.retries += 1
        delay = self._policy.delay_ms(self.retries)
        self._slot.arm(lambda fire: self._scheduler.call_later(delay, fire), self.run)
        return False

    def cancel(self) -> None:
        self._slot.cancel()
        self.retries = 0
