from __future__ import annotations

import time

from core.errors import DeadlineExceeded


class Deadline:
    """
    Wall-clock budget for the long grid loops (visibility sweep, seed pairs).
    seconds=None means unbounded.
    """

    def __init__(self, seconds: float | None = None) -> None:
        self.seconds = None if seconds is None else float(seconds)
        self._t0 = time.monotonic()

    @property
    def elapsed(self) -> float:
        return float(time.monotonic() - self._t0)

    def expired(self) -> bool:
        return self.seconds is not None and self.elapsed > self.seconds

    def check(self, stage: str) -> None:
        if self.seconds is not None and self.elapsed > self.seconds:
            raise DeadlineExceeded(stage, self.seconds)


UNBOUNDED = Deadline(None)
