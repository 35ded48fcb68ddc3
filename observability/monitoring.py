"""Wall-clock timing of pipeline stages."""
from __future__ import annotations

import logging
import time
from collections import defaultdict
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Iterator

logger = logging.getLogger(__name__)


class StageMonitor:
    def __init__(self) -> None:
        self._durations: dict[str, list[float]] = defaultdict(list)
        self._failures: dict[str, int] = defaultdict(int)

    def record(self, stage: str, seconds: float) -> None:
        self._durations[stage].append(float(seconds))
        logger.debug("Stage %s took %.2fms", stage, seconds * 1000)

    def record_failure(self, stage: str) -> None:
        self._failures[stage] += 1

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        t0 = time.perf_counter()
        try:
            yield
        except Exception:
            self.record_failure(name)
            raise
        finally:
            self.record(name, time.perf_counter() - t0)

    def summary(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for stage, times in self._durations.items():
            out[stage] = {
                "count": len(times),
                "total_ms": round(sum(times) * 1000, 2),
                "max_ms": round(max(times) * 1000, 2),
                "failures": int(self._failures.get(stage, 0)),
            }
        return out

    def reset(self) -> None:
        self._durations.clear()
        self._failures.clear()


stage_monitor = StageMonitor()


def monitor_stage(name: str):
    """Decorator form of StageMonitor.stage on the shared monitor."""

    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                with stage_monitor.stage(name):
                    return func(*args, **kwargs)
            except Exception as exc:
                logger.error("Error in %s: %s", name, str(exc))
                raise

        return wrapper

    return decorator
