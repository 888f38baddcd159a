"""Timing of engine operations, reported by the health endpoint."""

import time
from collections import defaultdict, deque
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

logger = structlog.get_logger()

_MAX_SAMPLES_PER_OPERATION = 1000


class OperationMetrics:
    """Keep the most recent durations (ms) per operation name."""

    def __init__(self, max_samples: int = _MAX_SAMPLES_PER_OPERATION) -> None:
        self._samples: dict[str, deque[float]] = defaultdict(lambda: deque(maxlen=max_samples))

    def record(self, operation: str, duration_ms: float) -> None:
        self._samples[operation].append(duration_ms)

    @contextmanager
    def track(self, operation: str) -> Iterator[None]:
        """Time the wrapped block; failures are timed and logged, then re-raised."""
        start = time.perf_counter()
        try:
            yield
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.warning("operation failed", operation=operation, duration_ms=round(duration_ms, 2))
            raise
        duration_ms = (time.perf_counter() - start) * 1000
        self.record(operation, duration_ms)
        logger.debug("operation completed", operation=operation, duration_ms=round(duration_ms, 2))

    def summary(self) -> dict[str, dict[str, float]]:
        result: dict[str, dict[str, float]] = {}
        for operation, samples in self._samples.items():
            if not samples:
                continue
            result[operation] = {
                "avg": sum(samples) / len(samples),
                "min": min(samples),
                "max": max(samples),
                "count": len(samples),
            }
        return result
