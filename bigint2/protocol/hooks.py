"""Optional observability hooks for the verification pipeline.

The pipeline never measures time itself; it wraps each stage in
hooks.span(stage, operation) and reports the final result to
hooks.on_report(report). The default PipelineHooks does nothing.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, List

logger = logging.getLogger(__name__)


class PipelineHooks:
    """No-op hooks; subclass and override what you need."""

    @contextmanager
    def span(self, stage: str, operation: str) -> Iterator[None]:
        yield

    def on_report(self, report) -> None:
        pass


class TimingHooks(PipelineHooks):
    """Record wall-clock durations per (operation, stage).

    Thread-safe, so one instance can be shared across a verify_many() batch.
    """

    def __init__(self) -> None:
        self.timings: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    @contextmanager
    def span(self, stage: str, operation: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            with self._lock:
                self.timings.setdefault(f"{operation}.{stage}", []).append(elapsed)

    def total(self, operation: str) -> float:
        """Summed seconds over all stages recorded for `operation`."""
        prefix = f"{operation}."
        with self._lock:
            return sum(sum(v) for k, v in self.timings.items() if k.startswith(prefix))

    def last_run(self, operation: str) -> float:
        """Seconds spent in the most recent sample of each stage of `operation`."""
        prefix = f"{operation}."
        with self._lock:
            return sum(v[-1] for k, v in self.timings.items() if k.startswith(prefix))

    def summary(self) -> str:
        lines = []
        with self._lock:
            for name, samples in sorted(self.timings.items()):
                lines.append(
                    f"{name:<28} calls={len(samples):<4} total={sum(samples) * 1000:9.2f} ms"
                )
        return "\n".join(lines)


class LoggingHooks(TimingHooks):
    """Log runtime and user cycles for every validated operation."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__()
        self.level = level

    def on_report(self, report) -> None:
        logger.log(self.level, "%s runtime: %.0f ms", report.operation, self.last_run(report.operation) * 1000)
        if report.stats is not None:
            logger.log(self.level, "%s user cycles: %d", report.operation, report.stats.user_cycles)
