"""Bounded-concurrency runner with a failure-triggered circuit breaker."""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional, Sequence, TypeVar

from . import config

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitOpenError(RuntimeError):
    pass


@dataclass
class CircuitState:
    threshold: int
    cool_down_seconds: float
    consecutive_failure_count: int = 0
    last_failure_at: Optional[float] = None

    def is_open(self, now: float) -> bool:
        if self.consecutive_failure_count < self.threshold or self.last_failure_at is None:
            return False
        return now - self.last_failure_at < self.cool_down_seconds


@dataclass(frozen=True)
class FetcherMetrics:
    avg_latency_ms: float
    total_samples: int
    failure_count: int
    circuit_open: bool


class RateLimitedFetcher:
    def __init__(
        self,
        failure_threshold: int = config.CIRCUIT_FAILURE_THRESHOLD,
        cool_down_seconds: float = config.CIRCUIT_COOLDOWN_SECONDS,
        max_latency_samples: int = config.MAX_LATENCY_SAMPLES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_latency_samples <= 0:
            raise ValueError("max_latency_samples must be > 0")
        self.clock = clock
        self.circuit = CircuitState(threshold=int(failure_threshold), cool_down_seconds=float(cool_down_seconds))
        self._latencies: Deque[float] = deque(maxlen=int(max_latency_samples))
        self._lock = threading.Lock()

    def run_all(self, tasks: Sequence[Callable[[], T]], concurrency: int = config.DETAIL_CONCURRENCY) -> List[Optional[T]]:
        """Run ``tasks`` with at most ``concurrency`` in flight.

        Results are index-aligned with ``tasks``; a task that raises leaves
        ``None`` in its slot and does not stop the others.
        """
        if concurrency <= 0:
            raise ValueError("concurrency must be > 0")
        results: List[Optional[T]] = [None] * len(tasks)
        if not tasks:
            return results

        cursor = [0]
        cursor_lock = threading.Lock()

        def worker() -> None:
            while True:
                with cursor_lock:
                    index = cursor[0]
                    if index >= len(tasks):
                        return
                    cursor[0] += 1
                try:
                    results[index] = tasks[index]()
                except Exception:
                    logger.warning("Task %s failed", index, exc_info=True)
                    results[index] = None

        workers = min(concurrency, len(tasks))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(worker) for _ in range(workers)]
            for future in futures:
                future.result()
        return results

    def should_skip(self) -> bool:
        with self._lock:
            return self.circuit.is_open(self.clock())

    def record_success(self, duration_ms: float) -> None:
        with self._lock:
            self._latencies.append(float(duration_ms))

    def record_failure(self) -> None:
        with self._lock:
            was_open = self.circuit.is_open(self.clock())
            self.circuit.consecutive_failure_count += 1
            self.circuit.last_failure_at = self.clock()
            tripped = not was_open and self.circuit.is_open(self.clock())
            count = self.circuit.consecutive_failure_count
        if tripped:
            logger.warning("Circuit opened after %s failures", count)

    def call(self, fn: Callable[[], T]) -> T:
        """Run ``fn`` under the breaker, timing successes and counting failures."""
        if self.should_skip():
            raise CircuitOpenError("Circuit open: upstream detail calls suspended")
        started = time.perf_counter()
        try:
            result = fn()
        except Exception:
            self.record_failure()
            raise
        self.record_success((time.perf_counter() - started) * 1000.0)
        return result

    def metrics(self) -> FetcherMetrics:
        with self._lock:
            samples = list(self._latencies)
            failure_count = self.circuit.consecutive_failure_count
            circuit_open = self.circuit.is_open(self.clock())
        avg = sum(samples) / len(samples) if samples else 0.0
        return FetcherMetrics(
            avg_latency_ms=avg,
            total_samples=len(samples),
            failure_count=failure_count,
            circuit_open=circuit_open,
        )

    def reset(self) -> None:
        """Test hook: forget failures and latency samples."""
        with self._lock:
            self.circuit.consecutive_failure_count = 0
            self.circuit.last_failure_at = None
            self._latencies.clear()
