"""Per-operation telemetry for remote collaborator calls."""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from time import perf_counter
from typing import Dict, Iterator, Optional


@dataclass
class CallStats:
    attempts: int = 0
    successes: int = 0
    failures: int = 0
    total_latency_ms: float = 0.0
    last_error: Optional[str] = None

    def record(self, success: bool, latency_ms: float, error: Optional[str] = None) -> None:
        self.attempts += 1
        self.total_latency_ms += latency_ms
        if success:
            self.successes += 1
        else:
            self.failures += 1
            self.last_error = error

    @property
    def avg_latency_ms(self) -> float:
        return self.total_latency_ms / self.attempts if self.attempts else 0.0


class CallMetrics:
    """Tracks attempts/success/failure/latency per remote operation."""

    def __init__(self) -> None:
        self._stats: Dict[str, CallStats] = {}
        self._lock = threading.Lock()

    def _get(self, operation: str) -> CallStats:
        if operation not in self._stats:
            self._stats[operation] = CallStats()
        return self._stats[operation]

    def record(self, operation: str, success: bool, started_at: float, error: Optional[str] = None) -> None:
        latency_ms = (perf_counter() - started_at) * 1000.0
        with self._lock:
            self._get(operation).record(success=success, latency_ms=latency_ms, error=error)

    @contextmanager
    def track(self, operation: str) -> Iterator[None]:
        """Time the wrapped block; an exception counts as a failure and is re-raised."""
        started_at = perf_counter()
        try:
            yield
        except Exception as e:
            self.record(operation, False, started_at, error=str(e))
            raise
        self.record(operation, True, started_at)

    def summary(self) -> Dict[str, Dict[str, float]]:
        payload: Dict[str, Dict[str, float]] = {}
        with self._lock:
            for operation, st in self._stats.items():
                payload[operation] = {
                    "attempts": st.attempts,
                    "successes": st.successes,
                    "failures": st.failures,
                    "avg_latency_ms": round(st.avg_latency_ms, 2),
                    "success_rate": round((st.successes / st.attempts) * 100.0, 2) if st.attempts else 0.0,
                }
        return payload
