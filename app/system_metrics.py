import threading
import time
from typing import Any

COUNTERS = (
    "sessions_started",
    "sessions_completed",
    "sessions_active",
    "question_fallbacks",
    "analysis_fallbacks",
    "persistence_failures",
    "rate_limited_requests",
)

_lock = threading.Lock()
_values: dict[str, float] = dict.fromkeys(COUNTERS, 0.0)


def increment_metric(name: str, amount: float = 1.0) -> None:
    if not name:
        return
    with _lock:
        _values[name] = _values.get(name, 0.0) + float(amount)


def set_metric(name: str, value: float) -> None:
    """Gauges such as ``sessions_active`` are overwritten, never negative."""
    if not name:
        return
    with _lock:
        _values[name] = max(0.0, float(value))


def get_metrics_snapshot() -> dict[str, Any]:
    with _lock:
        counters = {name: int(value) for name, value in _values.items()}
    return {"generated_at": time.time(), **counters}
