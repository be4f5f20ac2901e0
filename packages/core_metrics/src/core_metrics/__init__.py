"""
core_metrics – tiny helpers so services can record counters / histograms
without declaring Prometheus collectors up front.  Collectors are created
lazily on first use, keyed by name, and labelled by the keyword attributes
passed at the call-site (label names are fixed by the first call).
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Tuple
import time as _time

from prometheus_client import REGISTRY, Counter, Histogram

_COUNTERS: Dict[str, Tuple[Counter, Tuple[str, ...]]] = {}
_HISTOS: Dict[str, Tuple[Histogram, Tuple[str, ...]]] = {}
_LOCK = threading.Lock()

# Millisecond buckets suited to outbound HTTP latencies
_MS_BUCKETS = (5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000, 60000)


def _existing(name: str):
    # Re-imports in tests must not register the same family twice
    return REGISTRY._names_to_collectors.get(name)  # type: ignore[attr-defined]


def _labelled(metric, label_names: Tuple[str, ...], attrs: Dict[str, Any]):
    if not label_names:
        return metric
    return metric.labels(**{k: str(attrs.get(k, "")) for k in label_names})


def counter(name: str, inc: int | float = 1, **attrs: Any) -> None:
    """Increment *name* by *inc* (default 1)."""
    with _LOCK:
        entry = _COUNTERS.get(name)
        if entry is None:
            labels = tuple(sorted(attrs))
            c = _existing(name) or Counter(name, f"Counter for {name}", labels)
            entry = _COUNTERS[name] = (c, labels)
    metric, labels = entry
    try:
        _labelled(metric, labels, attrs).inc(inc)
    except ValueError:
        # Metrics must never break the request path
        pass


def histogram(name: str, value: float, **attrs: Any) -> None:
    """Record *value* in histogram *name*."""
    with _LOCK:
        entry = _HISTOS.get(name)
        if entry is None:
            labels = tuple(sorted(attrs))
            kwargs: Dict[str, Any] = {"buckets": _MS_BUCKETS} if name.endswith("_ms") else {}
            h = _existing(name) or Histogram(name, f"Histogram for {name}", labels, **kwargs)
            entry = _HISTOS[name] = (h, labels)
    metric, labels = entry
    try:
        _labelled(metric, labels, attrs).observe(value)
    except ValueError:
        pass


def record_latency_ms(name: str, t0: float, **attrs: Any) -> float:
    """Record elapsed time since *t0* (``time.perf_counter``) in histogram *name*; returns ms."""
    dt_ms = (_time.perf_counter() - t0) * 1000.0
    histogram(name, dt_ms, **attrs)
    return dt_ms


__all__ = ["counter", "histogram", "record_latency_ms"]
