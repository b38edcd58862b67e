from __future__ import annotations

import logging
import threading
import time
from collections import deque
from statistics import mean
from typing import Any, Deque, Dict, List, Optional, Tuple

# ---------------- Utilities ----------------

LabelKey = Tuple[Tuple[str, str], ...]  # sorted (k, v) pairs


def _labels_key(labels: Dict[str, Any] | None) -> LabelKey:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _pct(sorted_vals: List[float], q: float) -> float:
    if not sorted_vals:
        return 0.0
    idx = max(0, min(len(sorted_vals) - 1, int(round((len(sorted_vals) - 1) * q))))
    return sorted_vals[idx]


# ---------------- Metric types ----------------

class _Value:
    """Counter or gauge cell."""
    def __init__(self, name: str, labels: LabelKey):
        self.name = name
        self.labels = labels
        self._value = 0.0
        self._lock = threading.Lock()

    def add(self, n: float) -> None:
        with self._lock:
            self._value += n

    def set(self, v: float) -> None:
        with self._lock:
            self._value = float(v)

    def value(self) -> float:
        with self._lock:
            return self._value


class Histogram:
    def __init__(self, name: str, labels: LabelKey, maxlen: int = 2048):
        self.name = name
        self.labels = labels
        self._values: Deque[float] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def observe(self, v: float) -> None:
        with self._lock:
            self._values.append(float(v))

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            vals = sorted(self._values)
        if not vals:
            return {"count": 0.0, "min": 0.0, "max": 0.0, "mean": 0.0, "p50": 0.0, "p99": 0.0}
        return {
            "count": float(len(vals)),
            "min": vals[0],
            "max": vals[-1],
            "mean": mean(vals),
            "p50": _pct(vals, 0.50),
            "p99": _pct(vals, 0.99),
        }


# ---------------- Registry ----------------

class _MetricStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._counters: Dict[Tuple[str, LabelKey], _Value] = {}
        self._gauges: Dict[Tuple[str, LabelKey], _Value] = {}
        self._hists: Dict[Tuple[str, LabelKey], Histogram] = {}

    def _get(self, table: dict, factory, name: str, labels: Dict[str, Any] | None):
        key = (name, _labels_key(labels))
        with self._lock:
            m = table.get(key)
            if m is None:
                m = factory(name, key[1])
                table[key] = m
            return m

    def counter(self, name: str, labels: Dict[str, Any] | None) -> _Value:
        return self._get(self._counters, _Value, name, labels)

    def gauge(self, name: str, labels: Dict[str, Any] | None) -> _Value:
        return self._get(self._gauges, _Value, name, labels)

    def hist(self, name: str, labels: Dict[str, Any] | None) -> Histogram:
        return self._get(self._hists, Histogram, name, labels)

    def items(self):
        with self._lock:
            return list(self._counters.values()), list(self._gauges.values()), list(self._hists.values())

    def clear(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._hists.clear()


_STORE = _MetricStore()

# ---------------- Public API ----------------

def inc_counter(name: str, n: float = 1.0, **labels: Any) -> None:
    _STORE.counter(name, labels).add(n)


def set_gauge(name: str, v: float, **labels: Any) -> None:
    _STORE.gauge(name, labels).set(v)


def observe_hist(name: str, v: float, **labels: Any) -> None:
    _STORE.hist(name, labels).observe(v)


def counter_value(name: str, **labels: Any) -> float:
    return _STORE.counter(name, labels).value()


def gauge_value(name: str, **labels: Any) -> float:
    return _STORE.gauge(name, labels).value()


def reset() -> None:
    """Drop every metric (tests)."""
    _STORE.clear()


# ---------------- Exporter (log every N seconds) ----------------

class _Exporter(threading.Thread):
    def __init__(self, interval_sec: float = 5.0, json_mode: bool = False, logger: Optional[logging.Logger] = None):
        super().__init__(name="metrics-exporter", daemon=True)
        self.interval = float(interval_sec)
        self.json_mode = bool(json_mode)
        self.log = logger or logging.getLogger("objslots.metrics")
        self._stop_evt = threading.Event()

    def run(self) -> None:
        while not self._stop_evt.is_set():
            t0 = time.time()
            self.emit_snapshot()
            self._stop_evt.wait(max(0.5, self.interval - (time.time() - t0)))

    def stop(self, timeout: float = 1.0) -> None:
        self._stop_evt.set()
        self.join(timeout=timeout)

    def emit_snapshot(self) -> None:
        counters, gauges, hists = _STORE.items()
        if self.json_mode:
            for kind, ms in (("counter", counters), ("gauge", gauges)):
                for m in ms:
                    self.log.info({"type": kind, "name": m.name, "labels": dict(m.labels), "value": m.value()})
            for m in hists:
                self.log.info({"type": "hist", "name": m.name, "labels": dict(m.labels), **m.snapshot()})
            return
        for m in counters:
            self.log.info("[ctr] %s %s value=%.0f", m.name, dict(m.labels), m.value())
        for m in gauges:
            self.log.info("[gauge] %s %s value=%.3f", m.name, dict(m.labels), m.value())
        for m in hists:
            s = m.snapshot()
            self.log.info(
                "[hist] %s %s n=%d min=%.3f p50=%.3f p99=%.3f max=%.3f mean=%.3f",
                m.name, dict(m.labels), int(s["count"]), s["min"], s["p50"], s["p99"], s["max"], s["mean"],
            )


_EXPORTER: Optional[_Exporter] = None


def start_exporter(interval_sec: float = 5.0, json_mode: bool = False, logger: Optional[logging.Logger] = None) -> None:
    global _EXPORTER
    if _EXPORTER is not None:
        return
    _EXPORTER = _Exporter(interval_sec=interval_sec, json_mode=json_mode, logger=logger)
    _EXPORTER.start()


def stop_exporter(timeout: float = 1.0) -> None:
    global _EXPORTER
    if _EXPORTER is not None:
        _EXPORTER.stop(timeout=timeout)
        _EXPORTER = None


def force_emit(logger: Optional[logging.Logger] = None, json_mode: bool = False) -> None:
    """Log a snapshot right now, without waiting for the exporter."""
    _Exporter(interval_sec=0, json_mode=json_mode, logger=logger).emit_snapshot()


# ---------------- Timer Helper ----------------

class Timer:
    """Context manager reporting elapsed milliseconds into a histogram."""
    def __init__(self, hist_name: str, **labels: Any) -> None:
        self.hist_name = hist_name
        self.labels = labels
        self._t0 = 0.0

    def __enter__(self):
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        observe_hist(self.hist_name, (time.perf_counter() - self._t0) * 1000.0, **self.labels)
        return False


def snapshot_all() -> dict:
    counters, gauges, hists = _STORE.items()
    return {
        "counters": [{"name": m.name, "labels": dict(m.labels), "value": m.value()} for m in counters],
        "gauges": [{"name": m.name, "labels": dict(m.labels), "value": m.value()} for m in gauges],
        "hists": [{"name": m.name, "labels": dict(m.labels), **m.snapshot()} for m in hists],
    }
