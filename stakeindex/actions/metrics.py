"""In-process counters and histograms of executed actions."""

from __future__ import annotations

import bisect
import math
import threading
import time
from typing import Iterable, Sequence

STATUS_OK = "200"
STATUS_INTERNAL_SERVER_ERROR = "500"


class _LabelledMetric:
    def __init__(self, name: str, documentation: str, label_names: Sequence[str]) -> None:
        self.name = name
        self.documentation = documentation
        self.label_names = tuple(label_names)
        self._lock = threading.Lock()

    def _key(self, labels: Sequence[str]) -> tuple[str, ...]:
        if len(labels) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values, got {len(labels)}"
            )
        for label in labels:
            if not isinstance(label, str):
                raise TypeError(f"{self.name}: label values must be strings")
        return tuple(labels)


class CounterVec(_LabelledMetric):
    """A counter split by label values."""

    def __init__(self, name: str, documentation: str, label_names: Sequence[str]) -> None:
        super().__init__(name, documentation, label_names)
        self._values: dict[tuple[str, ...], float] = {}

    def inc(self, *args: str) -> None:
        """Add one to the counter with the given label values."""
        key = self._key(args)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + 1

    def value(self, *args: str) -> float:
        """The current count for the given label values."""
        key = self._key(args)
        with self._lock:
            return self._values.get(key, 0.0)


class HistogramVec(_LabelledMetric):
    """A histogram split by label values."""

    def __init__(
        self, name: str, documentation: str, buckets: Iterable[float], label_names: Sequence[str]
    ) -> None:
        super().__init__(name, documentation, label_names)
        bounds = [float(bound) for bound in buckets]
        if bounds and math.isinf(bounds[-1]) and bounds[-1] > 0:
            bounds.pop()
        if any(lower >= upper for lower, upper in zip(bounds, bounds[1:])):
            raise ValueError(f"{self.name}: buckets must be in increasing order")
        self.buckets = tuple(bounds)
        self._counts: dict[tuple[str, ...], list[int]] = {}
        self._sums: dict[tuple[str, ...], float] = {}

    def observe(self, value: float, *args: str) -> None:
        """Record one observation for the given label values."""
        key = self._key(args)
        index = bisect.bisect_left(self.buckets, value)
        with self._lock:
            counts = self._counts.setdefault(key, [0] * (len(self.buckets) + 1))
            counts[index] += 1
            self._sums[key] = self._sums.get(key, 0.0) + value

    def bucket_counts(self, *args: str) -> list[tuple[float, int]]:
        """Cumulative counts per upper bound, ending with the infinite bucket."""
        key = self._key(args)
        with self._lock:
            counts = list(self._counts.get(key, [0] * (len(self.buckets) + 1)))
        result = []
        total = 0
        for bound, count in zip((*self.buckets, math.inf), counts):
            total += count
            result.append((bound, total))
        return result


ACTION_RESPONSE_TIME = HistogramVec(
    "stakeindex_action_response_time",
    "Time it has taken to execute an action",
    [0.5, 1, 2, 3, 4, 5],
    ["path"],
)

ACTION_COUNTER = CounterVec(
    "stakeindex_actions_total_count",
    "Total number of actions executed.",
    ["path", "http_status_code"],
)

ACTION_ERROR_COUNTER = CounterVec(
    "stakeindex_actions_error_count",
    "Total number of errors emitted.",
    ["path", "http_status_code"],
)


def success_counter(path: str) -> None:
    """Count a successful action on the given path."""
    ACTION_COUNTER.inc(path, STATUS_OK)


def error_counter(path: str) -> None:
    """Count a failed action on the given path."""
    ACTION_ERROR_COUNTER.inc(path, STATUS_INTERNAL_SERVER_ERROR)


def response_time_buckets(path: str, start: float) -> None:
    """Record the time since ``start``, a ``time.monotonic()`` reading."""
    ACTION_RESPONSE_TIME.observe(time.monotonic() - start, path)