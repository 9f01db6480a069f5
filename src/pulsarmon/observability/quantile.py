"""Rolling quantile summaries with bounded memory.

``prometheus_client.Summary`` only exports ``_count`` and ``_sum``. Latency
metrics here also need recent-history quantiles, so this module provides:

- ``QuantileStream``: CKMS biased-quantile estimator for a set of targeted
  ranks. Each target ``q`` carries an allowed rank error ``epsilon``, and the
  stream keeps only as many compressed samples as those bounds need.
  Observations are buffered (``buffer_cap``) and merged in sorted batches.
- ``RollingSummary``: a custom Prometheus collector. Per label value it keeps
  ``age_buckets`` streams, feeds every observation into all of them and
  resets/rotates the oldest one every ``max_age / age_buckets`` seconds.
  Quantiles come from the current head stream, so they cover roughly the last
  ``max_age`` seconds. ``_count`` and ``_sum`` are all-time.
"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable, Iterator

from prometheus_client.metrics_core import Metric

# p50 within 5%, p90 within 1%, p99 within 0.1%
DEFAULT_OBJECTIVES: dict[float, float] = {0.5: 0.05, 0.9: 0.01, 0.99: 0.001}
DEFAULT_MAX_AGE_SECONDS = 30 * 60.0
DEFAULT_AGE_BUCKETS = 3
DEFAULT_BUFFER_CAP = 500


class _Sample:
    __slots__ = ("value", "width", "delta")

    def __init__(self, value: float, width: float, delta: float) -> None:
        self.value = value
        self.width = width
        self.delta = delta


class QuantileStream:
    """Targeted-quantile CKMS stream."""

    def __init__(
        self,
        objectives: dict[float, float] | None = None,
        buffer_cap: int = DEFAULT_BUFFER_CAP,
    ) -> None:
        """Initialize stream.

        Args:
            objectives: Map of quantile (0-1, exclusive) to allowed rank error
            buffer_cap: Observations buffered before a merge
        """
        objectives = DEFAULT_OBJECTIVES if objectives is None else objectives
        for q, eps in objectives.items():
            if not 0.0 < q < 1.0:
                raise ValueError(f"quantile {q} must be in (0, 1)")
            if not 0.0 <= eps < 1.0:
                raise ValueError(f"epsilon {eps} for quantile {q} must be in [0, 1)")
        if buffer_cap < 1:
            raise ValueError("buffer_cap must be positive")

        self._targets = sorted(objectives.items())
        self._buffer_cap = buffer_cap
        self._buffer: list[float] = []
        self._samples: list[_Sample] = []
        self._n = 0.0

    @property
    def count(self) -> int:
        """Number of observations since the last reset."""
        return int(self._n) + len(self._buffer)

    def _invariant(self, r: float) -> float:
        """Maximum allowed width+delta for a sample at rank ``r``."""
        m = math.inf
        for q, eps in self._targets:
            if q * self._n <= r:
                f = (2 * eps * r) / q
            else:
                f = (2 * eps * (self._n - r)) / (1 - q)
            if f < m:
                m = f
        return m

    def insert(self, value: float) -> None:
        self._buffer.append(value)
        if len(self._buffer) >= self._buffer_cap:
            self._flush()

    def _flush(self) -> None:
        self._buffer.sort()
        self._merge(self._buffer)
        self._buffer = []

    def _merge(self, values: list[float]) -> None:
        # values must be sorted; one pass inserts them all
        r = 0.0
        i = 0
        for value in values:
            while i < len(self._samples):
                c = self._samples[i]
                if c.value > value:
                    delta = max(0.0, math.floor(self._invariant(r)) - 1)
                    self._samples.insert(i, _Sample(value, 1.0, delta))
                    i += 1
                    break
                r += c.width
                i += 1
            else:
                self._samples.append(_Sample(value, 1.0, 0.0))
                i += 1
            self._n += 1
            r += 1
        self._compress()

    def _compress(self) -> None:
        if len(self._samples) < 2:
            return
        x = self._samples[-1]
        r = self._n - 1 - x.width
        for i in range(len(self._samples) - 2, -1, -1):
            c = self._samples[i]
            if c.width + x.width + x.delta <= self._invariant(r):
                x.width += c.width
                del self._samples[i]
            else:
                x = c
            r -= c.width

    def query(self, q: float) -> float:
        """Estimate the value at quantile ``q``; NaN when empty."""
        if not self._samples:
            # Nothing merged yet: answer exactly from the buffer
            if not self._buffer:
                return math.nan
            self._buffer.sort()
            i = math.ceil(len(self._buffer) * q)
            if i > 0:
                i -= 1
            return self._buffer[i]

        if self._buffer:
            self._flush()

        t = math.ceil(q * self._n)
        t += math.ceil(self._invariant(t) / 2)
        p = self._samples[0]
        r = 0.0
        for c in self._samples[1:]:
            r += p.width
            if r + c.width + c.delta > t:
                return p.value
            p = c
        return p.value

    def reset(self) -> None:
        self._buffer = []
        self._samples = []
        self._n = 0.0


class _LabelSummary:
    """Age-bucketed streams for one label value."""

    def __init__(
        self,
        objectives: dict[float, float],
        max_age: float,
        age_buckets: int,
        buffer_cap: int,
        now: float,
    ) -> None:
        self.streams = [QuantileStream(objectives, buffer_cap) for _ in range(age_buckets)]
        self.stream_duration = max_age / age_buckets
        self.head_idx = 0
        self.head_expires = now + self.stream_duration
        self.count = 0
        self.total = 0.0

    def rotate(self, now: float) -> None:
        while now >= self.head_expires:
            self.streams[self.head_idx].reset()
            self.head_idx = (self.head_idx + 1) % len(self.streams)
            self.head_expires += self.stream_duration

    def observe(self, value: float, now: float) -> None:
        self.rotate(now)
        for stream in self.streams:
            stream.insert(value)
        self.count += 1
        self.total += value

    def quantile(self, q: float, now: float) -> float:
        self.rotate(now)
        return self.streams[self.head_idx].query(q)


class RollingSummary:
    """Prometheus summary collector exporting rolling-window quantiles.

    Register it once with a ``CollectorRegistry``; registering a second
    collector with the same name raises ``ValueError``.
    """

    def __init__(
        self,
        name: str,
        documentation: str,
        labelname: str = "device",
        objectives: dict[float, float] | None = None,
        max_age: float = DEFAULT_MAX_AGE_SECONDS,
        age_buckets: int = DEFAULT_AGE_BUCKETS,
        buffer_cap: int = DEFAULT_BUFFER_CAP,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize summary.

        Args:
            name: Full metric name (namespace_subsystem_name)
            documentation: Help text
            labelname: The single label dimension
            objectives: Quantile -> allowed rank error
            max_age: Rolling horizon in seconds
            age_buckets: Number of sub-windows the horizon is split into
            buffer_cap: Per-stream insert buffer size
            clock: Monotonic time source in seconds
        """
        if max_age <= 0:
            raise ValueError("max_age must be positive")
        if age_buckets < 1:
            raise ValueError("age_buckets must be at least 1")

        self.name = name
        self.documentation = documentation
        self.labelname = labelname
        self.objectives = dict(DEFAULT_OBJECTIVES if objectives is None else objectives)
        self.max_age = max_age
        self.age_buckets = age_buckets
        self.buffer_cap = buffer_cap
        self._clock = clock
        self._lock = threading.Lock()
        self._children: dict[str, _LabelSummary] = {}

        # Fail fast on bad objectives rather than on first observation
        QuantileStream(self.objectives, buffer_cap)

    def observe(self, label_value: str, value: float) -> None:
        """Record one observation under ``label_value``."""
        with self._lock:
            now = self._clock()
            child = self._children.get(label_value)
            if child is None:
                child = _LabelSummary(
                    self.objectives, self.max_age, self.age_buckets, self.buffer_cap, now
                )
                self._children[label_value] = child
            child.observe(value, now)

    def quantile(self, label_value: str, q: float) -> float:
        """Current estimate for quantile ``q``; NaN when nothing was observed."""
        with self._lock:
            child = self._children.get(label_value)
            if child is None:
                return math.nan
            return child.quantile(q, self._clock())

    def count(self, label_value: str) -> int:
        with self._lock:
            child = self._children.get(label_value)
            return child.count if child else 0

    def describe(self) -> Iterator[Metric]:
        yield Metric(self.name, self.documentation, "summary")

    def collect(self) -> Iterator[Metric]:
        metric = Metric(self.name, self.documentation, "summary")
        with self._lock:
            now = self._clock()
            for label_value, child in self._children.items():
                for q in sorted(self.objectives):
                    metric.add_sample(
                        self.name,
                        {self.labelname: label_value, "quantile": str(q)},
                        child.quantile(q, now),
                    )
                metric.add_sample(f"{self.name}_count", {self.labelname: label_value}, child.count)
                metric.add_sample(f"{self.name}_sum", {self.labelname: label_value}, child.total)
        yield metric
