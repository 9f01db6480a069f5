"""Lazily-populated cache of Prometheus metric handles.

Callers describe a metric by ``MetricOpts`` and never hold the handle
themselves. The first use of an identity creates and registers the handle;
every later use reuses it. A single lock is held across check-and-insert so
concurrent first uses of the same identity register it exactly once.
"""

from __future__ import annotations

import threading
from datetime import timedelta

from prometheus_client import REGISTRY, CollectorRegistry, Gauge

from pulsarmon.core.errors import MetricRegistrationError
from pulsarmon.logging import get_logger
from pulsarmon.observability.metric_catalog import MetricOpts, metric_key
from pulsarmon.observability.quantile import (
    DEFAULT_AGE_BUCKETS,
    DEFAULT_BUFFER_CAP,
    DEFAULT_MAX_AGE_SECONDS,
    DEFAULT_OBJECTIVES,
    RollingSummary,
)

logger = get_logger(__name__)

# Every handle carries one label: the cluster or device being reported on
LABEL_NAME = "device"


def _to_milliseconds(latency: timedelta | float) -> float:
    """Whole milliseconds, truncated; floats are seconds."""
    if isinstance(latency, timedelta):
        return float(latency // timedelta(milliseconds=1))
    micros = round(float(latency) * 1_000_000)
    return float(int(micros / 1000))


class MetricRegistry:
    """Owns the gauge and summary handles for one collector registry."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize registry.

        Args:
            registry: Collector registry handles are registered with
                (defaults to the prometheus_client global registry)
        """
        self._registry = REGISTRY if registry is None else registry
        self._lock = threading.Lock()
        self._gauges: dict[str, Gauge] = {}
        self._summaries: dict[str, RollingSummary] = {}

    @property
    def collector_registry(self) -> CollectorRegistry:
        return self._registry

    def gauge(self, opts: MetricOpts) -> Gauge | None:
        with self._lock:
            return self._gauges.get(metric_key(opts))

    def summary(self, opts: MetricOpts) -> RollingSummary | None:
        with self._lock:
            return self._summaries.get(metric_key(opts))

    def _get_or_create_gauge(self, opts: MetricOpts) -> Gauge:
        key = metric_key(opts)
        with self._lock:
            gauge = self._gauges.get(key)
            if gauge is not None:
                return gauge
            gauge = Gauge(
                opts.name,
                opts.help or opts.name,
                labelnames=[LABEL_NAME],
                namespace=opts.namespace,
                subsystem=opts.subsystem,
                registry=None,
            )
            try:
                self._registry.register(gauge)
            except ValueError as e:
                # The handle stays usable and cached; it is just not exported
                logger.error("Failed to register gauge %s: %s", opts.full_name, e)
            else:
                logger.debug("Registered gauge %s", opts.full_name)
            self._gauges[key] = gauge
            return gauge

    def _get_or_create_summary(self, opts: MetricOpts) -> RollingSummary:
        key = metric_key(opts)
        with self._lock:
            summary = self._summaries.get(key)
            if summary is not None:
                return summary
            try:
                summary = RollingSummary(
                    f"{opts.full_name}_hst",
                    opts.help or opts.name,
                    labelname=LABEL_NAME,
                    objectives=DEFAULT_OBJECTIVES,
                    max_age=DEFAULT_MAX_AGE_SECONDS,
                    age_buckets=DEFAULT_AGE_BUCKETS,
                    buffer_cap=DEFAULT_BUFFER_CAP,
                )
                self._registry.register(summary)
            except ValueError as e:
                # Duplicate or invalid summaries are unrecoverable
                raise MetricRegistrationError(f"cannot register summary {key}: {e}") from e
            self._summaries[key] = summary
            logger.debug("Registered summary %s", summary.name)
            return summary

    def record_gauge(self, opts: MetricOpts, label_value: str, value: float) -> None:
        """Set the gauge for ``opts`` under ``label_value``."""
        self._get_or_create_gauge(opts).labels(label_value).set(value)

    def record_gauge_int(self, opts: MetricOpts, label_value: str, num: int) -> None:
        self.record_gauge(opts, label_value, float(num))

    def record_latency(
        self, opts: MetricOpts, label_value: str, latency: timedelta | float
    ) -> None:
        """Set the latency gauge in ms and feed the rolling summary.

        Args:
            opts: Latency metric identity
            label_value: Cluster/device label
            latency: ``timedelta`` or seconds
        """
        ms = _to_milliseconds(latency)
        self._get_or_create_gauge(opts).labels(label_value).set(ms)
        self._get_or_create_summary(opts).observe(label_value, ms)
