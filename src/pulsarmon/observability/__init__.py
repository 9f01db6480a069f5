"""Observability module -- metric registry, rolling summaries and HTTP endpoints."""

from .metric_catalog import MetricOpts, gauge_opts_for_kind
from .metric_registry import MetricRegistry
from .quantile import QuantileStream, RollingSummary

__all__ = [
    "MetricOpts",
    "MetricRegistry",
    "QuantileStream",
    "RollingSummary",
    "gauge_opts_for_kind",
]
