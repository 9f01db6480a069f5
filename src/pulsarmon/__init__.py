"""pulsarmon: Kubernetes health monitor for Apache Pulsar clusters."""

__all__ = ["ClusterMonitor", "MetricRegistry", "PulsarMonSettings", "__version__"]
__version__ = "0.1.0"


def __getattr__(name: str):
    if name == "ClusterMonitor":
        from .core.cluster_monitor import ClusterMonitor

        return ClusterMonitor
    if name == "MetricRegistry":
        from .observability.metric_registry import MetricRegistry

        return MetricRegistry
    if name == "PulsarMonSettings":
        from .config import PulsarMonSettings

        return PulsarMonSettings
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
