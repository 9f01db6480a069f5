"""Metric identities published by pulsarmon.

Names follow the Prometheus naming conventions:
https://prometheus.io/docs/practices/naming/
"""

from __future__ import annotations

from dataclasses import dataclass

FUNC_TOPIC_SUBSYSTEM = "func_topic"
PUBSUB_SUBSYSTEM = "pubsub"
WEBSOCKET_SUBSYSTEM = "websocket"

# Kubernetes tiers watched by the cluster monitor
K8S_ZOOKEEPER_SUBSYSTEM = "k8s_zookeeper"
K8S_BOOKKEEPER_SUBSYSTEM = "k8s_bookkeeper"
K8S_BROKER_SUBSYSTEM = "k8s_broker"
K8S_PROXY_SUBSYSTEM = "k8s_proxy"


@dataclass(frozen=True)
class MetricOpts:
    """Namespace, subsystem, name and help text of one metric.

    Two opts with the same namespace/subsystem/name describe the same metric
    even if their help text differs.
    """

    namespace: str
    subsystem: str
    name: str
    help: str = ""

    @property
    def identity(self) -> tuple[str, str, str]:
        return (self.namespace, self.subsystem, self.name)

    @property
    def key(self) -> str:
        return metric_key(self)

    @property
    def full_name(self) -> str:
        return "_".join(part for part in self.identity if part)


def metric_key(opts: MetricOpts) -> str:
    """Registry cache key for ``opts``; label values never take part in it."""
    return f"{opts.namespace}-{opts.subsystem}-{opts.name}"


def tenants_gauge_opts() -> MetricOpts:
    """REST API tenant count."""
    return MetricOpts("pulsar", "tenant", "size", "Pulsar rest api tenant counts")


def site_latency_gauge_opts() -> MetricOpts:
    """Hosting site endpoint latency."""
    return MetricOpts(
        "kafkaesque",
        "webendpoint",
        "latency_ms",
        "kafkaesque website endpoint monitor and latency in ms",
    )


def msg_latency_gauge_opts(subsystem: str, help_text: str) -> MetricOpts:
    """Message latency for one traffic subsystem."""
    return MetricOpts("pulsar", subsystem, "latency_ms", help_text)


def func_latency_gauge_opts() -> MetricOpts:
    """Pulsar Function trigger latency."""
    return MetricOpts("pulsar", "function", "latency_ms", "Pulsar message latency in ms")


def offline_pods_gauge_opts(subsystem: str) -> MetricOpts:
    """Offline pod count for one Kubernetes tier."""
    return MetricOpts("pulsar", subsystem, "offline_counter", "Pulsar k8s offline pods counter")


def gauge_opts_for_kind(kind: str) -> MetricOpts:
    """Map a traffic kind label to its latency metric.

    ``func_topic`` and anything prefixed with it is function input/output
    topic traffic, ``websocket`` is websocket traffic, everything else is
    plain pub/sub.
    """
    if kind.startswith(FUNC_TOPIC_SUBSYSTEM):
        return msg_latency_gauge_opts(
            FUNC_TOPIC_SUBSYSTEM, "Pulsar function input output topic latency in ms"
        )
    if kind == WEBSOCKET_SUBSYSTEM:
        return msg_latency_gauge_opts(
            WEBSOCKET_SUBSYSTEM, "Pulsar websocket pubsub topic latency in ms"
        )
    return msg_latency_gauge_opts(PUBSUB_SUBSYSTEM, "Pulsar pubsub message latency in ms")
