"""Cluster status types and the cluster client protocol."""

from dataclasses import dataclass
from enum import IntEnum
from typing import Protocol, runtime_checkable

# Pulsar components are deployed under this Kubernetes namespace.
DEFAULT_PULSAR_NAMESPACE = "pulsar"


class ClusterStatusCode(IntEnum):
    """Overall cluster health, ordered by severity."""

    UNKNOWN = 0
    OK = 1
    DEGRADED = 2  # Some instances offline, cluster still serving
    TOTAL_DOWN = 3  # At least one tier has no running instance

    @property
    def is_worst(self) -> bool:
        return self is ClusterStatusCode.TOTAL_DOWN

    def __str__(self) -> str:
        return self.name.lower()

    def __format__(self, format_spec: str) -> str:
        # IntEnum formats as the bare integer otherwise
        return format(str(self), format_spec)


@dataclass(frozen=True)
class Verdict:
    """Result of one health evaluation pass."""

    status: ClusterStatusCode
    zookeeper_offline: int = 0
    bookkeeper_offline: int = 0
    broker_offline: int = 0
    proxy_offline: int = 0

    def __str__(self) -> str:
        return (
            f"status={self.status} zookeeper_offline={self.zookeeper_offline} "
            f"bookkeeper_offline={self.bookkeeper_offline} "
            f"broker_offline={self.broker_offline} proxy_offline={self.proxy_offline}"
        )


@runtime_checkable
class ClusterClient(Protocol):
    """Kubernetes view of a Pulsar cluster.

    Implementations discover the stateful sets and pods and count offline
    instances per tier. ``refresh_replicas`` and ``watch_pods`` raise on
    failure (preferably ``ClusterClientError``).
    """

    async def refresh_replicas(self) -> None: ...

    async def watch_pods(self, namespace: str) -> None: ...

    def evaluate_health(self) -> tuple[str, Verdict]: ...
