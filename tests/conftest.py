"""Shared test fixtures."""

import sys
from pathlib import Path

# ── Workspace path setup ────────────────────────────────────────────────────
# Allow running the suite from a checkout without an editable install.
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)
# ────────────────────────────────────────────────────────────────────────────

from collections.abc import Iterable

import pytest
from prometheus_client import CollectorRegistry

from pulsarmon.config import PulsarMonSettings
from pulsarmon.core.alerts import AlertManager, Incident
from pulsarmon.core.errors import ClusterClientError
from pulsarmon.core.health_state import HealthState
from pulsarmon.core.types import ClusterStatusCode, Verdict
from pulsarmon.observability.metric_registry import MetricRegistry


class CountingRegistry(CollectorRegistry):
    """CollectorRegistry that remembers every register() call."""

    def __init__(self) -> None:
        super().__init__()
        self.registrations: list[object] = []

    def register(self, collector) -> None:
        self.registrations.append(collector)
        super().register(collector)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingNotifier:
    """Notifier that keeps everything it was asked to deliver."""

    def __init__(self) -> None:
        self.alerts: list[tuple[str, str]] = []
        self.created: list[Incident] = []
        self.resolved: list[Incident] = []

    def send_alert(self, scope: str, message: str) -> None:
        self.alerts.append((scope, message))

    def create_incident(self, incident: Incident) -> None:
        self.created.append(incident)

    def resolve_incident(self, incident: Incident) -> None:
        self.resolved.append(incident)


class FakeClusterClient:
    """Cluster client replaying scripted verdicts.

    Each entry is a ``Verdict`` or an exception raised from ``refresh_replicas``.
    The last entry repeats once the script is exhausted.
    """

    def __init__(self, script: Iterable[Verdict | Exception]) -> None:
        self._script = list(script)
        self._current: Verdict | None = None
        self.refresh_calls = 0
        self.watched_namespaces: list[str] = []

    async def refresh_replicas(self) -> None:
        self.refresh_calls += 1
        step = self._script.pop(0) if len(self._script) > 1 else self._script[0]
        if isinstance(step, Exception):
            raise step
        self._current = step

    async def watch_pods(self, namespace: str) -> None:
        self.watched_namespaces.append(namespace)

    def evaluate_health(self) -> tuple[str, Verdict]:
        assert self._current is not None
        return f"{self._current.status} cluster", self._current


def verdict(status: ClusterStatusCode, broker: int = 0, **counts: int) -> Verdict:
    return Verdict(status=status, broker_offline=broker, **counts)


@pytest.fixture
def collector_registry() -> CountingRegistry:
    return CountingRegistry()


@pytest.fixture
def metric_registry(collector_registry: CountingRegistry) -> MetricRegistry:
    return MetricRegistry(collector_registry)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def alert_manager(notifier: RecordingNotifier, clock: FakeClock) -> AlertManager:
    return AlertManager(notifier, clock=clock)


@pytest.fixture
def health_state() -> HealthState:
    return HealthState()


@pytest.fixture
def monitor_settings() -> PulsarMonSettings:
    return PulsarMonSettings(cluster_name="test", k8s_enabled=True)


@pytest.fixture
def refresh_error() -> ClusterClientError:
    return ClusterClientError("replica refresh failed: connection refused")


def build_ok_client() -> FakeClusterClient:
    """Zero-argument factory usable as a CLUSTER_CLIENT import path."""
    return FakeClusterClient([verdict(ClusterStatusCode.OK)])
