"""Kubernetes Pulsar cluster monitor.

Every ``CLUSTER_MONITOR_INTERVAL`` the monitor asks the cluster client to
refresh its replica and pod view, evaluates the cluster health and then:

1. stores ``(status, broker_offline)`` in the shared ``HealthState``,
2. publishes one offline-pod gauge per tier (zookeeper, bookkeeper, broker,
   proxy) labelled with the cluster scope,
3. raises a verbose alert and opens/refreshes an incident when the whole
   cluster is down, or clears the incident once it is OK again,
4. logs the verdict.

A failed refresh aborts the tick before any of the above; it is logged once
and the loop waits for the next tick. Client calls are not wrapped in a
timeout, so a hung client stalls the loop.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

from pulsarmon.config import PulsarMonSettings
from pulsarmon.core.alerts import AlertTransport
from pulsarmon.core.health_state import HealthState
from pulsarmon.core.types import DEFAULT_PULSAR_NAMESPACE, ClusterClient, ClusterStatusCode, Verdict
from pulsarmon.logging import get_logger, set_cluster_scope
from pulsarmon.observability.metric_catalog import (
    K8S_BOOKKEEPER_SUBSYSTEM,
    K8S_BROKER_SUBSYSTEM,
    K8S_PROXY_SUBSYSTEM,
    K8S_ZOOKEEPER_SUBSYSTEM,
    offline_pods_gauge_opts,
)
from pulsarmon.observability.metric_registry import MetricRegistry

logger = get_logger(__name__)

CLUSTER_MONITOR_INTERVAL = 10.0  # seconds
VERBOSE_ALERT_SUPPRESSION = timedelta(minutes=3)
INCIDENT_SUMMARY = "kubernetes cluster is down, reported by pulsar-monitor"


class ClusterMonitor:
    """Periodic health evaluation of an in-cluster Pulsar deployment."""

    def __init__(
        self,
        settings: PulsarMonSettings,
        client: ClusterClient,
        registry: MetricRegistry,
        alerts: AlertTransport,
        health_state: HealthState,
        interval: float = CLUSTER_MONITOR_INTERVAL,
    ) -> None:
        """Initialize cluster monitor.

        Args:
            settings: Source of the cluster name, enable flag and alert policy
            client: Kubernetes view of the cluster
            registry: Where offline-pod gauges are published
            alerts: Alert/incident transport
            health_state: Shared state updated every tick
            interval: Seconds between ticks
        """
        self._settings = settings
        self._client = client
        self._registry = registry
        self._alerts = alerts
        self._health_state = health_state
        self._interval = interval
        self._scope = settings.cluster_scope
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def scope(self) -> str:
        return self._scope

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[None] | None:
        """Start the monitoring task.

        Returns:
            The task, or None when k8s monitoring is disabled
        """
        if not self._settings.k8s_enabled:
            logger.info("k8s cluster monitoring disabled")
            return None
        if self._task is not None:
            return self._task

        self._stop_event.clear()
        self._task = asyncio.create_task(self._monitor_loop(), name="k8s-cluster-monitor")
        return self._task

    async def stop(self) -> None:
        """Signal the loop to exit and wait for the in-flight tick to finish."""
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("k8s cluster monitoring stopped")

    async def _monitor_loop(self) -> None:
        set_cluster_scope(self._scope)
        logger.info("start k8s cluster monitoring ...")
        while True:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            if self._stop_event.is_set():
                return

            try:
                await self.evaluate_once()
            except Exception as e:
                logger.error("k8s cluster refresh failed: %s", e)

    async def evaluate_once(self) -> Verdict:
        """Run one tick; refresh errors propagate before any state changes."""
        await self._client.refresh_replicas()
        await self._client.watch_pods(DEFAULT_PULSAR_NAMESPACE)
        desc, verdict = self._client.evaluate_health()

        # Only the broker count is kept in the shared state; other tiers are metrics-only
        self._health_state.set(verdict.status, verdict.broker_offline)

        self._publish(verdict)
        self._evaluate_alerts(desc, verdict)

        logger.info("k8s cluster status %s", verdict)
        return verdict

    def _publish(self, verdict: Verdict) -> None:
        for subsystem, count in (
            (K8S_ZOOKEEPER_SUBSYSTEM, verdict.zookeeper_offline),
            (K8S_BOOKKEEPER_SUBSYSTEM, verdict.bookkeeper_offline),
            (K8S_BROKER_SUBSYSTEM, verdict.broker_offline),
            (K8S_PROXY_SUBSYSTEM, verdict.proxy_offline),
        ):
            self._registry.record_gauge_int(offline_pods_gauge_opts(subsystem), self._scope, count)

    def _evaluate_alerts(self, desc: str, verdict: Verdict) -> None:
        if verdict.status == ClusterStatusCode.OK:
            self._alerts.clear_incident(self._scope)
            return

        err_msg = (
            f"cluster {self._scope}, k8s pulsar cluster status is unhealthy, "
            f"error message {desc}"
        )
        if verdict.status.is_worst:
            self._alerts.raise_verbose_alert(self._scope, err_msg, VERBOSE_ALERT_SUPPRESSION)
            self._alerts.open_or_refresh_incident(
                self._scope,
                self._scope,
                INCIDENT_SUMMARY,
                err_msg,
                self._settings.alert_policy,
            )
        # Degraded and unknown states are observability-only
