"""Main entrypoint for pulsarmon."""

from __future__ import annotations

import argparse
import asyncio
import importlib
import signal
import sys

from pulsarmon.config import PulsarMonSettings, settings
from pulsarmon.core.alerts import AlertManager
from pulsarmon.core.cluster_monitor import ClusterMonitor
from pulsarmon.core.errors import ConfigurationError
from pulsarmon.core.health_state import HealthState, cluster_health
from pulsarmon.core.types import ClusterClient
from pulsarmon.logging import get_logger, setup_logging
from pulsarmon.observability.http_server import MetricsServer
from pulsarmon.observability.metric_registry import MetricRegistry

logger = get_logger(__name__)


def load_cluster_client(path: str) -> ClusterClient:
    """Import ``module:attr`` and call it to build the cluster client."""
    module_name, _, attr = path.partition(":")
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"cannot load cluster client {path!r}: {e}") from e

    client = factory()
    if not isinstance(client, ClusterClient):
        raise ConfigurationError(f"{path!r} did not return a ClusterClient, got {type(client).__name__}")
    return client


class MonitorApp:
    """Wires the metrics server and the cluster monitor together."""

    def __init__(
        self,
        config: PulsarMonSettings,
        registry: MetricRegistry | None = None,
        health_state: HealthState | None = None,
        client: ClusterClient | None = None,
    ) -> None:
        self._config = config
        self.registry = registry if registry is not None else MetricRegistry()
        self.health_state = health_state if health_state is not None else cluster_health
        self.alerts = AlertManager()
        self.server = MetricsServer(
            self.registry.collector_registry, self.health_state, port=config.metrics_port
        )
        self.monitor: ClusterMonitor | None = None
        self._client = client

    async def start(self) -> None:
        await self.server.start()

        if not self._config.k8s_enabled:
            logger.info("k8s cluster monitoring disabled, serving metrics only")
            return

        client = self._client
        if client is None:
            if not self._config.cluster_client:
                raise ConfigurationError("K8S_ENABLED=true requires CLUSTER_CLIENT")
            client = load_cluster_client(self._config.cluster_client)

        self.monitor = ClusterMonitor(
            self._config, client, self.registry, self.alerts, self.health_state
        )
        self.monitor.start()

    async def stop(self) -> None:
        if self.monitor is not None:
            await self.monitor.stop()
        await self.server.stop()

    async def run(self, stop_event: asyncio.Event) -> None:
        """Run until ``stop_event`` is set."""
        await self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()


async def _run(config: PulsarMonSettings) -> None:
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def signal_handler(sig, frame):
        sig_name = "SIGINT" if sig == signal.SIGINT else "SIGTERM"
        logger.info(f"Received {sig_name}, shutting down...")
        loop.call_soon_threadsafe(stop_event.set)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    await MonitorApp(config).run(stop_event)


def main() -> None:
    """Main entrypoint."""
    parser = argparse.ArgumentParser(description="Pulsar cluster monitor")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    run_parser = subparsers.add_parser("run", help="Run the monitor and metrics endpoint")
    run_parser.add_argument("--port", type=int, default=None, help="Override METRICS_PORT")

    args = parser.parse_args()

    setup_logging()

    if args.command == "run":
        config = settings
        if args.port is not None:
            config = settings.model_copy(update={"metrics_port": args.port})
        try:
            asyncio.run(_run(config))
        except ConfigurationError as e:
            logger.error(f"Configuration error: {e}")
            sys.exit(1)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
