"""Prometheus metrics and health endpoint server."""

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from pulsarmon.core.health_state import HealthState
from pulsarmon.core.types import ClusterStatusCode
from pulsarmon.logging import get_logger

logger = get_logger(__name__)


class MetricsServer:
    """HTTP server for Prometheus scraping and readiness probes."""

    def __init__(
        self,
        registry: CollectorRegistry,
        health_state: HealthState,
        port: int = 8089,
        host: str = "0.0.0.0",
    ) -> None:
        """Initialize metrics server.

        Args:
            registry: Collector registry exposed on /metrics
            health_state: Cluster health reported on /health
            port: Port to listen on
            host: Interface to bind
        """
        self.port = port
        self.host = host
        self._registry = registry
        self._health_state = health_state
        self.app = web.Application()
        self.app.router.add_get("/metrics", self.handle_metrics)
        self.app.router.add_get("/health", self.handle_health)
        self.runner: web.AppRunner | None = None
        self.site: web.TCPSite | None = None

    async def handle_metrics(self, request: web.Request) -> web.Response:
        """Handle /metrics endpoint for Prometheus scraping."""
        body = generate_latest(self._registry)
        response = web.Response(body=body)
        # CONTENT_TYPE_LATEST carries a charset, which aiohttp rejects in content_type=
        response.headers["Content-Type"] = CONTENT_TYPE_LATEST
        return response

    async def handle_health(self, request: web.Request) -> web.Response:
        """Handle /health endpoint; 503 while the cluster is totally down."""
        status, missing_brokers = self._health_state.get()
        http_status = 503 if status == ClusterStatusCode.TOTAL_DOWN else 200
        return web.json_response(
            {"status": str(status), "missing_brokers": missing_brokers},
            status=http_status,
        )

    async def start(self) -> None:
        """Start the server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, self.host, self.port)
        await self.site.start()
        logger.info(f"Metrics server started on port {self.port}")

    async def stop(self) -> None:
        """Stop the server."""
        if self.site:
            await self.site.stop()
        if self.runner:
            await self.runner.cleanup()
        logger.info("Metrics server stopped")
