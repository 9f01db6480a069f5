"""Tests for application wiring.

asyncio_mode = "auto" is set in pyproject.toml; no @pytest.mark.asyncio needed.
"""

import asyncio

import pytest
from aiohttp.test_utils import unused_port

from pulsarmon.config import PulsarMonSettings
from pulsarmon.core.errors import ConfigurationError
from pulsarmon.core.types import ClusterStatusCode
from pulsarmon.main import MonitorApp, load_cluster_client

from conftest import FakeClusterClient, verdict


class TestLoadClusterClient:
    def test_loads_factory(self):
        client = load_cluster_client("conftest:build_ok_client")
        assert isinstance(client, FakeClusterClient)

    def test_missing_module(self):
        with pytest.raises(ConfigurationError):
            load_cluster_client("pulsarmon_missing_module:factory")

    def test_missing_attribute(self):
        with pytest.raises(ConfigurationError):
            load_cluster_client("conftest:no_such_factory")

    def test_factory_must_return_cluster_client(self):
        with pytest.raises(ConfigurationError):
            load_cluster_client("builtins:object")


def _settings(**overrides) -> PulsarMonSettings:
    return PulsarMonSettings(cluster_name="app", metrics_port=unused_port(), **overrides)


class TestMonitorApp:
    async def test_disabled_serves_metrics_only(self, metric_registry, health_state):
        app = MonitorApp(_settings(k8s_enabled=False), metric_registry, health_state)
        await app.start()
        try:
            assert app.monitor is None
        finally:
            await app.stop()

    async def test_enabled_without_client_path_fails(self, metric_registry, health_state):
        app = MonitorApp(_settings(k8s_enabled=True), metric_registry, health_state)
        with pytest.raises(ConfigurationError):
            await app.start()
        await app.stop()

    async def test_run_until_stopped(self, metric_registry, health_state):
        client = FakeClusterClient([verdict(ClusterStatusCode.OK)])
        app = MonitorApp(_settings(k8s_enabled=True), metric_registry, health_state, client=client)
        stop_event = asyncio.Event()

        run_task = asyncio.create_task(app.run(stop_event))
        await asyncio.sleep(0.05)
        assert app.monitor is not None
        assert app.monitor.is_running
        assert app.monitor.scope == "app-in-cluster"

        stop_event.set()
        await asyncio.wait_for(run_task, timeout=2)
        assert not app.monitor.is_running

    async def test_client_loaded_from_settings(self, metric_registry, health_state):
        settings = _settings(k8s_enabled=True, cluster_client="conftest:build_ok_client")
        app = MonitorApp(settings, metric_registry, health_state)
        await app.start()
        try:
            assert app.monitor is not None and app.monitor.is_running
        finally:
            await app.stop()
