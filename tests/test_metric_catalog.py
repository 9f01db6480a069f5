"""Tests for metric identities and the traffic-kind classifier."""

import pytest

from pulsarmon.observability.metric_catalog import (
    FUNC_TOPIC_SUBSYSTEM,
    PUBSUB_SUBSYSTEM,
    WEBSOCKET_SUBSYSTEM,
    MetricOpts,
    func_latency_gauge_opts,
    gauge_opts_for_kind,
    msg_latency_gauge_opts,
    offline_pods_gauge_opts,
    site_latency_gauge_opts,
    tenants_gauge_opts,
)


class TestGaugeOptsForKind:
    """Test gauge_opts_for_kind classification."""

    @pytest.mark.parametrize("kind", ["func_topic", "func_topic_orders", "func_topic-2"])
    def test_function_topic_by_exact_value_or_prefix(self, kind):
        opts = gauge_opts_for_kind(kind)
        assert opts.subsystem == FUNC_TOPIC_SUBSYSTEM
        assert opts.full_name == "pulsar_func_topic_latency_ms"
        assert "function input output topic" in opts.help

    def test_websocket(self):
        opts = gauge_opts_for_kind("websocket")
        assert opts.subsystem == WEBSOCKET_SUBSYSTEM
        assert "websocket" in opts.help

    @pytest.mark.parametrize("kind", ["", "pubsub", "websocket_v2", "my_func_topic"])
    def test_everything_else_is_pubsub(self, kind):
        assert gauge_opts_for_kind(kind).subsystem == PUBSUB_SUBSYSTEM

    def test_same_kind_same_identity(self):
        assert gauge_opts_for_kind("func_topic_a").key == gauge_opts_for_kind("func_topic_b").key


class TestCatalog:
    """Test the fixed metric identities."""

    def test_names(self):
        assert tenants_gauge_opts().full_name == "pulsar_tenant_size"
        assert site_latency_gauge_opts().full_name == "kafkaesque_webendpoint_latency_ms"
        assert func_latency_gauge_opts().full_name == "pulsar_function_latency_ms"
        assert msg_latency_gauge_opts("pubsub", "x").full_name == "pulsar_pubsub_latency_ms"
        assert offline_pods_gauge_opts("k8s_proxy").full_name == "pulsar_k8s_proxy_offline_counter"

    def test_identity_excludes_help(self):
        opts = MetricOpts("pulsar", "tenant", "size", "help")
        assert opts.identity == ("pulsar", "tenant", "size")
        assert opts.key == "pulsar-tenant-size"

    def test_full_name_skips_empty_parts(self):
        assert MetricOpts("", "tenant", "size").full_name == "tenant_size"
