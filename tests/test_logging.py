"""Tests for the structured logging module.

Covers:
- JSONFormatter produces valid JSON with required fields
- Text formatter appends the cluster scope only when bound
- ScopeFilter injects cluster_scope into records
- setup_logging() is idempotent
"""

import io
import json
import logging

from pulsarmon.logging import (
    JSONFormatter,
    ScopeFilter,
    _ScopeTextFormatter,
    cluster_scope_var,
    get_logger,
    set_cluster_scope,
    setup_logging,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _capture_log(
    formatter: logging.Formatter,
    level: int,
    message: str,
    exc_info: bool = False,
    scope: str | None = None,
) -> str:
    """Emit a single log record through the formatter and return the output."""
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    handler.addFilter(ScopeFilter())
    logger = logging.getLogger(f"test.{id(stream)}")
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    logger.propagate = False

    token = cluster_scope_var.set(scope)
    try:
        if exc_info:
            try:
                raise ValueError("test exception")
            except ValueError:
                logger.log(level, message, exc_info=True)
        else:
            logger.log(level, message)
    finally:
        cluster_scope_var.reset(token)

    return stream.getvalue()


# ---------------------------------------------------------------------------
# JSONFormatter tests
# ---------------------------------------------------------------------------

class TestJSONFormatter:
    def test_required_fields(self):
        output = _capture_log(JSONFormatter(), logging.INFO, "k8s cluster status ok", scope="c1-in-cluster")
        payload = json.loads(output)

        assert payload["level"] == "INFO"
        assert payload["message"] == "k8s cluster status ok"
        assert payload["cluster_scope"] == "c1-in-cluster"
        assert payload["service"] == "pulsarmon"
        assert "timestamp" in payload

    def test_scope_empty_when_unbound(self):
        payload = json.loads(_capture_log(JSONFormatter(), logging.INFO, "hello"))
        assert payload["cluster_scope"] == ""

    def test_exception_fields(self):
        payload = json.loads(_capture_log(JSONFormatter(), logging.ERROR, "boom", exc_info=True))
        assert payload["exc_type"] == "ValueError"
        assert payload["exc_value"] == "test exception"
        assert any("Traceback" in line for line in payload["exc_trace"])


# ---------------------------------------------------------------------------
# Text formatter tests
# ---------------------------------------------------------------------------

class TestTextFormatter:
    def test_scope_appended_when_bound(self):
        output = _capture_log(_ScopeTextFormatter(), logging.INFO, "tick", scope="c1-in-cluster")
        assert "[scope=c1-in-cluster] | tick" in output

    def test_scope_omitted_when_unbound(self):
        output = _capture_log(_ScopeTextFormatter(), logging.WARNING, "tick")
        assert "[scope=" not in output
        assert "WARNING" in output

    def test_traceback_included(self):
        output = _capture_log(_ScopeTextFormatter(), logging.ERROR, "boom", exc_info=True)
        assert "ValueError: test exception" in output


# ---------------------------------------------------------------------------
# Helpers and setup
# ---------------------------------------------------------------------------

def test_scope_context_helpers():
    token = cluster_scope_var.set(None)
    try:
        set_cluster_scope("c2-in-cluster")
        assert cluster_scope_var.get() == "c2-in-cluster"
    finally:
        cluster_scope_var.reset(token)


def test_get_logger_returns_named_logger():
    assert get_logger("pulsarmon.test").name == "pulsarmon.test"


def test_setup_logging_is_idempotent():
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    # pytest's capture handlers are attached for the test body; start from none
    root.handlers = []
    try:
        setup_logging()
        setup_logging()
        handlers = root.handlers[:]
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)

    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.StreamHandler)
    assert any(isinstance(f, ScopeFilter) for f in handlers[0].filters)
