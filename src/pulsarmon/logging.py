"""Structured logging setup with cluster-scope context support.

Two output formats are supported, controlled by the ``LOG_FORMAT`` environment
variable (mapped to ``settings.log_format``):

- ``text`` (default): human-readable console output.
  Format: ``2024-01-01 12:00:00 | INFO     | pulsarmon.core.cluster_monitor
           [scope=pulsar-in-cluster] | message``

- ``json``: one JSON object per line for log aggregators, with fields
  ``timestamp``, ``level``, ``logger``, ``message``, ``cluster_scope``,
  ``service`` and (on exceptions) ``exc_type``/``exc_value``/``exc_trace``.

Context propagation:
  ``cluster_scope_var`` is an asyncio-native ContextVar. The cluster monitor
  sets it when its task starts, so every line logged from inside the
  monitoring loop carries the scope label.
"""

import json
import logging
import sys
import traceback
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# Cluster scope label (``<name>-in-cluster``) of the active monitoring task
cluster_scope_var: ContextVar[str | None] = ContextVar("cluster_scope", default=None)

# Service name embedded in JSON logs
_SERVICE_NAME = "pulsarmon"


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

class ScopeFilter(logging.Filter):
    """Inject the cluster scope into every log record.

    The field is an empty string when no scope is bound so aggregators can
    filter with ``cluster_scope != ""``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.cluster_scope = cluster_scope_var.get() or ""
        return True


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------

class JSONFormatter(logging.Formatter):
    """Emit one JSON object per log line.

    Output schema::

        {
            "timestamp":     "2024-01-01T12:00:00.123456+00:00",
            "level":         "INFO",
            "logger":        "pulsarmon.core.cluster_monitor",
            "message":       "k8s cluster status ...",
            "cluster_scope": "pulsar-in-cluster" | "",
            "service":       "pulsarmon",
            // present only on exceptions:
            "exc_type":      "ClusterClientError",
            "exc_value":     "...",
            "exc_trace":     ["Traceback (most recent...", ...]
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=UTC).isoformat()

        payload: dict[str, Any] = {
            "timestamp": ts,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "cluster_scope": getattr(record, "cluster_scope", ""),
            "service": _SERVICE_NAME,
        }

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            payload["exc_type"] = exc_type.__name__ if exc_type else None
            payload["exc_value"] = str(exc_value)
            payload["exc_trace"] = traceback.format_exception(exc_type, exc_value, exc_tb)

        return json.dumps(payload, default=str)


class _ScopeTextFormatter(logging.Formatter):
    """Human-readable formatter; appends ``[scope=...]`` only when bound."""

    _BASE_FMT = "%(asctime)s | %(levelname)-8s | %(name)s"
    _DATE_FMT = "%Y-%m-%d %H:%M:%S"

    def __init__(self) -> None:
        super().__init__(fmt=self._BASE_FMT, datefmt=self._DATE_FMT)

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        scope = getattr(record, "cluster_scope", "")
        scope_part = f" [scope={scope}]" if scope else ""
        line = f"{base}{scope_part} | {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


# ---------------------------------------------------------------------------
# Public setup function
# ---------------------------------------------------------------------------

def setup_logging() -> None:
    """Configure root logging from ``settings.log_level`` / ``settings.log_format``.

    Call once at process startup. Calling again only updates the level.
    """
    # Lazy import: settings may not be importable while tests patch env vars
    try:
        from pulsarmon.config import settings as _settings
        log_level_str = _settings.log_level.upper()
        log_format = _settings.log_format.lower()
    except Exception:
        log_level_str = "INFO"
        log_format = "text"

    log_level = getattr(logging, log_level_str, logging.INFO)

    root_logger = logging.getLogger()

    if root_logger.handlers:
        root_logger.setLevel(log_level)
        return

    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.addFilter(ScopeFilter())

    if log_format == "json":
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(_ScopeTextFormatter())

    root_logger.addHandler(console_handler)

    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging initialised (level=%s, format=%s)", log_level_str, log_format
    )


# ---------------------------------------------------------------------------
# Context helpers
# ---------------------------------------------------------------------------

def set_cluster_scope(scope: str | None) -> None:
    """Bind the cluster scope label in the current async context."""
    cluster_scope_var.set(scope)


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------

def get_logger(name: str) -> logging.Logger:
    """Return a standard ``logging.Logger`` for the given module name.

    Usage::

        from pulsarmon.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Component started")
    """
    return logging.getLogger(name)
