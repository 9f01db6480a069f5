"""Alert suppression and incident tracking.

``AlertManager`` is the transport the cluster monitor talks to. It decides
*whether* something should be sent; a ``Notifier`` does the sending.

- Verbose alerts are suppressed per scope: a scope that alerted less than
  ``suppression`` ago stays quiet.
- Incidents follow a per-scope state machine (``NO_INCIDENT`` /
  ``INCIDENT_OPEN``). Each failure report is counted by the scope's
  ``IncidentTracker``; once the ``AlertPolicy`` fires, the incident is
  created. Further reports refresh it without creating a second one.
  ``clear_incident`` resolves it and resets the tracker; clearing a scope with
  no open incident does nothing.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Protocol

from pulsarmon.config import AlertPolicy
from pulsarmon.logging import get_logger

logger = get_logger(__name__)


class IncidentState(str, Enum):
    """Incident state of one scope."""

    NO_INCIDENT = "no_incident"
    INCIDENT_OPEN = "incident_open"


@dataclass
class Incident:
    """An open incident."""

    scope: str
    source: str
    summary: str
    detail: str
    opened_at: float
    refreshed_at: float
    refresh_count: int = 0


class Notifier(Protocol):
    """Delivery channel for alerts and incidents."""

    def send_alert(self, scope: str, message: str) -> None: ...

    def create_incident(self, incident: Incident) -> None: ...

    def resolve_incident(self, incident: Incident) -> None: ...


class AlertTransport(Protocol):
    """What the cluster monitor needs from an alerting backend."""

    def raise_verbose_alert(self, scope: str, message: str, suppression: timedelta) -> bool: ...

    def open_or_refresh_incident(
        self,
        scope: str,
        source: str,
        summary: str,
        detail: str,
        policy: AlertPolicy,
    ) -> IncidentState: ...

    def clear_incident(self, scope: str) -> bool: ...


class LogNotifier:
    """Notifier that writes alerts and incident transitions to the log."""

    def send_alert(self, scope: str, message: str) -> None:
        logger.warning("ALERT [%s] %s", scope, message)

    def create_incident(self, incident: Incident) -> None:
        logger.error(
            "INCIDENT OPEN [%s] source=%s summary=%s detail=%s",
            incident.scope,
            incident.source,
            incident.summary,
            incident.detail,
        )

    def resolve_incident(self, incident: Incident) -> None:
        logger.info(
            "INCIDENT RESOLVED [%s] after %d refreshes", incident.scope, incident.refresh_count
        )


class IncidentTracker:
    """Counts failures of one scope against an ``AlertPolicy``."""

    def __init__(self, policy: AlertPolicy) -> None:
        self.policy = policy
        self._consecutive = 0
        self._window: deque[float] = deque()

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive

    def evaluate(self, now: float) -> bool:
        """Record one failure at ``now``; True when the policy says escalate."""
        self._consecutive += 1

        window = self.policy.moving_window_seconds
        if window > 0 and self.policy.ceiling_in_moving_window > 0:
            self._window.append(now)
            cutoff = now - window
            while self._window and self._window[0] < cutoff:
                self._window.popleft()
            if len(self._window) >= self.policy.ceiling_in_moving_window:
                return True

        return 0 < self.policy.ceiling <= self._consecutive

    def reset(self) -> None:
        self._consecutive = 0
        self._window.clear()


class AlertManager:
    """Alert and incident transport consumed by the cluster monitor."""

    def __init__(
        self,
        notifier: Notifier | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize alert manager.

        Args:
            notifier: Delivery channel (defaults to ``LogNotifier``)
            clock: Monotonic time source in seconds
        """
        self._notifier = notifier if notifier is not None else LogNotifier()
        self._clock = clock
        self._lock = threading.Lock()
        self._last_alert: dict[str, float] = {}
        self._trackers: dict[str, IncidentTracker] = {}
        self._incidents: dict[str, Incident] = {}

    def raise_verbose_alert(self, scope: str, message: str, suppression: timedelta) -> bool:
        """Send ``message`` unless ``scope`` alerted within ``suppression``.

        Returns:
            True if the alert was sent
        """
        now = self._clock()
        with self._lock:
            last = self._last_alert.get(scope)
            if last is not None and now - last < suppression.total_seconds():
                logger.debug("Alert for %s suppressed", scope)
                return False
            self._last_alert[scope] = now
        self._notifier.send_alert(scope, message)
        return True

    def open_or_refresh_incident(
        self,
        scope: str,
        source: str,
        summary: str,
        detail: str,
        policy: AlertPolicy,
    ) -> IncidentState:
        """Report a failure of ``scope``; open or refresh its incident as the policy allows."""
        now = self._clock()
        with self._lock:
            tracker = self._trackers.get(scope)
            if tracker is None:
                tracker = IncidentTracker(policy)
                self._trackers[scope] = tracker
            else:
                tracker.policy = policy

            escalate = tracker.evaluate(now)
            incident = self._incidents.get(scope)
            if incident is not None:
                incident.detail = detail
                incident.refreshed_at = now
                incident.refresh_count += 1
                return IncidentState.INCIDENT_OPEN
            if not escalate:
                logger.debug(
                    "Incident for %s held back after %d consecutive failures",
                    scope,
                    tracker.consecutive_failures,
                )
                return IncidentState.NO_INCIDENT

            created = Incident(
                scope=scope,
                source=source,
                summary=summary,
                detail=detail,
                opened_at=now,
                refreshed_at=now,
            )
            self._incidents[scope] = created

        self._notifier.create_incident(created)
        return IncidentState.INCIDENT_OPEN

    def clear_incident(self, scope: str) -> bool:
        """Resolve the open incident of ``scope``.

        Returns:
            True if an incident was open and has been resolved
        """
        with self._lock:
            tracker = self._trackers.get(scope)
            if tracker is not None:
                tracker.reset()
            incident = self._incidents.pop(scope, None)
        if incident is None:
            return False
        self._notifier.resolve_incident(incident)
        return True

    def incident_state(self, scope: str) -> IncidentState:
        with self._lock:
            if scope in self._incidents:
                return IncidentState.INCIDENT_OPEN
            return IncidentState.NO_INCIDENT

    def is_incident_open(self, scope: str) -> bool:
        return self.incident_state(scope) is IncidentState.INCIDENT_OPEN
