"""Runtime domain models: service status and the execution-unit record.

Valid transition graph::

    STARTING → RUNNING
    RUNNING  → STOPPED | FAILED
    STOPPED  → (terminal)
    FAILED   → (terminal)

``STARTING`` is entered when the unit is created and registered.  Only the
service's worker moves it forward, plus ``stop()`` which may write
``STOPPED`` after it has seen the worker finish.
"""

from __future__ import annotations

import threading
import weakref
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from mycoq.core.errors import InvalidTransitionError
from mycoq.runtime.handle import CancellationToken

if TYPE_CHECKING:
    from mycoq.runtime.loader import IsolatedLoader


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


class ServiceStatus(str, Enum):
    """Lifecycle stage of an execution unit."""

    STARTING = "STARTING"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (ServiceStatus.STOPPED, ServiceStatus.FAILED)


VALID_TRANSITIONS: dict[ServiceStatus, frozenset[ServiceStatus]] = {
    ServiceStatus.STARTING: frozenset({ServiceStatus.RUNNING}),
    ServiceStatus.RUNNING: frozenset({ServiceStatus.STOPPED, ServiceStatus.FAILED}),
    ServiceStatus.STOPPED: frozenset(),  # terminal
    ServiceStatus.FAILED: frozenset(),  # terminal
}


def validate_transition(
    current: ServiceStatus,
    target: ServiceStatus,
    service: str | None = None,
) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal.

    Example:
        >>> validate_transition(ServiceStatus.RUNNING, ServiceStatus.STOPPED)
        >>> validate_transition(ServiceStatus.STOPPED, ServiceStatus.RUNNING)
        Traceback (most recent call last):
        ...
        InvalidTransitionError: Invalid ServiceStatus transition: STOPPED → RUNNING
    """
    if target not in VALID_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current.value, target.value, service=service)


@dataclass(eq=False)
class ServiceInfo:
    """One launch attempt of a service (the execution unit).

    ``history`` lists every status the unit has entered, in order, so a
    normal run reads ``[STARTING, RUNNING, STOPPED]``.  The unit keeps only
    a weak reference to its loader; the ``RuntimeManager`` owns it.
    """

    name: str
    dependencies: list[str] = field(default_factory=list)
    start_time: datetime = field(default_factory=utcnow)
    port: int | None = None
    entry_point: str | None = None
    status: ServiceStatus = field(default=ServiceStatus.STARTING, init=False)
    thread: threading.Thread | None = field(default=None, init=False, repr=False)
    error: str | None = field(default=None, init=False)
    finished_at: datetime | None = field(default=None, init=False)
    history: list[ServiceStatus] = field(default_factory=list, init=False)
    token: CancellationToken = field(default_factory=CancellationToken, repr=False)
    _loader_ref: weakref.ref | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        self.history.append(self.status)

    # ── Lifecycle ────────────────────────────────────────────────

    def transition_to(self, target: ServiceStatus, error: str | None = None) -> None:
        """Move to *target*, enforcing ``VALID_TRANSITIONS``."""
        with self._lock:
            validate_transition(self.status, target, service=self.name)
            self.status = target
            self.history.append(target)
            if error is not None:
                self.error = error
            if target.is_terminal:
                self.finished_at = utcnow()

    def mark_stopped(self) -> bool:
        """Set ``STOPPED`` unless a terminal status was already written.

        Returns True if this call performed the transition.
        """
        with self._lock:
            if self.status.is_terminal:
                return False
            validate_transition(self.status, ServiceStatus.STOPPED, service=self.name)
            self.status = ServiceStatus.STOPPED
            self.history.append(ServiceStatus.STOPPED)
            self.finished_at = utcnow()
            return True

    def set_port(self, port: int) -> None:
        self.port = port

    # ── Worker / loader references ───────────────────────────────

    @property
    def worker_alive(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    @property
    def is_running(self) -> bool:
        """RUNNING *and* the worker thread still alive."""
        return self.status is ServiceStatus.RUNNING and self.worker_alive

    @property
    def loader(self) -> IsolatedLoader | None:
        return self._loader_ref() if self._loader_ref is not None else None

    def attach_loader(self, loader: IsolatedLoader) -> None:
        self._loader_ref = weakref.ref(loader)

    @property
    def uptime_seconds(self) -> float:
        end = self.finished_at or utcnow()
        return (end - self.start_time).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "startTime": self.start_time.isoformat(),
            "dependencies": list(self.dependencies),
        }
        if self.port is not None:
            result["port"] = self.port
        if self.error is not None:
            result["error"] = self.error
        return result


__all__ = [
    "ServiceStatus",
    "ServiceInfo",
    "VALID_TRANSITIONS",
    "validate_transition",
    "utcnow",
]
