"""Cooperative cancellation and the service-side handle.

Services run as threads inside the host process and cannot be killed.
``stop`` only sets the service's :class:`CancellationToken`; the service
has to notice and return.  Service code reaches its own handle through
``current_handle()``. ``mycoq`` is not part of any artifact, so the
import is served from the host interpreter and every service sees the same
module::

    from mycoq.runtime.handle import current_handle

    class PaymentApp:
        @staticmethod
        def main(args: list[str]) -> None:
            handle = current_handle()
            handle.report_port(8081)
            while not handle.wait(1.0):
                serve_pending_requests()

``raise_if_cancelled()`` raises :class:`ServiceCancelled`; the worker treats
that exception as a clean stop rather than a failure.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from contextvars import ContextVar
from types import MappingProxyType

from mycoq.core.errors import MycoqError


class ServiceCancelled(Exception):
    """Raised inside a service that chose to abort on cancellation."""


class CancellationToken:
    """One-shot cancellation signal backed by :class:`threading.Event`."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or *timeout* elapses; True if cancelled."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ServiceCancelled()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"


class ServiceHandle:
    """What a running service may see of its own launch."""

    def __init__(
        self,
        name: str,
        token: CancellationToken,
        config: Mapping[str, str] | None = None,
        on_port: Callable[[int], None] | None = None,
    ):
        self.name = name
        self.token = token
        self.config = MappingProxyType(dict(config or {}))
        self._on_port = on_port

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def wait(self, timeout: float | None = None) -> bool:
        return self.token.wait(timeout)

    def raise_if_cancelled(self) -> None:
        self.token.raise_if_cancelled()

    def report_port(self, port: int) -> None:
        """Record the port the service listens on (metadata only)."""
        if self._on_port is not None:
            self._on_port(int(port))

    def __repr__(self) -> str:
        return f"ServiceHandle(name={self.name!r}, cancelled={self.cancelled})"


_current_handle: ContextVar[ServiceHandle | None] = ContextVar("mycoq_service_handle", default=None)


def current_handle() -> ServiceHandle:
    """Return the handle of the service running in this thread.

    Raises:
        MycoqError: Called outside a service worker.
    """
    handle = _current_handle.get()
    if handle is None:
        raise MycoqError("current_handle() called outside a running service")
    return handle


def bind_handle(handle: ServiceHandle | None):
    """Bind *handle* for the current thread/context. Returns the reset token."""
    return _current_handle.set(handle)


def reset_handle(token) -> None:
    _current_handle.reset(token)


def cancelled() -> bool:
    """True if the current service has been asked to stop."""
    return current_handle().cancelled


def wait(timeout: float | None = None) -> bool:
    return current_handle().wait(timeout)


def raise_if_cancelled() -> None:
    current_handle().raise_if_cancelled()


def report_port(port: int) -> None:
    current_handle().report_port(port)


__all__ = [
    "CancellationToken",
    "ServiceCancelled",
    "ServiceHandle",
    "current_handle",
    "bind_handle",
    "reset_handle",
    "cancelled",
    "wait",
    "raise_if_cancelled",
    "report_port",
]
