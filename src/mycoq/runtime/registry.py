"""In-memory runtime registry — service name → execution unit.

One instance lives for the whole host process and is shared by the
manager thread and every service worker.  All reads and writes go through
an internal ``RLock``; callers never lock.

ARCHITECTURE
────────────
::

    RuntimeRegistry
      ├── .register(name, info)    ─ insert / overwrite
      ├── .unregister(name)        ─ remove, True if something was removed
      ├── .get(name)               ─ lookup
      ├── .list_all()              ─ every unit
      ├── .list_running()          ─ RUNNING *and* worker alive
      ├── .count() / .running_count()
      ├── .snapshot()              ─ list of ServiceInfo.to_dict()
      └── .summary()               ─ totals + name → status

Re-registering a name overwrites the previous unit; keeping one live unit
per name is up to the caller.

Tags:
    mycoq-runtime, registry, thread-safety

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from mycoq.core.logging import get_logger
from mycoq.runtime.models import ServiceInfo

logger = get_logger(__name__)


class RuntimeRegistry:
    """Thread-safe registry of execution units.

    Args:
        on_unregister: Called with the removed unit after a successful
            ``unregister``, outside the registry lock.

    Example:
        >>> registry = RuntimeRegistry()
        >>> registry.register("payment-service", ServiceInfo(name="payment-service"))
        >>> registry.get("payment-service").status
        <ServiceStatus.STARTING: 'STARTING'>
    """

    def __init__(self, on_unregister: Callable[[ServiceInfo], None] | None = None):
        self._services: dict[str, ServiceInfo] = {}
        self._lock = threading.RLock()
        self._on_unregister = on_unregister

    def register(self, name: str, info: ServiceInfo) -> None:
        with self._lock:
            replaced = name in self._services
            self._services[name] = info
        logger.debug("service_registered", service=name, replaced=replaced)

    def unregister(self, name: str) -> bool:
        """Remove *name*. Returns True if an entry was removed."""
        with self._lock:
            info = self._services.pop(name, None)
        if info is None:
            return False
        logger.debug("service_unregistered", service=name)
        if self._on_unregister is not None:
            self._on_unregister(info)
        return True

    def get(self, name: str) -> ServiceInfo | None:
        with self._lock:
            return self._services.get(name)

    def is_registered(self, name: str) -> bool:
        with self._lock:
            return name in self._services

    def is_running(self, name: str) -> bool:
        info = self.get(name)
        return info is not None and info.is_running

    def list_all(self) -> list[ServiceInfo]:
        with self._lock:
            return list(self._services.values())

    def list_running(self) -> list[ServiceInfo]:
        """Units whose status is RUNNING and whose worker thread is alive."""
        return [info for info in self.list_all() if info.is_running]

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._services)

    def count(self) -> int:
        with self._lock:
            return len(self._services)

    def running_count(self) -> int:
        return len(self.list_running())

    def snapshot(self) -> list[dict[str, Any]]:
        return [info.to_dict() for info in self.list_all()]

    def summary(self) -> dict[str, Any]:
        services = self.list_all()
        return {
            "total": len(services),
            "running": sum(1 for info in services if info.is_running),
            "services": {info.name: info.status.value for info in services},
        }

    def clear(self) -> None:
        """Drop every entry without calling ``on_unregister`` (for testing)."""
        with self._lock:
            self._services.clear()

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._services


__all__ = ["RuntimeRegistry"]
