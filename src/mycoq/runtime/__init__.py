"""
mycoq.runtime — the execution engine.

Launches built service artifacts as isolated, concurrently running units
inside the host process and tracks their lifecycle.

Modules:
    context.py      ExecutionContext and its builder (artifact paths)
    loader.py       IsolatedLoader, a private import scope per launch
    entrypoint.py   Conventional entry point resolution and validation
    handle.py       CancellationToken and the service-side handle
    models.py       ServiceStatus, transition table, ServiceInfo
    executor.py     Worker threads and cooperative stop
    registry.py     Thread-safe in-memory registry
    persistent.py   Cross-process registry file with liveness pruning
    manager.py      RuntimeManager, the orchestration entry point
"""

from mycoq.runtime.context import ExecutionContext, ExecutionContextBuilder
from mycoq.runtime.entrypoint import EntryPoint, EntryPointResolver, conventional_symbol
from mycoq.runtime.executor import ServiceExecutor
from mycoq.runtime.handle import CancellationToken, ServiceCancelled, ServiceHandle, current_handle
from mycoq.runtime.loader import IsolatedLoader
from mycoq.runtime.manager import RuntimeManager
from mycoq.runtime.models import VALID_TRANSITIONS, ServiceInfo, ServiceStatus, validate_transition
from mycoq.runtime.persistent import PersistentRegistry, RegistryEntry, is_process_alive
from mycoq.runtime.registry import RuntimeRegistry

__all__ = [
    "ExecutionContext",
    "ExecutionContextBuilder",
    "EntryPoint",
    "EntryPointResolver",
    "conventional_symbol",
    "ServiceExecutor",
    "CancellationToken",
    "ServiceCancelled",
    "ServiceHandle",
    "current_handle",
    "IsolatedLoader",
    "RuntimeManager",
    "VALID_TRANSITIONS",
    "ServiceInfo",
    "ServiceStatus",
    "validate_transition",
    "PersistentRegistry",
    "RegistryEntry",
    "is_process_alive",
    "RuntimeRegistry",
]
