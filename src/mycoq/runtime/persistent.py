"""Persisted registry — launches visible across host-process invocations.

A separate ``mycoq status`` invocation cannot see another process's
in-memory registry, so every launch is also recorded in a per-user JSON
file (``~/.mycoq/registry.json`` by default)::

    {
      "payment-service": {
        "serviceName": "payment-service",
        "processId": 41235,
        "startTime": "2026-10-19T08:15:02.113Z",
        "status": "RUNNING"
      }
    }

Every read prunes entries whose process no longer exists (``kill(pid, 0)``
semantics) and writes the pruned set back if anything was dropped.

Failure handling:
    - A missing or empty file is an empty registry.
    - A file that cannot be read, or is not a JSON object, is left
      untouched: reads return nothing and writes are skipped with a
      warning, so live entries are never overwritten by a blind save.
    - A single malformed entry is skipped with a warning; the other
      entries stay visible.  It is dropped on the next successful write.
    - Write failures are logged, never raised.

Concurrency:
    ``register`` and ``unregister`` are read-modify-write cycles over the
    whole file.  Threads of one process are serialised by a module-level
    lock; nothing coordinates separate processes, so two host processes
    writing at the same time can lose one of the updates (last write wins).

Tags:
    mycoq-runtime, registry, persistence, liveness

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
import os
import threading
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from mycoq.core.errors import RegistryError
from mycoq.core.logging import get_logger
from mycoq.runtime.models import utcnow

logger = get_logger(__name__)

REGISTRY_DIR_NAME = ".mycoq"
REGISTRY_FILE_NAME = "registry.json"


def default_registry_path() -> Path:
    return Path.home() / REGISTRY_DIR_NAME / REGISTRY_FILE_NAME


class RegistryEntry(BaseModel):
    """One persisted launch record."""

    model_config = ConfigDict(populate_by_name=True)

    service_name: str = Field(alias="serviceName")
    process_id: int = Field(alias="processId")
    start_time: datetime = Field(default_factory=utcnow, alias="startTime")
    status: str = "RUNNING"


_registry_adapter = TypeAdapter(dict[str, RegistryEntry])

# in-process only; see module docstring
_file_lock = threading.RLock()


def is_process_alive(pid: int) -> bool:
    """Signal-0 liveness check. Any failure, including EPERM, counts as dead."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except OSError:
        return False
    return True


class PersistentRegistry:
    """File-backed registry of launched services.

    Args:
        path: Registry file. Defaults to ``~/.mycoq/registry.json``.
    """

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path) if path is not None else default_registry_path()

    # ── Public API ───────────────────────────────────────────────

    def register(self, service_name: str, pid: int, status: str = "RUNNING") -> RegistryEntry:
        """Record *service_name* as launched by process *pid*.

        The entry is returned even when the file could not be read and the
        write was skipped.
        """
        entry = RegistryEntry(service_name=service_name, process_id=pid, status=status)
        with _file_lock:
            entries = self._load()
            if entries is None:
                self._skip_write("register", service_name)
                return entry
            entries[service_name] = entry
            self._save(entries)
        logger.debug("registry_entry_written", service=service_name, pid=pid, path=str(self.path))
        return entry

    def unregister(self, service_name: str) -> bool:
        """Remove *service_name*. Returns True if an entry was removed."""
        with _file_lock:
            entries = self._load()
            if entries is None:
                self._skip_write("unregister", service_name)
                return False
            if entries.pop(service_name, None) is None:
                return False
            self._save(entries)
        logger.debug("registry_entry_removed", service=service_name, path=str(self.path))
        return True

    def get_all_services(self) -> dict[str, RegistryEntry]:
        """Return live entries, pruning (and persisting the removal of) dead ones."""
        with _file_lock:
            entries = self._load()
            if entries is None:
                return {}
            alive = {
                name: entry
                for name, entry in entries.items()
                if self.is_process_alive(entry.process_id)
            }
            if len(alive) == len(entries):
                return alive
            self._save(alive)
        logger.info("registry_pruned", services=sorted(set(entries) - set(alive)), path=str(self.path))
        return alive

    def get_service(self, service_name: str) -> RegistryEntry | None:
        return self.get_all_services().get(service_name)

    @staticmethod
    def is_process_alive(pid: int) -> bool:
        return is_process_alive(pid)

    # ── File I/O ─────────────────────────────────────────────────

    def _load(self) -> dict[str, RegistryEntry] | None:
        """Read the file. ``None`` means unreadable: callers must not write."""
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8")
            if not raw.strip():
                return {}
            data = json.loads(raw)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            self._warn("registry_load_failed", f"Cannot read registry file: {exc}", exc)
            return None
        if not isinstance(data, dict):
            self._warn("registry_load_failed", f"Registry file is not a JSON object: {type(data).__name__}")
            return None

        entries: dict[str, RegistryEntry] = {}
        for name, value in data.items():
            try:
                entries[name] = RegistryEntry.model_validate(value)
            except ValidationError as exc:
                self._warn(
                    "registry_entry_invalid",
                    f"Skipping invalid registry entry {name!r}",
                    exc,
                    service=name,
                )
        return entries

    def _save(self, entries: dict[str, RegistryEntry]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = _registry_adapter.dump_json(entries, by_alias=True, indent=2)
            self.path.write_bytes(payload)
        except OSError as exc:
            self._warn("registry_save_failed", f"Cannot write registry file: {exc}", exc)

    def _skip_write(self, operation: str, service_name: str) -> None:
        logger.warning(
            "registry_write_skipped",
            operation=operation,
            service=service_name,
            path=str(self.path),
        )

    def _warn(self, event: str, message: str, cause: BaseException | None = None, **context) -> None:
        error = RegistryError(message, cause=cause).with_context(path=str(self.path), **context)
        logger.warning(event, **error.to_dict())

    def __repr__(self) -> str:
        return f"PersistentRegistry(path={str(self.path)!r})"


__all__ = [
    "PersistentRegistry",
    "RegistryEntry",
    "is_process_alive",
    "default_registry_path",
]
