"""Runtime manager — the one object the command layer talks to.

``run_service`` goes through these steps, in order::

    1. manifest      ManifestSource.load(name)              → ManifestNotFound
    2. context       ExecutionContextBuilder.build(...)     → ArtifactNotFound
    3. dependencies  missing dependency artifacts            → warning, skipped
    4. loader        IsolatedLoader([primary, *deps])
    5. entry point   EntryPointResolver.resolve(context)    → EntryPoint* errors
    6. hand-off      ServiceExecutor.execute(...)           → STARTING, worker scheduled
    7. return        (the unit may still be STARTING)

Steps 1-5 run on the caller's thread and their errors propagate.  Anything
after the hand-off happens on the worker and only shows up on the unit.

The manager owns every loader it creates (``_loaders``) for as long as the
service stays registered; ``ServiceInfo`` only keeps a weak reference.
Launches are also recorded in the persisted registry under the host's pid so
another ``mycoq`` invocation can see them.

Tags:
    mycoq-runtime, orchestration, manager

Doc-Types:
    api-reference
"""

from __future__ import annotations

import os
import threading
import time
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from mycoq.core.errors import MycoqError
from mycoq.core.logging import get_logger
from mycoq.core.manifest import ManifestSource, YamlManifestSource
from mycoq.core.settings import MycoqSettings, get_settings
from mycoq.runtime.context import ExecutionContextBuilder
from mycoq.runtime.entrypoint import EntryPointResolver
from mycoq.runtime.executor import ServiceExecutor
from mycoq.runtime.loader import IsolatedLoader
from mycoq.runtime.models import ServiceInfo, ServiceStatus
from mycoq.runtime.persistent import PersistentRegistry
from mycoq.runtime.registry import RuntimeRegistry

logger = get_logger(__name__)


class RuntimeManager:
    """Launches, stops and tracks services inside this host process.

    Args:
        workspace_root: Workspace holding ``build/`` and ``manifests/``.
            Defaults to ``settings.workspace_root``.
        manifest_source: Where dependency lists come from.  Defaults to
            YAML manifests under ``<workspace>/manifests``.
        registry: Shared in-memory registry (one per host process).
        persistent_registry: Cross-process registry file.
        settings: Runtime settings; defaults to ``get_settings()``.
        executor: Worker launcher; defaults to one using
            ``settings.stop_grace_seconds``.

    Example:
        >>> manager = RuntimeManager(Path("/ws"))
        >>> info = manager.run_service("payment-service")
        >>> manager.stop_service("payment-service")
        True
    """

    def __init__(
        self,
        workspace_root: Path | str | None = None,
        manifest_source: ManifestSource | None = None,
        registry: RuntimeRegistry | None = None,
        persistent_registry: PersistentRegistry | None = None,
        settings: MycoqSettings | None = None,
        executor: ServiceExecutor | None = None,
    ):
        settings = settings if settings is not None else get_settings()
        if workspace_root is not None:
            settings = settings.model_copy(update={"workspace_root": Path(workspace_root)})
        self.settings = settings
        self.workspace_root = settings.workspace_root

        self._manifests = (
            manifest_source
            if manifest_source is not None
            else YamlManifestSource(settings.manifest_dir)
        )
        self._builder = ExecutionContextBuilder(settings.build_dir, artifact_ext=settings.artifact_ext)
        self._resolver = EntryPointResolver(
            service_suffix=self.settings.service_suffix,
            app_suffix=self.settings.app_suffix,
            domain_prefix=self.settings.domain_prefix,
        )
        self._executor = executor if executor is not None else ServiceExecutor(self.settings.stop_grace_seconds)
        self._registry = registry if registry is not None else RuntimeRegistry()
        self._persistent = (
            persistent_registry
            if persistent_registry is not None
            else PersistentRegistry(self.settings.registry_path)
        )

        self._loaders: dict[str, IsolatedLoader] = {}
        self._loaders_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Launch
    # ------------------------------------------------------------------ #

    def run_service(
        self,
        service_name: str,
        *,
        config: Mapping[str, str] | None = None,
        args: Sequence[str] = (),
    ) -> ServiceInfo:
        """Launch *service_name* and return once its worker is scheduled.

        Args:
            service_name: Service to launch.
            config: Key/value pairs layered over the manifest's ``config``.
            args: Passed to the entry point as ``main(list(args))``.

        Raises:
            ManifestNotFound: No manifest for the service.
            ArtifactNotFound: The service has not been built.
            LoaderError: The entry-point module failed to import.
            EntryPointMissing, EntryPointNotPublic, EntryPointNotStatic,
            EntryPointWrongReturnType: The entry point is unusable.
        """
        logger.info("service_launch_requested", service=service_name)

        manifest = self._manifests.load(service_name)
        merged_config = {**manifest.config, **(config or {})}
        context = self._builder.build(service_name, manifest.dependencies, merged_config)
        if manifest.entry_point:
            context.bind_entry_point(manifest.entry_point)

        loader = IsolatedLoader(service_name, context.artifact_paths)
        context.attach_loader(loader)
        try:
            entry_point = self._resolver.resolve(context)
        except MycoqError as exc:
            loader.release()
            logger.warning("service_launch_failed", service=service_name, **exc.to_dict())
            raise

        with self._loaders_lock:
            self._loaders[service_name] = loader

        info = self._executor.execute(context, entry_point, self._registry, args=args)
        self._persistent.register(service_name, os.getpid())
        return info

    # ------------------------------------------------------------------ #
    # Stop / unregister
    # ------------------------------------------------------------------ #

    def stop_service(self, service_name: str) -> bool:
        """Cooperatively stop *service_name*. Never raises for unknown names.

        Returns:
            True if the worker finished within the grace period.
        """
        stopped = self._executor.stop(service_name, self._registry)
        info = self._registry.get(service_name)
        if info is not None and info.status is ServiceStatus.STOPPED:
            self._persistent.unregister(service_name)
        return stopped

    def stop_all(self) -> dict[str, bool]:
        """Stop every unit whose worker is still alive."""
        results: dict[str, bool] = {}
        for info in self._registry.list_all():
            if info.worker_alive:
                results[info.name] = self.stop_service(info.name)
        return results

    def unregister_service(self, service_name: str) -> bool:
        """Remove the unit from memory and drop the loader it ran in.

        The loader is only released once its worker has finished; a live
        worker keeps importing through it.
        """
        info = self._registry.get(service_name)
        removed = self._registry.unregister(service_name)
        with self._loaders_lock:
            loader = self._loaders.pop(service_name, None)
        if loader is not None:
            if info is not None and info.worker_alive:
                logger.warning("service_unregistered_while_running", service=service_name)
            else:
                loader.release()
        return removed

    def close(self) -> None:
        """Drop persisted entries this process recorded for finished units."""
        pid = os.getpid()
        for info in self._registry.list_all():
            if info.worker_alive:
                continue
            entry = self._persistent.get_service(info.name)
            if entry is not None and entry.process_id == pid:
                self._persistent.unregister(info.name)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def get_registry(self) -> RuntimeRegistry:
        return self._registry

    @property
    def persistent_registry(self) -> PersistentRegistry:
        return self._persistent

    def describe_services(self) -> list[dict[str, Any]]:
        """``{name, status, startTime, port?, dependencies, error?}`` per unit."""
        return self._registry.snapshot()

    def get_loader(self, service_name: str) -> IsolatedLoader | None:
        with self._loaders_lock:
            return self._loaders.get(service_name)

    def wait(self, timeout: float | None = None, poll_interval: float = 0.2) -> bool:
        """Block until every worker has finished.

        Joins in short slices so ``KeyboardInterrupt`` still reaches the
        calling thread.

        Returns:
            True if all workers finished, False if *timeout* elapsed first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            alive = [info for info in self._registry.list_all() if info.worker_alive]
            if not alive:
                return True
            if deadline is not None and time.monotonic() >= deadline:
                return False
            alive[0].thread.join(poll_interval)

    def __repr__(self) -> str:
        return (
            f"RuntimeManager(workspace={str(self.workspace_root)!r}, "
            f"services={self._registry.count()})"
        )


__all__ = ["RuntimeManager"]
