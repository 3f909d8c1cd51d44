"""Service executor — one worker thread per launched service.

The executor owns the lifecycle state machine of each execution unit::

    execute()                      worker thread                  stop()
    ─────────                      ─────────────                  ──────
    ServiceInfo(STARTING)
    registry.register() ──────┐
    thread.start()            │    bind handle + log context
    return info               └──► RUNNING
                                   main(args)
                                     ├─ returns          → STOPPED
                                     ├─ ServiceCancelled → STOPPED
                                     └─ raises anything  → FAILED (error=msg)
                                                                  token.cancel()
                                                                  join(grace)
                                                                  ├─ finished → STOPPED*
                                                                  └─ alive    → StopTimeout (logged)

    * only if the worker has not already written a terminal status.

Launching is fire-and-forget: ``execute`` returns once the worker has been
scheduled, so callers must not expect ``RUNNING`` to be visible yet.
Failures inside the worker are recorded on the unit and never re-raised.

The executor cannot kill a worker.  A service that never checks its
cancellation token keeps running after ``stop`` gives up.

Tags:
    mycoq-runtime, execution, threading, lifecycle, cancellation

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from collections.abc import Sequence

from mycoq.core.errors import ExecutionFailure, StopTimeout
from mycoq.core.logging import LogContext, get_logger
from mycoq.runtime.context import ExecutionContext
from mycoq.runtime.entrypoint import EntryPoint
from mycoq.runtime.handle import ServiceCancelled, ServiceHandle, bind_handle, reset_handle
from mycoq.runtime.models import ServiceInfo, ServiceStatus
from mycoq.runtime.registry import RuntimeRegistry

logger = get_logger(__name__)

DEFAULT_STOP_GRACE_SECONDS = 5.0


class ServiceExecutor:
    """Starts and stops service workers.

    Args:
        stop_grace_seconds: Default time ``stop`` waits for a worker.
    """

    def __init__(self, stop_grace_seconds: float = DEFAULT_STOP_GRACE_SECONDS):
        self.stop_grace_seconds = stop_grace_seconds

    # ------------------------------------------------------------------ #
    # Launch
    # ------------------------------------------------------------------ #

    def execute(
        self,
        context: ExecutionContext,
        entry_point: EntryPoint,
        registry: RuntimeRegistry,
        args: Sequence[str] = (),
    ) -> ServiceInfo:
        """Register the unit as ``STARTING`` and schedule its worker.

        Returns:
            The registered :class:`ServiceInfo`; its status may still be
            ``STARTING`` when this returns.
        """
        name = context.service_name
        info = ServiceInfo(
            name=name,
            dependencies=list(context.dependency_names),
            entry_point=entry_point.symbol,
        )
        if context.loader is not None:
            info.attach_loader(context.loader)

        handle = ServiceHandle(
            name=name,
            token=info.token,
            config=context.config,
            on_port=info.set_port,
        )
        thread = threading.Thread(
            target=self._run,
            args=(info, entry_point, handle, tuple(args)),
            name=f"service-{name}",
            daemon=True,
        )
        info.thread = thread

        registry.register(name, info)
        logger.info("service_starting", service=name, entry_point=entry_point.symbol)
        thread.start()
        return info

    def _run(
        self,
        info: ServiceInfo,
        entry_point: EntryPoint,
        handle: ServiceHandle,
        args: tuple[str, ...],
    ) -> None:
        token = bind_handle(handle)
        try:
            with LogContext(service=info.name):
                info.transition_to(ServiceStatus.RUNNING)
                logger.info("service_running", entry_point=entry_point.symbol)
                try:
                    entry_point(args)
                except ServiceCancelled:
                    info.mark_stopped()
                    logger.info("service_cancelled")
                except SystemExit as exc:
                    if exc.code in (None, 0):
                        info.mark_stopped()
                        logger.info("service_stopped", exit_code=exc.code)
                    else:
                        self._fail(info, exc)
                except BaseException as exc:
                    # KeyboardInterrupt raised inside main ends the unit too
                    self._fail(info, exc)
                else:
                    info.mark_stopped()
                    logger.info("service_stopped", uptime_seconds=round(info.uptime_seconds, 3))
        finally:
            reset_handle(token)

    @staticmethod
    def _fail(info: ServiceInfo, exc: BaseException) -> None:
        failure = ExecutionFailure(info.name, exc)
        info.transition_to(ServiceStatus.FAILED, error=failure.message)
        logger.error(
            "service_failed",
            error=failure.message,
            error_type=type(exc).__name__,
            exc_info=exc,
        )

    # ------------------------------------------------------------------ #
    # Stop
    # ------------------------------------------------------------------ #

    def stop(
        self,
        name: str,
        registry: RuntimeRegistry,
        timeout: float | None = None,
    ) -> bool:
        """Cooperatively stop *name*, waiting up to *timeout* seconds.

        Returns:
            True if the worker finished within the grace period.  False for
            an unknown or already-finished service, and when the worker is
            still alive after the grace period (reported as ``StopTimeout``,
            status left unchanged).
        """
        timeout = self.stop_grace_seconds if timeout is None else timeout
        info = registry.get(name)
        if info is None:
            logger.info("service_not_found", service=name)
            return False
        if not info.worker_alive:
            logger.info("service_not_running", service=name, status=info.status.value)
            return False

        logger.info("service_stopping", service=name, timeout_seconds=timeout)
        info.token.cancel()
        info.thread.join(timeout)

        if info.thread.is_alive():
            error = StopTimeout(name, timeout)
            logger.warning("service_stop_timeout", **error.to_dict())
            return False

        info.mark_stopped()
        logger.info("service_stop_complete", service=name, status=info.status.value)
        return True


__all__ = ["ServiceExecutor", "DEFAULT_STOP_GRACE_SECONDS"]
