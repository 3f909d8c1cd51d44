"""
Root Typer application for the mycoq CLI.

Only the runtime commands live here (``run``, ``status``, ``stop``); they
are thin wrappers over :class:`~mycoq.runtime.manager.RuntimeManager` and
the persisted registry.
"""

from __future__ import annotations

import os
from pathlib import Path

import typer
from typer import Typer

from mycoq import __version__
from mycoq.cli.utils import (
    console,
    err_console,
    parse_key_values,
    print_error,
    print_json,
    render_registry_entries,
)
from mycoq.core.errors import MycoqError
from mycoq.core.logging import configure_logging
from mycoq.core.settings import get_settings
from mycoq.runtime.manager import RuntimeManager
from mycoq.runtime.models import ServiceStatus

app = Typer(
    name="mycoq",
    help="mycoq — run built workspace services in isolated workers.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("mycoq")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"mycoq {v}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    workspace: Path | None = typer.Option(  # noqa: UP007
        None,
        "--workspace",
        "-w",
        help="Workspace root (defaults to MYCOQ_WORKSPACE_ROOT or the current directory).",
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."),  # noqa: UP007
) -> None:
    """mycoq CLI — launch, inspect and stop workspace services."""
    settings = get_settings()
    try:
        configure_logging(level=log_level or settings.log_level, json_format=settings.json_logs)
    except MycoqError as exc:
        print_error(exc)
        raise typer.Exit(code=2)
    ctx.obj = {"workspace": workspace}


def _manager(ctx: typer.Context) -> RuntimeManager:
    workspace = (ctx.obj or {}).get("workspace")
    return RuntimeManager(workspace_root=workspace, settings=get_settings())


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("run")
def run(
    ctx: typer.Context,
    service: str = typer.Argument(..., help="Service to launch, e.g. payment-service"),
    config: list[str] | None = typer.Option(  # noqa: UP007
        None, "--config", "-c", help="KEY=VALUE handed to the service (repeatable)."
    ),
    arg: list[str] | None = typer.Option(  # noqa: UP007
        None, "--arg", "-a", help="Argument passed to main(args) (repeatable)."
    ),
    detach: bool = typer.Option(False, "--detach", help="Return right after launch instead of waiting."),
) -> None:
    """Launch a built service and keep it running until it finishes or Ctrl+C.

    Example::

        mycoq run payment-service
        mycoq run payment-service -c region=eu -a --verbose
    """
    manager = _manager(ctx)
    try:
        info = manager.run_service(service, config=parse_key_values(config), args=arg or [])
    except MycoqError as exc:
        print_error(exc)
        raise typer.Exit(code=1)

    console.print(f"[bold green]Started[/bold green] {service} [dim]({info.entry_point})[/dim]")
    if detach:
        return

    console.print("\nPress Ctrl+C to stop all services and exit.\n")
    try:
        manager.wait()
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping services…[/yellow]")
        for name, stopped in manager.stop_all().items():
            if not stopped:
                err_console.print(f"[yellow]{name} did not stop gracefully[/yellow]")
    finally:
        manager.close()

    failed = False
    for unit in manager.get_registry().list_all():
        line = f"  {unit.name}: {unit.status.value}"
        if unit.status is ServiceStatus.FAILED:
            failed = True
            line += f" [red]({unit.error})[/red]"
        console.print(line)
    if failed:
        raise typer.Exit(code=1)


@app.command("status")
def status(
    as_json: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Show services recorded as running by any mycoq process.

    Entries whose process has exited are pruned on every read.
    """
    from mycoq.runtime.persistent import PersistentRegistry

    entries = PersistentRegistry(get_settings().registry_path).get_all_services()

    if as_json:
        print_json({name: entry.model_dump(mode="json", by_alias=True) for name, entry in entries.items()})
        return

    if not entries:
        console.print("No services running.")
        return

    render_registry_entries(entries)
    console.print(f"\nTotal: {len(entries)} service(s) running")


@app.command("stop")
def stop(
    ctx: typer.Context,
    service: str = typer.Argument(..., help="Service to stop"),
) -> None:
    """Ask a service to stop. Never fails; unknown services are a no-op.

    Services are threads of the process that launched them, so only that
    process can actually stop them.
    """
    manager = _manager(ctx)
    if manager.stop_service(service):
        console.print(f"[green]Stopped[/green] {service}")
        return

    entry = manager.persistent_registry.get_service(service)
    if entry is None:
        console.print(f"[yellow]Service not running: {service}[/yellow]")
    elif entry.process_id != os.getpid():
        console.print(
            f"[yellow]{service} runs in process {entry.process_id}; "
            f"stop it from that process (Ctrl+C).[/yellow]"
        )
    else:
        console.print(f"[yellow]{service} did not stop gracefully[/yellow]")
