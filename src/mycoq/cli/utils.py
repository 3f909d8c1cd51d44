"""
CLI utility helpers — output formatting and option parsing.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from mycoq.core.errors import MycoqError
from mycoq.runtime.models import utcnow
from mycoq.runtime.persistent import RegistryEntry

console = Console()
err_console = Console(stderr=True)


# ── Option parsing ───────────────────────────────────────────────────────


def parse_key_values(items: Iterable[str] | None) -> dict[str, str]:
    """Turn ``["port=8081", "mode=dev"]`` into ``{"port": "8081", "mode": "dev"}``."""
    result: dict[str, str] = {}
    for item in items or ():
        key, sep, value = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got {item!r}", param_hint="--config")
        result[key] = value
    return result


# ── Output helpers ───────────────────────────────────────────────────────


def format_duration(seconds: float) -> str:
    """``3725`` → ``'1h 2m 5s'``; ``65`` → ``'1m 5s'``; ``4`` → ``'4s'``."""
    total = max(int(seconds), 0)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def uptime_since(start: datetime, now: datetime | None = None) -> str:
    return format_duration(((now or utcnow()) - start).total_seconds())


def print_error(exc: MycoqError) -> None:
    """Print a synchronous runtime failure the way every command reports it."""
    err_console.print(f"[bold red]Error[/bold red] ({exc.category.value}): {exc.message}")


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def render_registry_entries(entries: Mapping[str, RegistryEntry], *, title: str = "Running Services") -> None:
    """Render persisted registry entries as a Rich table."""
    table = Table(title=title, show_lines=False, pad_edge=False)
    table.add_column("Service", style="bold")
    table.add_column("Status")
    table.add_column("PID", justify="right")
    table.add_column("Uptime", justify="right")
    for name in sorted(entries):
        entry = entries[name]
        table.add_row(
            entry.service_name,
            _status_markup(entry.status),
            str(entry.process_id),
            uptime_since(entry.start_time),
        )
    console.print(table)


def _status_markup(status: str) -> str:
    colour = {"RUNNING": "green", "STARTING": "cyan", "STOPPED": "dim", "FAILED": "red"}.get(status)
    return f"[{colour}]{status}[/{colour}]" if colour else status
