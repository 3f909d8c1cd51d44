"""mycoq command-line interface (Typer)."""

from mycoq.cli.app import app

__all__ = ["app"]
