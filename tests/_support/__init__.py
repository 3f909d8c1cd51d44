"""
Test support utilities for mycoq tests.

Artifact writers and small service sources that don't fit as pytest
fixtures but are used across runtime and CLI test files.
"""

from __future__ import annotations

import textwrap
import time
import zipfile
from collections.abc import Callable, Mapping
from pathlib import Path


# =============================================================================
# Service sources
# =============================================================================

QUICK_APP = '''
from mycoq.runtime.handle import current_handle

CALLS = []


class PaymentApp:
    @staticmethod
    def main(args: list[str]) -> None:
        handle = current_handle()
        CALLS.append((list(args), dict(handle.config)))
'''

FAILING_APP = '''
class PaymentApp:
    @staticmethod
    def main(args: list[str]) -> None:
        raise RuntimeError("card processor unreachable")
'''

_BLOCKING_APP = '''
from mycoq.runtime.handle import current_handle


class {cls}:
    @staticmethod
    def main(args: list[str]) -> None:
        handle = current_handle()
        handle.report_port(8081)
        handle.wait(30)
'''


def blocking_app(cls: str = "PaymentApp") -> str:
    """Source of an app that reports port 8081 and runs until cancelled."""
    return _BLOCKING_APP.replace("{cls}", cls)


# =============================================================================
# Artifact writers
# =============================================================================


def write_pyz(path: Path, files: Mapping[str, str]) -> Path:
    """Write *files* (archive name → source) into a zip artifact at *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as archive:
        for name, source in files.items():
            archive.writestr(name, textwrap.dedent(source))
    return path


def write_tree(root: Path, files: Mapping[str, str]) -> Path:
    """Write *files* (relative path → source) under directory *root*."""
    for name, source in files.items():
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(textwrap.dedent(source), encoding="utf-8")
    return root


# =============================================================================
# Polling
# =============================================================================


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Poll *predicate* until it is true or *timeout* elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
