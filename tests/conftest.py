"""
Shared pytest fixtures for mycoq tests.

This module provides:
- Settings isolation (no test ever touches ``~/.mycoq``)
- A temporary workspace with ``build/`` and ``manifests/``
- Factories for built artifacts and manifests

Usage:
    def test_something(build_artifact, write_manifest):
        build_artifact("payment-service", {"payment.py": QUICK_APP})
        write_manifest("payment-service")
"""

from __future__ import annotations

from collections.abc import Callable, Generator, Mapping, Sequence
from pathlib import Path

import pytest
import yaml

from mycoq.core.settings import MycoqSettings, reset_settings
from tests._support import write_pyz


# =============================================================================
# Settings isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """
    Point ``MYCOQ_HOME_DIR`` at a temp directory and drop cached settings.

    Applied to every test so the persisted registry never lands in the
    real home directory.
    """
    home = tmp_path / "mycoq-home"
    monkeypatch.setenv("MYCOQ_HOME_DIR", str(home))
    reset_settings()
    yield home
    reset_settings()


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Workspace root with empty ``build/`` and ``manifests/`` directories."""
    root = tmp_path / "ws"
    (root / "build").mkdir(parents=True)
    (root / "manifests").mkdir()
    monkeypatch.setenv("MYCOQ_WORKSPACE_ROOT", str(root))
    return root


@pytest.fixture
def settings(workspace: Path, isolated_home: Path) -> MycoqSettings:
    return MycoqSettings(
        workspace_root=workspace,
        home_dir=isolated_home,
        stop_grace_seconds=2.0,
    )


# =============================================================================
# Workspace factories
# =============================================================================


@pytest.fixture
def build_artifact(workspace: Path) -> Callable[[str, Mapping[str, str]], Path]:
    """Factory: build ``<ws>/build/<name>/<name>.pyz`` from a file mapping."""

    def _build(name: str, files: Mapping[str, str]) -> Path:
        return write_pyz(workspace / "build" / name / f"{name}.pyz", files)

    return _build


@pytest.fixture
def write_manifest(workspace: Path) -> Callable[..., Path]:
    """Factory: write ``<ws>/manifests/<name>.yaml``."""

    def _write(
        name: str,
        dependencies: Sequence[str] = (),
        entry_point: str | None = None,
        config: Mapping[str, str] | None = None,
    ) -> Path:
        data: dict = {"name": name, "dependencies": list(dependencies)}
        if entry_point:
            data["entryPoint"] = entry_point
        if config:
            data["config"] = dict(config)
        path = workspace / "manifests" / f"{name}.yaml"
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return path

    return _write
