"""Execution context — the resolved inputs of one launch.

An :class:`ExecutionContext` is assembled once per ``run_service`` call by
:class:`ExecutionContextBuilder` and discarded after the worker has been
handed off.  Everything is fixed at construction except two late-bound
fields set during resolution: the entry-point symbol and the loader.

Artifact layout::

    <workspace>/build/<name>/<name>.pyz          primary artifact
    <workspace>/build/<dep>/<dep>.pyz            one per dependency

A missing primary artifact is fatal (``ArtifactNotFound``).  A missing
dependency artifact is only a warning: some dependencies contribute
nothing at run time.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from mycoq.core.errors import ArtifactNotFound, MycoqError
from mycoq.core.logging import get_logger

if TYPE_CHECKING:
    from mycoq.runtime.loader import IsolatedLoader

logger = get_logger(__name__)


class ExecutionContext:
    """Resolved inputs for launching one service."""

    def __init__(
        self,
        service_name: str,
        artifact_path: Path,
        dependency_artifacts: Iterable[Path] = (),
        dependency_names: Iterable[str] = (),
        config: Mapping[str, str] | None = None,
    ):
        self._service_name = service_name
        self._artifact_path = Path(artifact_path)
        self._dependency_artifacts = tuple(Path(p) for p in dependency_artifacts)
        self._dependency_names = tuple(dependency_names)
        self._config = MappingProxyType(dict(config or {}))
        self._entry_point: str | None = None
        self._loader: IsolatedLoader | None = None

    @property
    def service_name(self) -> str:
        return self._service_name

    @property
    def artifact_path(self) -> Path:
        return self._artifact_path

    @property
    def dependency_artifacts(self) -> tuple[Path, ...]:
        """Dependency artifacts that exist, in declaration order."""
        return self._dependency_artifacts

    @property
    def dependency_names(self) -> tuple[str, ...]:
        """All declared dependency names, including ones without an artifact."""
        return self._dependency_names

    @property
    def artifact_paths(self) -> list[Path]:
        """Search order for the isolated loader: primary first, then dependencies."""
        return [self._artifact_path, *self._dependency_artifacts]

    @property
    def config(self) -> Mapping[str, str]:
        return self._config

    def get_config_value(self, key: str, default: str | None = None) -> str | None:
        return self._config.get(key, default)

    # ── Late-bound fields ────────────────────────────────────────

    @property
    def entry_point(self) -> str | None:
        return self._entry_point

    def bind_entry_point(self, symbol: str) -> None:
        if self._entry_point is not None:
            raise MycoqError(
                f"Entry point already bound for {self._service_name}: {self._entry_point}"
            )
        self._entry_point = symbol

    @property
    def loader(self) -> IsolatedLoader | None:
        return self._loader

    def attach_loader(self, loader: IsolatedLoader) -> None:
        if self._loader is not None:
            raise MycoqError(f"Loader already attached for {self._service_name}")
        self._loader = loader

    def to_dict(self) -> dict[str, Any]:
        return {
            "service": self._service_name,
            "artifact": str(self._artifact_path),
            "dependencies": list(self._dependency_names),
            "dependency_artifacts": [str(p) for p in self._dependency_artifacts],
            "entry_point": self._entry_point,
        }

    def __repr__(self) -> str:
        return (
            f"ExecutionContext(service={self._service_name!r}, "
            f"artifact={str(self._artifact_path)!r}, "
            f"dependencies={len(self._dependency_artifacts)}, "
            f"entry_point={self._entry_point!r})"
        )


class ExecutionContextBuilder:
    """Derives artifact paths from the build-output convention.

    Example:
        >>> builder = ExecutionContextBuilder(Path("/ws/build"))
        >>> builder.artifact_path("payment-service")
        PosixPath('/ws/build/payment-service/payment-service.pyz')
    """

    def __init__(self, build_dir: Path | str, artifact_ext: str = ".pyz"):
        self.build_dir = Path(build_dir)
        self.artifact_ext = artifact_ext

    def artifact_path(self, name: str) -> Path:
        return self.build_dir / name / f"{name}{self.artifact_ext}"

    def build(
        self,
        service_name: str,
        dependency_names: Iterable[str] = (),
        config: Mapping[str, str] | None = None,
    ) -> ExecutionContext:
        """Create the context, raising :class:`ArtifactNotFound` for a missing primary artifact."""
        primary = self.artifact_path(service_name)
        if not primary.exists():
            raise ArtifactNotFound(service_name, str(primary))

        names = list(dependency_names)
        found: list[Path] = []
        for dep in names:
            dep_path = self.artifact_path(dep)
            if dep_path.exists():
                found.append(dep_path)
                logger.debug("dependency_artifact_found", service=service_name, dependency=dep)
            else:
                logger.warning(
                    "dependency_artifact_missing",
                    service=service_name,
                    dependency=dep,
                    path=str(dep_path),
                )

        return ExecutionContext(
            service_name=service_name,
            artifact_path=primary,
            dependency_artifacts=found,
            dependency_names=names,
            config=config,
        )


__all__ = ["ExecutionContext", "ExecutionContextBuilder"]
