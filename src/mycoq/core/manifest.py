"""
Service manifest sources.

The runtime needs only three things from a service manifest: the ordered
list of dependency names, an optional entry-point override, and optional
configuration values.  Anything else the build tooling keeps in the file is
ignored here.

File Format (YAML):
    name: payment-service
    entryPoint: payment.PaymentApp      # optional
    dependencies:
      - auth-core
      - name: logging-core
    config:                             # optional
      region: eu-west-1

Usage:
    source = YamlManifestSource(Path("manifests"))
    manifest = source.load("payment-service")
    manifest.dependencies   # ['auth-core', 'logging-core']
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml

from mycoq.core.errors import ManifestInvalid, ManifestNotFound
from mycoq.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ServiceManifest:
    """What the runtime consumes from a service manifest."""

    name: str
    dependencies: tuple[str, ...] = ()
    entry_point: str | None = None
    config: Mapping[str, str] = field(default_factory=dict)


@runtime_checkable
class ManifestSource(Protocol):
    """Anything that can produce a :class:`ServiceManifest` by service name."""

    def load(self, service_name: str) -> ServiceManifest:
        """Return the manifest or raise :class:`ManifestNotFound`."""
        ...


def _parse_dependencies(raw: Any, path: Path) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ManifestInvalid(
            f"'dependencies' must be a list in {path}"
        ).with_context(path=str(path))

    names: list[str] = []
    for item in raw:
        if isinstance(item, str):
            names.append(item)
        elif isinstance(item, dict) and isinstance(item.get("name"), str):
            names.append(item["name"])
        else:
            raise ManifestInvalid(
                f"Invalid dependency entry {item!r} in {path}"
            ).with_context(path=str(path))
    return tuple(names)


def parse_manifest(service_name: str, data: Any, path: Path) -> ServiceManifest:
    """Build a :class:`ServiceManifest` from already-loaded YAML data."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ManifestInvalid(
            f"Expected a mapping in {path}, got {type(data).__name__}"
        ).with_context(service=service_name, path=str(path))

    entry_point = data.get("entryPoint") or data.get("entry_point")
    if entry_point is not None and not isinstance(entry_point, str):
        raise ManifestInvalid(
            f"'entryPoint' must be a string in {path}"
        ).with_context(service=service_name, path=str(path))

    raw_config = data.get("config") or {}
    if not isinstance(raw_config, dict):
        raise ManifestInvalid(
            f"'config' must be a mapping in {path}"
        ).with_context(service=service_name, path=str(path))

    return ServiceManifest(
        name=data.get("name", service_name),
        dependencies=_parse_dependencies(data.get("dependencies"), path),
        entry_point=entry_point,
        config={str(k): str(v) for k, v in raw_config.items()},
    )


class YamlManifestSource:
    """Reads ``<manifest_dir>/<service>.yaml``."""

    def __init__(self, manifest_dir: Path | str):
        self.manifest_dir = Path(manifest_dir)

    def path_for(self, service_name: str) -> Path:
        return self.manifest_dir / f"{service_name}.yaml"

    def load(self, service_name: str) -> ServiceManifest:
        path = self.path_for(service_name)
        if not path.is_file():
            raise ManifestNotFound(service_name, str(path))

        logger.debug("manifest_load", service=service_name, path=str(path))

        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ManifestInvalid(
                    f"Invalid YAML in {path}: {e}", cause=e
                ).with_context(service=service_name, path=str(path))

        return parse_manifest(service_name, data, path)


class StaticManifestSource:
    """In-memory manifests, keyed by service name.

    Values may be :class:`ServiceManifest` instances or plain lists of
    dependency names.
    """

    def __init__(self, manifests: Mapping[str, ServiceManifest | list[str] | tuple[str, ...]] | None = None):
        self._manifests: dict[str, ServiceManifest] = {}
        for name, value in (manifests or {}).items():
            self.add(name, value)

    def add(self, name: str, value: ServiceManifest | list[str] | tuple[str, ...]) -> None:
        if isinstance(value, ServiceManifest):
            self._manifests[name] = value
        else:
            self._manifests[name] = ServiceManifest(name=name, dependencies=tuple(value))

    def load(self, service_name: str) -> ServiceManifest:
        try:
            return self._manifests[service_name]
        except KeyError:
            raise ManifestNotFound(service_name) from None


__all__ = [
    "ServiceManifest",
    "ManifestSource",
    "YamlManifestSource",
    "StaticManifestSource",
    "parse_manifest",
]
