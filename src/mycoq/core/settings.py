"""Settings for the mycoq runtime.

All fields can be set via ``MYCOQ_*`` environment variables (e.g.
``MYCOQ_STOP_GRACE_SECONDS=10``) or a ``.env`` file in the working
directory.  Paths that depend on the workspace are derived properties so a
single ``MYCOQ_WORKSPACE_ROOT`` moves the build and manifest directories
together.

Tags:
    mycoq-core, configuration, settings, pydantic

Doc-Types:
    api-reference
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MycoqSettings(BaseSettings):
    """Runtime configuration.

    Fields
    ──────
    workspace_root      : Root of the workspace (``build/`` and ``manifests/`` live here)
    artifact_ext        : Extension of built artifacts (``.pyz`` zip import roots)
    home_dir            : Per-user state directory holding the persisted registry
    stop_grace_seconds  : How long ``stop`` waits for a worker to finish
    service_suffix      : Suffix stripped from service names by the entry-point convention
    app_suffix          : Suffix appended to the class name by the convention
    domain_prefix       : Optional package prefix for conventional entry points
    """

    model_config = SettingsConfigDict(
        env_prefix="MYCOQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Workspace ────────────────────────────────────────────────
    workspace_root: Path = Field(default_factory=Path.cwd)
    build_dir_name: str = Field(default="build")
    manifest_dir_name: str = Field(default="manifests")
    artifact_ext: str = Field(default=".pyz", description="Empty string for directory artifacts")

    # ── Persisted registry ───────────────────────────────────────
    home_dir: Path = Field(
        default_factory=lambda: Path.home() / ".mycoq",
        description="Per-user state directory",
    )
    registry_file_name: str = Field(default="registry.json")

    # ── Execution ────────────────────────────────────────────────
    stop_grace_seconds: float = Field(default=5.0, gt=0)

    # ── Entry-point convention ───────────────────────────────────
    service_suffix: str = Field(default="-service")
    app_suffix: str = Field(default="App")
    domain_prefix: str = Field(default="")

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="auto", description="auto | json | console")

    @field_validator("artifact_ext")
    @classmethod
    def _dotted_ext(cls, value: str) -> str:
        if value and not value.startswith("."):
            return f".{value}"
        return value

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("auto", "json", "console"):
            raise ValueError(f"log_format must be auto, json or console, got {value!r}")
        return value

    # ── Derived properties ───────────────────────────────────────

    @property
    def build_dir(self) -> Path:
        return self.workspace_root / self.build_dir_name

    @property
    def manifest_dir(self) -> Path:
        return self.workspace_root / self.manifest_dir_name

    @property
    def registry_path(self) -> Path:
        return self.home_dir / self.registry_file_name

    @property
    def json_logs(self) -> bool | None:
        if self.log_format == "auto":
            return None
        return self.log_format == "json"


_settings: MycoqSettings | None = None


def get_settings(*, _force_reload: bool = False) -> MycoqSettings:
    """Load and cache a :class:`MycoqSettings` instance."""
    global _settings
    if _settings is None or _force_reload:
        _settings = MycoqSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (for testing)."""
    global _settings
    _settings = None


__all__ = ["MycoqSettings", "get_settings", "reset_settings"]
