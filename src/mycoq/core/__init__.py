"""
mycoq.core — shared primitives for the runtime and the command layer.

Modules:
    errors.py          Typed error hierarchy (MycoqError and subclasses)
    logging.py         structlog configuration, get_logger and LogContext
    settings.py        MycoqSettings (pydantic-settings, MYCOQ_* env vars)
    manifest.py        ManifestSource protocol, YAML and static sources
"""

from mycoq.core.errors import (
    ArtifactNotFound,
    EntryPointError,
    EntryPointMissing,
    EntryPointNotPublic,
    EntryPointNotStatic,
    EntryPointWrongReturnType,
    ErrorCategory,
    ErrorContext,
    ExecutionFailure,
    InvalidTransitionError,
    LoaderError,
    ManifestInvalid,
    ManifestNotFound,
    MycoqError,
    StopTimeout,
)
from mycoq.core.logging import configure_logging, get_logger
from mycoq.core.manifest import ManifestSource, ServiceManifest, StaticManifestSource, YamlManifestSource
from mycoq.core.settings import MycoqSettings, get_settings

__all__ = [
    "ArtifactNotFound",
    "EntryPointError",
    "EntryPointMissing",
    "EntryPointNotPublic",
    "EntryPointNotStatic",
    "EntryPointWrongReturnType",
    "ErrorCategory",
    "ErrorContext",
    "ExecutionFailure",
    "InvalidTransitionError",
    "LoaderError",
    "ManifestInvalid",
    "ManifestNotFound",
    "MycoqError",
    "StopTimeout",
    "configure_logging",
    "get_logger",
    "ManifestSource",
    "ServiceManifest",
    "StaticManifestSource",
    "YamlManifestSource",
    "MycoqSettings",
    "get_settings",
]
