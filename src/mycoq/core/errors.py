"""
Structured error types for the mycoq runtime.

Every failure the runtime can surface carries a category, the service it
concerns, and (where relevant) the path or symbol involved, so the command
layer can print something actionable and structured logs stay queryable.

Manifesto:
    - **Typed hierarchy:** One class per failure kind. Entry-point failures
      stay four distinct classes and are never collapsed into one.
    - **Rich context:** Errors carry service name, artifact path, symbol.
    - **Chaining:** The underlying exception is kept as ``cause``.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                         MycoqError                            │
        │        (category, retryable, context, cause)                  │
        ├──────────────────────────────────────────────────────────────┤
        │  ManifestError          ArtifactError        LoaderError      │
        │   ManifestNotFound       ArtifactNotFound                     │
        │   ManifestInvalid                                             │
        │                                                               │
        │  EntryPointError        ExecutionError       RegistryError    │
        │   EntryPointMissing      ExecutionFailure                     │
        │   EntryPointNotPublic    StopTimeout                          │
        │   EntryPointNotStatic    InvalidTransitionError               │
        │   EntryPointWrongReturnType                                   │
        │                                                               │
        │  ConfigError                                                  │
        └──────────────────────────────────────────────────────────────┘

Propagation:
    Errors raised while preparing a launch (manifest, artifact, loader,
    entry point) reach the caller of ``RuntimeManager.run_service``.
    Errors raised by a running service are wrapped in ``ExecutionFailure``
    inside its worker and only recorded on the ``ServiceInfo``.

Tags:
    error-handling, exception-hierarchy, runtime, mycoq-core

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and log routing."""

    MANIFEST = "MANIFEST"          # Manifest lookup and parsing
    ARTIFACT = "ARTIFACT"          # Built artifacts on disk
    LOADER = "LOADER"              # Isolated module loading
    ENTRY_POINT = "ENTRY_POINT"    # Startable symbol resolution
    EXECUTION = "EXECUTION"        # Running services and their workers
    REGISTRY = "REGISTRY"          # In-memory and persisted registries
    CONFIG = "CONFIG"              # Settings and invalid input
    INTERNAL = "INTERNAL"          # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"            # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only fields that were set end up in ``to_dict()``.

    Examples:
        >>> ctx = ErrorContext(service="payment-service", path="/ws/build/payment-service")
        >>> ctx.to_dict()
        {'service': 'payment-service', 'path': '/ws/build/payment-service'}

    Attributes:
        service: Name of the service the error concerns
        path: Filesystem path involved (manifest, artifact, registry file)
        symbol: Dotted symbol name involved (entry point)
        pid: Process identifier involved (persisted registry)
        metadata: Anything else worth logging
    """

    service: str | None = None
    path: str | None = None
    symbol: str | None = None
    pid: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        result: dict[str, Any] = {}
        for key in ("service", "path", "symbol", "pid"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        result.update(self.metadata)
        return result


class MycoqError(Exception):
    """
    Base exception for all mycoq errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override both per instance.

    Examples:
        >>> error = MycoqError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>

        >>> error = MycoqError("Load failed").with_context(service="user-service")
        >>> error.context.service
        'user-service'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> MycoqError:
        """
        Add context to this error (fluent API).

        Usage:
            raise LoaderError("Bad artifact").with_context(
                service="payment-service",
                path="/ws/build/payment-service/payment-service.pyz",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# MANIFEST ERRORS
# =============================================================================


class ManifestError(MycoqError):
    """Manifest lookup or parsing error."""

    default_category = ErrorCategory.MANIFEST


class ManifestNotFound(ManifestError):
    """No manifest exists for the requested service."""

    def __init__(self, service: str, path: str | None = None):
        self.service = service
        location = f": {path}" if path else ""
        super().__init__(
            f"Manifest not found for service '{service}'{location}",
            context=ErrorContext(service=service, path=path),
        )


class ManifestInvalid(ManifestError):
    """Manifest exists but cannot be understood."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# ARTIFACT / LOADER ERRORS
# =============================================================================


class ArtifactError(MycoqError):
    """Built artifact problem."""

    default_category = ErrorCategory.ARTIFACT


class ArtifactNotFound(ArtifactError):
    """The primary artifact of a service has not been built."""

    def __init__(self, service: str, path: str):
        self.service = service
        self.path = path
        super().__init__(
            f"Service artifact not found: {path}\n"
            f"Please build the service first: mycoq build {service}",
            context=ErrorContext(service=service, path=path),
        )


class LoaderError(MycoqError):
    """The isolated loader could not import a module from the artifact set."""

    default_category = ErrorCategory.LOADER


# =============================================================================
# ENTRY POINT ERRORS
# =============================================================================


class EntryPointError(MycoqError):
    """Base class for entry-point resolution failures."""

    default_category = ErrorCategory.ENTRY_POINT

    def __init__(self, message: str, *, service: str, symbol: str, **kwargs: Any):
        self.service = service
        self.symbol = symbol
        kwargs.setdefault("context", ErrorContext(service=service, symbol=symbol))
        super().__init__(message, **kwargs)


class EntryPointMissing(EntryPointError):
    """No startable ``main(args)`` could be found for the symbol."""


class EntryPointNotPublic(EntryPointError):
    """The startable symbol exists but is not publicly exported."""


class EntryPointNotStatic(EntryPointError):
    """``main`` needs an instance; it must be a staticmethod or classmethod."""


class EntryPointWrongReturnType(EntryPointError):
    """``main`` declares a return value; it must return ``None``."""


# =============================================================================
# EXECUTION ERRORS
# =============================================================================


class ExecutionError(MycoqError):
    """Error while a service is executing or being stopped."""

    default_category = ErrorCategory.EXECUTION


class ExecutionFailure(ExecutionError):
    """
    Wraps the exception raised by an invoked entry point.

    ``message`` is the underlying error's message, so it can be copied into
    ``ServiceInfo.error`` unchanged.
    """

    def __init__(self, service: str, cause: BaseException):
        self.service = service
        message = str(cause) or cause.__class__.__name__
        super().__init__(
            message,
            context=ErrorContext(service=service, metadata={"exception": cause.__class__.__name__}),
            cause=cause,
        )


class StopTimeout(ExecutionError):
    """A worker was still alive after the stop grace period. Reported, never raised to callers."""

    def __init__(self, service: str, timeout: float):
        self.service = service
        self.timeout = timeout
        super().__init__(
            f"Service did not stop gracefully within {timeout:g}s: {service}",
            context=ErrorContext(service=service, metadata={"timeout_seconds": timeout}),
        )


class InvalidTransitionError(ExecutionError, ValueError):
    """Raised when a lifecycle transition is not in the transition table."""

    def __init__(self, current: str, target: str, service: str | None = None):
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid ServiceStatus transition: {current} → {target}",
            category=ErrorCategory.INTERNAL,
            context=ErrorContext(service=service),
        )


# =============================================================================
# REGISTRY / CONFIG ERRORS
# =============================================================================


class RegistryError(MycoqError):
    """Persisted registry could not be read or written."""

    default_category = ErrorCategory.REGISTRY


class ConfigError(MycoqError):
    """Invalid settings or command input."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, MycoqError):
        return error.category
    if isinstance(error, (ImportError, SyntaxError)):
        return ErrorCategory.LOADER
    if isinstance(error, (FileNotFoundError, IsADirectoryError)):
        return ErrorCategory.ARTIFACT
    if isinstance(error, ValueError):
        return ErrorCategory.CONFIG
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "MycoqError",
    # Manifest
    "ManifestError",
    "ManifestNotFound",
    "ManifestInvalid",
    # Artifact / loader
    "ArtifactError",
    "ArtifactNotFound",
    "LoaderError",
    # Entry point
    "EntryPointError",
    "EntryPointMissing",
    "EntryPointNotPublic",
    "EntryPointNotStatic",
    "EntryPointWrongReturnType",
    # Execution
    "ExecutionError",
    "ExecutionFailure",
    "StopTimeout",
    "InvalidTransitionError",
    # Registry / config
    "RegistryError",
    "ConfigError",
    # Utilities
    "categorize_error",
]
