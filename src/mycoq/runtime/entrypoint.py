"""Entry-point resolution — find the startable ``main(args)`` of a service.

Convention::

    payment-service  →  payment.PaymentApp      (module ``payment``, class ``PaymentApp``)
    user-service     →  user.UserApp
    order-history    →  order_history.OrderHistoryApp

The class must expose ``main`` as a ``staticmethod`` or ``classmethod``
that takes a single sequence-of-strings argument and returns ``None``::

    class PaymentApp:
        @staticmethod
        def main(args: list[str]) -> None:
            ...

Each failing check raises its own error class:

    ============================  =========================================
    check                         error
    ============================  =========================================
    module/class/main present,    EntryPointMissing
    one ``args`` parameter
    exported (``__all__``)        EntryPointNotPublic
    callable without an instance  EntryPointNotStatic
    no declared return value      EntryPointWrongReturnType
    ============================  =========================================

A manifest ``entryPoint`` overrides the convention; the resolver reads it
from ``ExecutionContext.entry_point``.
"""

from __future__ import annotations

import collections.abc
import inspect
import typing
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from mycoq.core.errors import (
    ConfigError,
    EntryPointMissing,
    EntryPointNotPublic,
    EntryPointNotStatic,
    EntryPointWrongReturnType,
    LoaderError,
    MycoqError,
)
from mycoq.core.logging import get_logger
from mycoq.runtime.context import ExecutionContext

logger = get_logger(__name__)

ENTRY_METHOD = "main"

_SEQUENCE_ORIGINS = (list, tuple, collections.abc.Sequence, typing.Sequence)
_STRING_SEQUENCE_ANNOTATIONS = frozenset({
    "list", "list[str]", "List[str]", "typing.List[str]",
    "tuple[str,...]", "Tuple[str,...]", "typing.Tuple[str,...]",
    "Sequence[str]", "typing.Sequence[str]", "collections.abc.Sequence[str]",
})
_NONE_ANNOTATIONS = frozenset({"None", "NoneType"})


@dataclass(frozen=True)
class EntryPoint:
    """A validated, invokable entry point.

    Calling the entry point invokes ``main(args)`` with a fresh list.
    """

    symbol: str
    owner: Any
    function: Callable[[list[str]], None]

    def __call__(self, args: Sequence[str] = ()) -> None:
        self.function(list(args))


def conventional_symbol(
    service_name: str,
    service_suffix: str = "-service",
    app_suffix: str = "App",
    domain_prefix: str = "",
) -> str:
    """Derive the conventional entry-point symbol for *service_name*.

    Example:
        >>> conventional_symbol("payment-service")
        'payment.PaymentApp'
    """
    base = service_name
    if service_suffix and base.endswith(service_suffix):
        base = base[: -len(service_suffix)]
    if not base:
        raise ConfigError(
            f"Cannot derive an entry point from service name {service_name!r}"
        ).with_context(service=service_name)

    parts = [p for p in base.replace("_", "-").split("-") if p]
    module_name = "_".join(parts)
    class_name = "".join(p[0].upper() + p[1:] for p in parts) + app_suffix

    if domain_prefix:
        return f"{domain_prefix}.{module_name}.{class_name}"
    return f"{module_name}.{class_name}"


def _signature(function: Callable[..., Any]) -> inspect.Signature:
    try:
        return inspect.signature(function, eval_str=True)
    except (NameError, SyntaxError, TypeError, AttributeError):
        # unresolvable string annotation; compare the raw strings instead
        return inspect.signature(function)


def _is_none_annotation(annotation: Any) -> bool:
    if annotation is inspect.Signature.empty or annotation is None or annotation is type(None):
        return True
    return isinstance(annotation, str) and annotation.strip() in _NONE_ANNOTATIONS


def _is_string_sequence(annotation: Any) -> bool:
    if annotation is inspect.Parameter.empty:
        return True
    if isinstance(annotation, str):
        return annotation.replace(" ", "") in _STRING_SEQUENCE_ANNOTATIONS
    if annotation in (list, tuple, collections.abc.Sequence):
        return True

    origin = typing.get_origin(annotation)
    if origin not in _SEQUENCE_ORIGINS:
        return False
    args = typing.get_args(annotation)
    if origin is tuple:
        return args == (str, Ellipsis)
    return args == (str,)


def _accepts_single_args(signature: inspect.Signature) -> bool:
    positional = [
        p for p in signature.parameters.values()
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    required_other = [
        p for p in signature.parameters.values()
        if p.kind is inspect.Parameter.KEYWORD_ONLY and p.default is inspect.Parameter.empty
    ]
    if len(positional) != 1 or required_other:
        return False
    return _is_string_sequence(positional[0].annotation)


class EntryPointResolver:
    """Finds and validates the startable symbol inside an isolated loader."""

    def __init__(
        self,
        service_suffix: str = "-service",
        app_suffix: str = "App",
        domain_prefix: str = "",
    ):
        self.service_suffix = service_suffix
        self.app_suffix = app_suffix
        self.domain_prefix = domain_prefix

    def conventional_symbol(self, service_name: str) -> str:
        return conventional_symbol(
            service_name,
            service_suffix=self.service_suffix,
            app_suffix=self.app_suffix,
            domain_prefix=self.domain_prefix,
        )

    def resolve(self, context: ExecutionContext) -> EntryPoint:
        """Resolve and validate the entry point for *context*.

        Raises:
            LoaderError: No loader attached, or the module failed to import.
            EntryPointMissing / EntryPointNotPublic / EntryPointNotStatic /
            EntryPointWrongReturnType: see module docstring.
        """
        service = context.service_name
        loader = context.loader
        if loader is None:
            raise LoaderError(
                f"No loader attached to the context of {service}"
            ).with_context(service=service)

        symbol = context.entry_point or self.conventional_symbol(service)
        module_name, _, class_name = symbol.rpartition(".")
        if not module_name:
            raise EntryPointMissing(
                f"Entry point must be 'module.ClassName', got {symbol!r} for service: {service}",
                service=service,
                symbol=symbol,
            )

        logger.debug("entry_point_resolving", service=service, symbol=symbol)

        try:
            module = loader.load(module_name)
        except ModuleNotFoundError as exc:
            if exc.name and (module_name == exc.name or module_name.startswith(f"{exc.name}.")):
                raise EntryPointMissing(
                    f"Entry point module not found: {module_name} in service: {service}",
                    service=service,
                    symbol=symbol,
                    cause=exc,
                ) from exc
            raise LoaderError(
                f"Failed to import {module_name} for service {service}: {exc}", cause=exc
            ).with_context(service=service, symbol=symbol) from exc
        except MycoqError:
            raise
        except Exception as exc:
            raise LoaderError(
                f"Failed to import {module_name} for service {service}: {exc}", cause=exc
            ).with_context(service=service, symbol=symbol) from exc

        owner = getattr(module, class_name, None)
        if owner is None or not inspect.isclass(owner):
            raise EntryPointMissing(
                f"Entry point class not found: {symbol} in service: {service}",
                service=service,
                symbol=symbol,
            )

        exported = getattr(module, "__all__", None)
        if exported is not None and class_name not in exported:
            raise EntryPointNotPublic(
                f"{class_name} is not exported by {module_name}.__all__ in service: {service}",
                service=service,
                symbol=symbol,
            )

        raw = inspect.getattr_static(owner, ENTRY_METHOD, None)
        if raw is None:
            if inspect.getattr_static(owner, f"_{ENTRY_METHOD}", None) is not None:
                raise EntryPointNotPublic(
                    f"{ENTRY_METHOD}() must be public in class: {symbol}",
                    service=service,
                    symbol=symbol,
                )
            raise EntryPointMissing(
                f"No {ENTRY_METHOD}(args) method found in class: {symbol}",
                service=service,
                symbol=symbol,
            )

        if inspect.isfunction(raw):
            raise EntryPointNotStatic(
                f"{ENTRY_METHOD}() must be a staticmethod or classmethod in class: {symbol}",
                service=service,
                symbol=symbol,
            )

        function = getattr(owner, ENTRY_METHOD)
        if not callable(function):
            raise EntryPointMissing(
                f"{ENTRY_METHOD} is not callable in class: {symbol}",
                service=service,
                symbol=symbol,
            )

        signature = _signature(function)
        if not _is_none_annotation(signature.return_annotation):
            raise EntryPointWrongReturnType(
                f"{ENTRY_METHOD}() must return None in class: {symbol}",
                service=service,
                symbol=symbol,
            )

        if not _accepts_single_args(signature):
            raise EntryPointMissing(
                f"No {ENTRY_METHOD}(args: list[str]) method found in class: {symbol}",
                service=service,
                symbol=symbol,
            )

        logger.info("entry_point_resolved", service=service, symbol=symbol)
        return EntryPoint(symbol=symbol, owner=owner, function=function)


__all__ = ["EntryPoint", "EntryPointResolver", "conventional_symbol", "ENTRY_METHOD"]
