"""Isolated loader — a private import scope per service launch.

Every launched service gets its own :class:`IsolatedLoader`.  Modules found
in the service's artifacts are executed into a private module table that
never touches ``sys.modules``, so two launches of the same artifact get
independent module objects (and independent module-level state).

Manifesto:
    Services running side by side in one interpreter must not see each
    other's module globals.  Python has one global module cache, so the
    loader keeps its own and redirects imports made by the service's code
    into it.  Names the artifacts do not provide fall through to the host
    interpreter, so the standard library and installed packages stay
    shared.

Architecture:

    .. code-block:: text

        IsolatedLoader("payment-service", [payment.pyz, auth.pyz, log.pyz])
        ┌──────────────────────────────────────────────────────────────┐
        │ import payment.api  (inside service code)                     │
        │     │  module.__builtins__["__import__"] is loader._import    │
        │     ▼                                                         │
        │ top-level "payment" provided by an artifact?                  │
        │     ├── yes → search artifacts in order:                      │
        │     │         1. payment.pyz  2. auth.pyz  3. log.pyz         │
        │     │         exec into loader.modules (private)              │
        │     └── no  → host builtins.__import__ (shared base scope)    │
        └──────────────────────────────────────────────────────────────┘

    Artifacts are path entries (``.pyz`` zip archives or directories);
    finders come from ``sys.path_hooks`` but are cached per loader.
    Regular and namespace packages, dotted submodules, ``fromlist``
    submodules and relative imports are supported.

Limitations:
    Only the ``import`` statement is redirected.  ``importlib.import_module``
    called from service code goes through the host's global machinery.

Release:
    The loader is owned by the ``RuntimeManager`` for the run's duration and
    released on unregister.  ``release()`` drops the private module table;
    the modules themselves are reclaimed once nothing references them.

Tags:
    mycoq-runtime, loader, isolation, import-system

Doc-Types:
    api-reference
"""

from __future__ import annotations

import builtins
import sys
import threading
from collections.abc import Iterable, Mapping
from importlib.machinery import ModuleSpec
from importlib.util import module_from_spec
from pathlib import Path
from types import MappingProxyType, ModuleType
from typing import Any

from mycoq.core.errors import LoaderError
from mycoq.core.logging import get_logger

logger = get_logger(__name__)

_host_import = builtins.__import__


def resolve_relative_name(name: str, package: str | None, level: int) -> str:
    """Resolve ``from ..x import y`` style names against *package*."""
    if not package:
        raise ImportError("attempted relative import with no known parent package")
    bits = package.rsplit(".", level - 1)
    if len(bits) < level:
        raise ImportError("attempted relative import beyond top-level package")
    base = bits[0]
    return f"{base}.{name}" if name else base


def _package_of(globals_: Mapping[str, Any] | None) -> str | None:
    if not globals_:
        return None
    package = globals_.get("__package__")
    if package is not None:
        return package
    spec = globals_.get("__spec__")
    if spec is not None:
        return spec.parent
    name = globals_.get("__name__", "")
    if "__path__" in globals_:
        return name
    return name.rpartition(".")[0]


class IsolatedLoader:
    """Private module scope over an ordered list of artifacts.

    Args:
        service_name: Owning service, for logs and errors.
        artifact_paths: Primary artifact first, then dependencies in order.
        base_import: Import used for names the artifacts don't provide.
            Defaults to the host's ``builtins.__import__``.

    Example:
        >>> loader = IsolatedLoader("payment-service", [Path("build/payment-service/payment-service.pyz")])
        >>> app_cls = loader.resolve("payment.PaymentApp")
        >>> "payment" in loader.modules
        True
        >>> "payment" in sys.modules
        False
    """

    def __init__(
        self,
        service_name: str,
        artifact_paths: Iterable[Path | str],
        base_import: Any | None = None,
    ):
        self._service_name = service_name
        self._paths = [str(Path(p)) for p in artifact_paths]
        self._base_import = base_import or _host_import
        self._modules: dict[str, ModuleType] = {}
        self._provided: dict[str, bool] = {}
        self._finders: dict[str, Any] = {}
        self._lock = threading.RLock()
        self._released = False

        self._builtins = dict(vars(builtins))
        self._builtins["__import__"] = self._import

    # ── Introspection ────────────────────────────────────────────

    @property
    def service_name(self) -> str:
        return self._service_name

    @property
    def artifact_paths(self) -> tuple[str, ...]:
        return tuple(self._paths)

    @property
    def modules(self) -> Mapping[str, ModuleType]:
        """Read-only view of the private module table."""
        return MappingProxyType(self._modules)

    @property
    def released(self) -> bool:
        return self._released

    def provides(self, name: str) -> bool:
        """True if the top-level package of *name* lives in one of the artifacts."""
        top = name.partition(".")[0]
        with self._lock:
            if top not in self._provided:
                self._provided[top] = self._find_spec(top, self._paths) is not None
            return self._provided[top]

    # ── Loading ──────────────────────────────────────────────────

    def load(self, fullname: str) -> ModuleType:
        """Import *fullname* from the artifact set into the private table.

        Raises:
            ModuleNotFoundError: If no artifact provides the module.
            LoaderError: If the loader was released or a parent isn't a package.
        """
        with self._lock:
            if self._released:
                raise LoaderError(
                    f"Loader for {self._service_name} has been released"
                ).with_context(service=self._service_name)

            module = self._modules.get(fullname)
            if module is not None:
                return module

            parent_name, _, tail = fullname.rpartition(".")
            parent: ModuleType | None = None
            if parent_name:
                parent = self.load(parent_name)
                if fullname in self._modules:
                    return self._modules[fullname]
                search = getattr(parent, "__path__", None)
                if search is None:
                    raise LoaderError(
                        f"{parent_name!r} is not a package; cannot import {fullname!r}"
                    ).with_context(service=self._service_name, symbol=fullname)
                search = list(search)
            else:
                search = self._paths

            spec = self._find_spec(fullname, search)
            if spec is None:
                raise ModuleNotFoundError(
                    f"No module named {fullname!r} in artifacts of {self._service_name}",
                    name=fullname,
                )
            module = self._execute(spec)
            if parent is not None:
                setattr(parent, tail, module)
            return module

    def resolve(self, symbol: str) -> Any:
        """Load ``module.path.Attribute`` and return the attribute.

        Raises:
            ModuleNotFoundError: Module not provided by the artifacts.
            AttributeError: Module has no such attribute.
        """
        module_name, _, attr = symbol.rpartition(".")
        if not module_name:
            raise LoaderError(
                f"Symbol must be 'module.Attribute', got {symbol!r}"
            ).with_context(service=self._service_name, symbol=symbol)
        module = self.load(module_name)
        return getattr(module, attr)

    def release(self) -> None:
        """Drop every private module and cached finder."""
        with self._lock:
            count = len(self._modules)
            self._modules.clear()
            self._provided.clear()
            self._finders.clear()
            self._released = True
        logger.debug("loader_released", service=self._service_name, modules=count)

    # ── Internals ────────────────────────────────────────────────

    def _finder_for(self, entry: str) -> Any:
        if entry not in self._finders:
            finder = None
            for hook in sys.path_hooks:
                try:
                    finder = hook(entry)
                    break
                except ImportError:
                    continue
            self._finders[entry] = finder
        return self._finders[entry]

    def _find_spec(self, fullname: str, search: Iterable[str]) -> ModuleSpec | None:
        portions: list[str] = []
        for entry in search:
            finder = self._finder_for(entry)
            if finder is None:
                continue
            spec = finder.find_spec(fullname)
            if spec is None:
                continue
            if spec.loader is not None:
                return spec
            # namespace portion
            portions.extend(spec.submodule_search_locations or ())

        if portions:
            spec = ModuleSpec(fullname, None, is_package=True)
            spec.submodule_search_locations = portions
            return spec
        return None

    def _execute(self, spec: ModuleSpec) -> ModuleType:
        loader = spec.loader
        module = module_from_spec(spec)
        module.__dict__["__builtins__"] = self._builtins
        self._modules[spec.name] = module
        if loader is None:
            return module
        try:
            loader.exec_module(module)
        except BaseException:
            self._modules.pop(spec.name, None)
            raise
        logger.debug("module_loaded", service=self._service_name, module=spec.name)
        return self._modules[spec.name]

    def _import(
        self,
        name: str,
        globals: Mapping[str, Any] | None = None,
        locals: Mapping[str, Any] | None = None,
        fromlist: Iterable[str] | None = (),
        level: int = 0,
    ) -> ModuleType:
        if level > 0:
            fullname = resolve_relative_name(name, _package_of(globals), level)
        elif self.provides(name):
            fullname = name
        else:
            return self._base_import(name, globals, locals, fromlist, level)

        module = self.load(fullname)

        if not fromlist:
            if level == 0:
                return self.load(fullname.partition(".")[0])
            if not name:
                return module
            cut_off = len(name) - len(name.partition(".")[0])
            return self._modules[module.__name__[: len(module.__name__) - cut_off]]

        if hasattr(module, "__path__"):
            self._handle_fromlist(module, fromlist)
        return module

    def _handle_fromlist(self, module: ModuleType, fromlist: Iterable[str], recursive: bool = False) -> None:
        for item in fromlist:
            if not isinstance(item, str):
                raise TypeError(f"Item in {module.__name__}.__all__ must be str, not {type(item).__name__}")
            if item == "*":
                if not recursive and hasattr(module, "__all__"):
                    self._handle_fromlist(module, module.__all__, recursive=True)
                continue
            if hasattr(module, item):
                continue
            submodule = f"{module.__name__}.{item}"
            try:
                self.load(submodule)
            except ModuleNotFoundError as exc:
                # ``from pkg import name`` where name is neither attribute nor submodule
                if exc.name != submodule:
                    raise

    def __repr__(self) -> str:
        return f"IsolatedLoader(service={self._service_name!r}, artifacts={len(self._paths)})"


__all__ = ["IsolatedLoader", "resolve_relative_name"]
