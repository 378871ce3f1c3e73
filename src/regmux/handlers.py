"""Handler references and how they are called.

A handler is either a plain callable or a ``"Controller@method"`` string.
Strings are parsed once, at registration, into a ``NamedMethodReference``
and resolved through a ``TypeRegistry`` every time the route fires.
"""

import importlib
import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Protocol, TypeAlias

from regmux.errors import HandlerResolutionError

Handler: TypeAlias = Callable[..., object] | str


@dataclass(frozen=True, slots=True)
class NamedMethodReference:
    """A ``"Controller@method"`` handler, optionally namespace-qualified."""

    namespace: str
    type_name: str
    method: str

    @property
    def qualified_name(self) -> str:
        name = self.type_name
        if self.namespace:
            name = f"{self.namespace}.{name}"
        return name.replace("\\", ".").strip(".")

    def __str__(self) -> str:
        return f"{self.qualified_name}@{self.method}"


HandlerRef: TypeAlias = Callable[..., object] | NamedMethodReference


class TypeRegistry(Protocol):
    def lookup(self, name: str) -> object | None: ...


class MappingRegistry:
    """Resolves controller names from an explicit name -> type mapping."""

    __slots__ = ("_types",)

    def __init__(self, types: Mapping[str, object]) -> None:
        self._types = dict(types)

    def lookup(self, name: str) -> object | None:
        return self._types.get(name)


class ImportRegistry:
    """Resolves dotted ``package.module.Controller`` names by importing them."""

    __slots__ = ()

    def lookup(self, name: str) -> object | None:
        module_path, _, attr_name = name.rpartition(".")
        if not module_path:
            return None
        try:
            module = importlib.import_module(module_path)
        except ModuleNotFoundError as e:
            # only swallow the lookup miss, not a broken import inside the module
            if e.name is None or not (module_path + ".").startswith(e.name + "."):
                raise
            return None
        return getattr(module, attr_name, None)


def parse_handler(handler: Handler, namespace: str = "") -> HandlerRef:
    """Turn a registered handler into a HandlerRef.

    Raises ``HandlerResolutionError`` for strings that are not of the form
    ``"Controller@method"``.
    """
    if callable(handler):
        return handler
    if not isinstance(handler, str):
        msg = f"handler must be a callable or str, got {type(handler).__name__}"
        raise TypeError(msg)
    type_name, sep, method = handler.partition("@")
    if not sep or not type_name or not method or "@" in method:
        msg = f"handler must be a callable or 'Controller@method', got {handler!r}"
        raise HandlerResolutionError(msg)
    return NamedMethodReference(namespace=namespace, type_name=type_name, method=method)


def resolve(ref: HandlerRef, registry: TypeRegistry) -> Callable[..., object]:
    """Find the callable a HandlerRef points at.

    Static and class methods are called on the controller itself, any other
    method on a fresh instance.
    """
    if not isinstance(ref, NamedMethodReference):
        return ref

    controller = registry.lookup(ref.qualified_name)
    if controller is None:
        msg = f"controller {ref.qualified_name!r} not found for handler {str(ref)!r}"
        raise HandlerResolutionError(msg)

    attr = inspect.getattr_static(controller, ref.method, None)
    if attr is None:
        msg = f"controller {ref.qualified_name!r} has no method {ref.method!r}"
        raise HandlerResolutionError(msg)

    is_static = isinstance(attr, (staticmethod, classmethod))
    if is_static or not isinstance(controller, type):
        target = getattr(controller, ref.method)
    else:
        target = getattr(controller(), ref.method)

    if not callable(target):
        msg = f"{str(ref)!r} is not callable"
        raise HandlerResolutionError(msg)
    return target

