"""ServiceResolver — constructs plugin factories from their declared dependencies."""

from __future__ import annotations

import inspect
import logging
import types
import typing
from typing import TYPE_CHECKING, Any, TypeVar

from meshtree.exceptions import DependencyResolutionError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


class ServiceResolver:
    """Maps service types to instances or zero-argument providers.

    :meth:`create` calls a factory (a class or a function) with keyword
    arguments looked up by each parameter's type hint.  Optional hints
    (``Settings | None``) resolve to the registered service when there is
    one.  Unresolvable parameters fall back to their default; a required
    parameter with no registered service raises
    :class:`DependencyResolutionError`.

    Hints are evaluated with :func:`typing.get_type_hints`, so types named in
    a factory's signature must be importable at runtime from its module.
    """

    def __init__(self) -> None:
        self._instances: dict[type, Any] = {}
        self._providers: dict[type, Callable[[], Any]] = {}

    def register_instance(self, service_type: type[T], instance: T) -> None:
        """Add or replace a singleton for *service_type*."""
        self._providers.pop(service_type, None)
        self._instances[service_type] = instance

    def register_factory(self, service_type: type[T], provider: Callable[[], T]) -> None:
        """Add or replace a provider called on every resolution of *service_type*."""
        self._instances.pop(service_type, None)
        self._providers[service_type] = provider

    def has(self, service_type: type) -> bool:
        return service_type in self._instances or service_type in self._providers

    def resolve(self, service_type: type[T]) -> T | None:
        """Return the registered service, or ``None`` when there is none."""
        value = self._lookup(service_type)
        return None if value is _MISSING else value

    def create(self, factory: Callable[..., T]) -> T:
        """Call *factory* with every parameter the resolver can satisfy."""
        try:
            signature = inspect.signature(factory)
        except (TypeError, ValueError) as e:
            raise DependencyResolutionError(f"Cannot inspect factory {factory!r}: {e}") from e

        hints = self._type_hints(factory)
        kwargs: dict[str, Any] = {}

        for name, param in signature.parameters.items():
            if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue

            value = self._resolve_hint(hints.get(name))
            if value is not _MISSING:
                kwargs[name] = value
            elif param.default is inspect.Parameter.empty:
                raise DependencyResolutionError(
                    f"Cannot resolve parameter {name!r} of {_describe(factory)}"
                )

        return factory(**kwargs)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lookup(self, service_type: Any) -> Any:
        if service_type in self._instances:
            return self._instances[service_type]
        provider = self._providers.get(service_type)
        if provider is not None:
            return provider()
        return _MISSING

    def _resolve_hint(self, hint: Any) -> Any:
        if hint is None:
            return _MISSING
        origin = typing.get_origin(hint)
        if origin is typing.Union or origin is types.UnionType:
            for arg in typing.get_args(hint):
                if arg is type(None):
                    continue
                value = self._resolve_hint(arg)
                if value is not _MISSING:
                    return value
            return _MISSING
        try:
            return self._lookup(hint)
        except TypeError:
            # unhashable hint, e.g. an Annotated metadata object
            return _MISSING

    @staticmethod
    def _type_hints(factory: Callable[..., Any]) -> dict[str, Any]:
        target = factory.__init__ if isinstance(factory, type) else factory  # type: ignore[misc]
        try:
            return typing.get_type_hints(target)
        except Exception as e:
            raise DependencyResolutionError(
                f"Cannot evaluate type hints of {_describe(factory)}: {e}"
            ) from e


def _describe(factory: Callable[..., Any]) -> str:
    return getattr(factory, "__qualname__", None) or repr(factory)
