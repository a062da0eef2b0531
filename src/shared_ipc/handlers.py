"""Handler registry: the named operations a context exposes to callers."""

from __future__ import annotations

import inspect
from typing import Any, Callable, Iterable

from shared_ipc.types import Handler, HandlerResolver


async def invoke_handler(handler: Handler, data: Any) -> Any:
    """Invoke a handler (sync or async) with the call's data.

    Args:
        handler: The callable to invoke
        data: The call message's payload

    Returns:
        The handler's result, awaited if it returned an awaitable
    """
    result = handler(data)
    if inspect.isawaitable(result):
        result = await result
    return result


def attribute_resolver(target: Any) -> HandlerResolver:
    """Build a fallback resolver that finds same-named methods on ``target``.

    Only public callables are exposed: names starting with ``_`` never
    resolve.

    Usage:
        class Legacy:
            def greet(self, name):
                return f"Hello {name}!"

        channel = IpcChannel(fallback_resolvers=[attribute_resolver(Legacy())])
    """

    def resolve(name: str) -> Handler | None:
        if name.startswith('_'):
            return None
        func = getattr(target, name, None)
        if func is None or not callable(func):
            return None
        return func

    return resolve


class HandlerRegistry:
    """Map from call name to callback, plus ordered fallback resolvers.

    Lookup order is the registry first, then each fallback resolver in the
    order it was added. At most one callback is bound per name; the last
    registration wins.
    """

    def __init__(self, fallback_resolvers: Iterable[HandlerResolver] = ()) -> None:
        self._handlers: dict[str, Handler] = {}
        self._fallbacks: list[HandlerResolver] = list(fallback_resolvers)

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def register(self, name: str, callback: Handler) -> None:
        if not isinstance(name, str) or not name:
            raise ValueError("Handler name must be a non-empty string")
        if not callable(callback):
            raise TypeError(f"Handler for {name!r} is not callable")
        self._handlers[name] = callback

    def unregister(self, name: str) -> bool:
        return self._handlers.pop(name, None) is not None

    def add_fallback_resolver(self, resolver: HandlerResolver) -> None:
        self._fallbacks.append(resolver)

    def resolve(self, name: str) -> Handler | None:
        """Return the handler for ``name``, or None if nothing provides one."""
        handler = self._handlers.get(name)
        if handler is not None:
            return handler
        for resolver in self._fallbacks:
            handler = resolver(name)
            if handler is not None:
                return handler
        return None

    def decorator(self, name: str | None = None) -> Callable[[Handler], Handler]:
        """Register the decorated function under ``name`` (default: its own)."""

        def wrap(func: Handler) -> Handler:
            self.register(name or func.__name__, func)
            return func

        return wrap
