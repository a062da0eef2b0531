"""Core type definitions for shared-ipc.

Endpoints are duck-typed through protocols so that any one-way primitive
(an in-memory port, a queue wrapper, a WebSocket adapter) can be used
without subclassing anything from this package.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol, runtime_checkable


@runtime_checkable
class MessageEndpoint(Protocol):
    """Anything that can deliver one message one way.

    Implement this for worker ports, message channels, sockets, etc.
    """

    def post_message(self, message: Any) -> None:
        """Send a message to whoever is on the other side. Must not block."""
        ...


@runtime_checkable
class WindowEndpoint(Protocol):
    """An endpoint that is itself an execution context with an origin.

    Messages to such endpoints are always sent with an explicit target
    origin so they are never delivered to a context of a different origin.
    """

    origin: str

    def post_message(self, message: Any, target_origin: str = "*") -> None:
        """Send a message, delivered only if ``target_origin`` matches."""
        ...


@runtime_checkable
class NestedEndpoint(Protocol):
    """A wrapper (e.g. an embedded frame) exposing the endpoint it hosts."""

    @property
    def content_window(self) -> MessageEndpoint | None:
        ...


@dataclass(frozen=True, slots=True)
class MessageEvent:
    """A payload wrapped with transport-level metadata.

    Attributes:
        data: The payload (a call or result message dict)
        source: Endpoint a reply should be sent to, if the transport knows it
        origin: Origin of the sending context, informational only
        is_trusted: False if the transport could not vouch for the event
    """

    data: Any
    source: MessageEndpoint | None = None
    origin: str = ""
    is_trusted: bool = True


@dataclass(slots=True)
class HostContext:
    """Description of the execution context a channel lives in.

    Attributes:
        name: Diagnostic label used as ``source`` on outgoing messages;
            the channel's configured ``source_name`` is used when None
        origin: The context's own origin, used to restrict window sends
        post_message: Global one-way send of the context, if it has one
            (a worker addressing its controller)
    """

    name: str | None = None
    origin: str | None = None
    post_message: Callable[[Any], None] | None = None

    @property
    def can_post(self) -> bool:
        return self.post_message is not None


# A handler receives the call's ``data`` and returns a value or an awaitable
Handler = Callable[[Any], Any]

# A fallback resolver maps a call name to a handler, or None if it has none
HandlerResolver = Callable[[str], "Handler | None"]
