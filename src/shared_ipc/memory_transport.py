"""In-memory transports for contexts sharing one event loop.

Two flavours mirror the primitives the protocol was built for:

- :class:`MemoryPort` pairs, from :func:`create_message_channel`, deliver bare
  payloads, like worker ports and message channels. Whoever receives on a
  port replies through that same port.
- :class:`WindowPort` pairs, from :func:`create_window_pair`, stand for two
  windows with origins. They deliver :class:`~shared_ipc.types.MessageEvent`
  wrappers that name the sender and carry a trust flag, and drop messages
  whose target origin does not match. :class:`FrameElement` hosts a window
  the way an embedded frame does.

Payloads are deep-copied on send so the two sides never share state, and
delivered on a later loop iteration, never synchronously.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from shared_ipc.types import MessageEvent

if TYPE_CHECKING:
    from shared_ipc.channel import IpcChannel

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Any]


class _ListenerSet:
    """Listener bookkeeping shared by the in-memory endpoints."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._scheduled = 0
        self.delivered_count = 0

    def on_message(self, listener: Listener) -> None:
        """Add a listener; async listeners run as background tasks."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def _schedule(self, item: Any) -> None:
        loop = asyncio.get_running_loop()
        self._scheduled += 1
        loop.call_soon(self._deliver, item)

    def _deliver(self, item: Any) -> None:
        self._scheduled -= 1
        self.delivered_count += 1
        for listener in list(self._listeners):
            try:
                result = listener(item)
            except Exception:
                logger.exception("Message listener on %s failed", self.name or self)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Message listener on %s failed", self.name or self, exc_info=exc
            )

    async def drain(self) -> None:
        """Wait until every scheduled delivery and listener task has finished."""
        while self._scheduled or self._tasks:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(0)


class MemoryPort(_ListenerSet):
    """One end of an in-memory message channel.

    ``post_message`` on this port delivers to the listeners of its peer.
    """

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self._peer: MemoryPort | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def post_message(self, message: Any) -> None:
        """Queue a copy of ``message`` for the peer port.

        Messages to a closed peer are dropped, as with a closed channel.
        """
        if self._closed:
            raise ConnectionError(f"Port {self.name!r} is closed")
        peer = self._peer
        if peer is None or peer._closed:
            logger.debug("Dropping message posted to closed peer of %s", self.name)
            return
        peer._schedule(copy.deepcopy(message))

    def bind(self, channel: IpcChannel) -> Listener:
        """Route messages received on this port into ``channel``.

        Replies go back through this port. Returns the listener so it can be
        removed again.
        """

        def listener(message: Any) -> Any:
            return channel.handle_inbound(message, self)

        self.on_message(listener)
        return listener

    def close(self) -> None:
        self._closed = True


def create_message_channel(
    name_a: str = "port1",
    name_b: str = "port2",
) -> tuple[MemoryPort, MemoryPort]:
    """Create a pair of entangled ports."""
    a = MemoryPort(name_a)
    b = MemoryPort(name_b)
    a._peer = b
    b._peer = a
    return a, b


class WindowPort(_ListenerSet):
    """A window-like execution context with an origin.

    Posting to a window delivers a MessageEvent to that window's listeners,
    with the paired window as the event source. ``trusted=False`` marks every
    event the window receives as untrusted.
    """

    def __init__(self, origin: str, name: str = "", trusted: bool = True) -> None:
        super().__init__(name)
        self.origin = origin
        self.trusted = trusted
        self.opener: WindowPort | None = None
        self.dropped_count = 0

    def post_message(self, message: Any, target_origin: str = "*") -> None:
        """Deliver ``message`` to this window if ``target_origin`` matches."""
        if target_origin not in ("*", self.origin):
            self.dropped_count += 1
            logger.warning(
                "Dropping message for %s: target origin %r does not match %r",
                self.name or self,
                target_origin,
                self.origin,
            )
            return
        sender = self.opener
        event = MessageEvent(
            data=copy.deepcopy(message),
            source=sender,
            origin=sender.origin if sender is not None else "",
            is_trusted=self.trusted,
        )
        self._schedule(event)

    def bind(self, channel: IpcChannel) -> Listener:
        """Route events received by this window into ``channel``."""

        def listener(event: Any) -> Any:
            return channel.handle_inbound(event)

        self.on_message(listener)
        return listener


def create_window_pair(
    origin_a: str,
    origin_b: str,
    name_a: str = "parent",
    name_b: str = "child",
) -> tuple[WindowPort, WindowPort]:
    """Create two windows that see each other as the source of their events."""
    a = WindowPort(origin_a, name_a)
    b = WindowPort(origin_b, name_b)
    a.opener = b
    b.opener = a
    return a, b


@dataclass(slots=True)
class FrameElement:
    """An embedded frame; ``content_window`` is None once detached."""

    content_window: WindowPort | None = None

    def detach(self) -> None:
        self.content_window = None
