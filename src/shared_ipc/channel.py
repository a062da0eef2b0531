"""IPC channel: request/response correlation over one-way messaging.

An :class:`IpcChannel` owns everything one context needs to talk to others:

1. A pending-request table correlating outgoing calls with their results
2. A handler registry with the operations this context exposes
3. The inbound router, :meth:`IpcChannel.handle_inbound`, which the embedder
   wires to its transport's "message received" notification

Both sides of a conversation use the same class. A single call flows like
this::

    caller: request()  -> resolve destination -> post call {handle: n}
    callee: handle_inbound() -> handler(data) -> post result {handle: n}
    caller: handle_inbound() -> pending[n] resolved -> future completes

A process-wide default channel backs the module-level :func:`request`,
:func:`notify`, :func:`register_handler` and :func:`handle_inbound`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, Mapping

from shared_ipc.config import ChannelConfig
from shared_ipc.destination import Destination, as_destination, resolve_destination
from shared_ipc.dispatcher import post
from shared_ipc.error import (
    ChannelClosed,
    MalformedMessage,
    NoReplyTarget,
    UntrustedSource,
)
from shared_ipc.handlers import HandlerRegistry, invoke_handler
from shared_ipc.pending import PendingRequestTable
from shared_ipc.types import (
    Handler,
    HandlerResolver,
    HostContext,
    MessageEndpoint,
    MessageEvent,
)
from shared_ipc.wire import CallMessage, ResultMessage, parse_message

logger = logging.getLogger(__name__)

# Sentinel: use the channel's configured request timeout
_UNSET: Any = object()

ReplyTarget = Destination | MessageEndpoint


class IpcChannel:
    """A request/response channel over one-way message delivery.

    Usage:
        channel = IpcChannel(HostContext(name="main"))
        channel.register_handler("add", lambda d: d["a"] + d["b"])

        port.on_message(channel.handle_inbound)
        result = await channel.request(port, "add", {"a": 2, "b": 3})
    """

    def __init__(
        self,
        host: HostContext | None = None,
        config: ChannelConfig | None = None,
        fallback_resolvers: Iterable[HandlerResolver] = (),
    ) -> None:
        """Initialize the channel.

        Args:
            host: The execution context this channel lives in
            config: Optional channel configuration
            fallback_resolvers: Resolvers consulted, in order, for calls
                with no registered handler
        """
        self.host = host or HostContext()
        self._config = config or ChannelConfig()
        self._pending = PendingRequestTable()
        self._handlers = HandlerRegistry(fallback_resolvers)
        self._closed = False

    @property
    def source(self) -> str:
        """Diagnostic label placed on every outgoing message."""
        return self.host.name or self._config.source_name

    @property
    def closed(self) -> bool:
        return self._closed

    # -------------------------------------------------------------------------
    # Handler registration
    # -------------------------------------------------------------------------

    def register_handler(self, name: str, callback: Handler) -> None:
        """Expose ``callback`` under ``name``, replacing any earlier binding."""
        self._handlers.register(name, callback)

    def unregister_handler(self, name: str) -> bool:
        return self._handlers.unregister(name)

    def has_handler(self, name: str) -> bool:
        return name in self._handlers

    def handler(self, name: str | None = None) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register_handler`."""
        return self._handlers.decorator(name)

    def add_fallback_resolver(self, resolver: HandlerResolver) -> None:
        self._handlers.add_fallback_resolver(resolver)

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    def request(
        self,
        destination: ReplyTarget | None,
        call: str,
        data: Any = None,
        *,
        timeout: float | None = _UNSET,
    ) -> asyncio.Future[Any]:
        """Invoke ``call`` in the destination context and return a future.

        The message is sent before this method returns. Send failures raise
        here, synchronously. Endpoints that write in the background report a
        failed write through :meth:`fail_send`, which fails the future.

        Args:
            destination: Where to send the call
            call: Name of the remote operation
            data: Payload passed to the remote handler
            timeout: Seconds to wait for the result; defaults to the
                configured ``request_timeout``, None waits forever

        Returns:
            A future resolving to the remote handler's result, or failing
            with RemoteHandlerError / RequestTimeout / ChannelClosed, or
            with the transport error of a failed background write

        Raises:
            InvalidDestination, NoValidTransport, InvalidMessage, ChannelClosed
        """
        self._check_open()
        if timeout is _UNSET:
            timeout = self._config.request_timeout
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive")

        entry = self._pending.register(call, timeout)
        message = CallMessage(call=call, source=self.source, data=data, handle=entry.handle)
        try:
            self._send(destination, message.to_dict())
        except Exception:
            self._pending.discard(entry.handle)
            entry.future.cancel()
            raise

        logger.debug("Sent IPC request %r with handle %d", call, entry.handle)
        return entry.future

    async def call(
        self,
        destination: ReplyTarget | None,
        call: str,
        data: Any = None,
        *,
        timeout: float | None = _UNSET,
    ) -> Any:
        """Send a request and wait for its result."""
        return await self.request(destination, call, data, timeout=timeout)

    def notify(
        self,
        destination: ReplyTarget | None,
        call: str,
        data: Any = None,
    ) -> None:
        """Send a fire-and-forget notification; no reply is expected.

        Raises:
            InvalidDestination, NoValidTransport, InvalidMessage, ChannelClosed
        """
        self._check_open()
        message = CallMessage(call=call, source=self.source, data=data)
        self._send(destination, message.to_dict())
        logger.debug("Sent IPC notification %r", call)

    def _send(self, destination: ReplyTarget | None, message: dict[str, Any]) -> None:
        endpoint = resolve_destination(as_destination(destination))
        post(endpoint, message, self.host)

    def fail_send(self, message: Mapping[str, Any], exc: BaseException) -> None:
        """Report that an endpoint could not deliver ``message`` after all.

        Endpoints that write asynchronously call this when a queued write
        fails. A request fails its future with ``exc``; notifications and
        replies have no caller waiting and are only logged.
        """
        handle = message.get("handle")
        if "call" in message and handle is not None and self._pending.fail(handle, exc):
            logger.debug("IPC request %r (handle %r) failed to send", message["call"], handle)
            return
        logger.warning("Dropped undeliverable IPC message %r: %s", message, exc)

    # -------------------------------------------------------------------------
    # Inbound routing
    # -------------------------------------------------------------------------

    async def handle_inbound(
        self,
        raw: Any,
        fallback_reply_target: ReplyTarget | None = None,
    ) -> None:
        """Route one inbound message.

        Wire this to the transport's "message received" notification.

        Args:
            raw: A :class:`MessageEvent`, or a bare message dict for
                transports that deliver the payload only
            fallback_reply_target: Where replies go when ``raw`` does not
                say (bare payloads, or events without a source)

        Raises:
            MalformedMessage: If the payload is neither a call nor a result
            UntrustedSource: If a wrapped event is not trusted
            NoReplyTarget: If a call needs a reply and there is no route back
            ChannelClosed: If the channel was closed
        """
        self._check_open()
        payload, reply_target = self._unwrap(raw, fallback_reply_target)
        message = parse_message(payload)

        if isinstance(message, CallMessage):
            await self._dispatch_call(message, reply_target)
        else:
            self._dispatch_result(message)

    def _unwrap(
        self,
        raw: Any,
        fallback_reply_target: ReplyTarget | None,
    ) -> tuple[Any, ReplyTarget | None]:
        if raw is None:
            raise MalformedMessage("Received IPC data was None")

        if isinstance(raw, MessageEvent):
            if not raw.is_trusted:
                raise UntrustedSource(
                    f"Received IPC event from origin {raw.origin!r} is not trusted"
                )
            if raw.data is None:
                raise MalformedMessage("Received IPC message was None")
            reply_target = raw.source if raw.source is not None else fallback_reply_target
            return raw.data, reply_target

        return raw, fallback_reply_target

    async def _dispatch_call(
        self,
        message: CallMessage,
        reply_target: ReplyTarget | None,
    ) -> None:
        """Run the handler for a call and reply if the call has a handle.

        Handler lookup and handler failures never propagate: they are logged, reported to the
        configured ``on_handler_error`` and returned to the caller as the
        result's ``error`` string.
        """
        result: Any = None
        error: str | None = None

        try:
            handler = self._handlers.resolve(message.call)
            if handler is None:
                logger.debug("No handler for IPC call %r from %s", message.call, message.source)
            else:
                result = await invoke_handler(handler, message.data)
        except Exception as e:
            logger.exception("Error executing IPC call %r from %s", message.call, message.source)
            error = str(e) or type(e).__name__
            self._report_handler_error(message.call, e)

        if message.handle is None:
            return

        if reply_target is None:
            raise NoReplyTarget(
                f"IPC call {message.call!r} (handle {message.handle}) has no reply target"
            )

        if error is not None:
            reply = ResultMessage.failure(message.handle, error, self.source)
        else:
            reply = ResultMessage.success(message.handle, result, self.source)
        self._send(reply_target, reply.to_dict())

    def _dispatch_result(self, message: ResultMessage) -> None:
        if message.is_error:
            matched = self._pending.reject(message.handle, message.error)
        else:
            matched = self._pending.resolve(message.handle, message.data)

        if not matched:
            logger.debug(
                "Dropping IPC result for unknown handle %r from %s",
                message.handle,
                message.source,
            )

    def _report_handler_error(self, call: str, error: Exception) -> None:
        callback = self._config.on_handler_error
        if callback is None:
            return
        try:
            callback(call, error)
        except Exception:
            logger.exception("on_handler_error callback failed for IPC call %r", call)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the channel, failing every pending request with ChannelClosed."""
        if self._closed:
            return
        self._closed = True
        count = self._pending.reject_all(lambda: ChannelClosed("IPC channel was closed"))
        logger.debug("Closed IPC channel %s, rejected %d pending requests", self.source, count)

    def _check_open(self) -> None:
        if self._closed:
            raise ChannelClosed("IPC channel is closed")

    def get_stats(self) -> dict[str, int]:
        """Get statistics about the channel.

        Returns:
            Dict with 'pending', 'handlers' and 'next_handle'
        """
        return {
            "pending": len(self._pending),
            "handlers": len(self._handlers),
            "next_handle": self._pending.next_handle,
        }


# -----------------------------------------------------------------------------
# Process-wide default channel
# -----------------------------------------------------------------------------

_default_channel: IpcChannel | None = None


def get_default_channel() -> IpcChannel:
    """Return the process-wide channel, creating it on first use."""
    global _default_channel
    if _default_channel is None or _default_channel.closed:
        _default_channel = IpcChannel()
    return _default_channel


def set_default_channel(channel: IpcChannel | None) -> None:
    """Replace the process-wide channel (None recreates it on next use)."""
    global _default_channel
    _default_channel = channel


def request(destination: ReplyTarget | None, call: str, data: Any = None) -> asyncio.Future[Any]:
    return get_default_channel().request(destination, call, data)


def notify(destination: ReplyTarget | None, call: str, data: Any = None) -> None:
    get_default_channel().notify(destination, call, data)


def register_handler(name: str, callback: Handler) -> None:
    get_default_channel().register_handler(name, callback)


async def handle_inbound(raw: Any, fallback_reply_target: ReplyTarget | None = None) -> None:
    await get_default_channel().handle_inbound(raw, fallback_reply_target)
