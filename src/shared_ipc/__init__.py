"""shared-ipc - request/response IPC over one-way messaging

This module lets one execution context call named, possibly asynchronous
operations in another context over fire-and-forget primitives (worker
ports, message channels, window-like contexts, WebSockets) and get back a
result or an error.
"""

from shared_ipc.channel import (
    IpcChannel,
    get_default_channel,
    handle_inbound,
    notify,
    register_handler,
    request,
    set_default_channel,
)
from shared_ipc.config import ChannelConfig, WebSocketClientConfig
from shared_ipc.destination import (
    Destination,
    DestinationKind,
    as_destination,
    resolve_destination,
)
from shared_ipc.dispatcher import post
from shared_ipc.error import (
    ChannelClosed,
    ErrorCode,
    InvalidDestination,
    InvalidMessage,
    IpcError,
    MalformedMessage,
    NoReplyTarget,
    NoValidTransport,
    RemoteHandlerError,
    RequestTimeout,
    UntrustedSource,
)
from shared_ipc.handlers import HandlerRegistry, attribute_resolver
from shared_ipc.memory_transport import (
    FrameElement,
    MemoryPort,
    WindowPort,
    create_message_channel,
    create_window_pair,
)
from shared_ipc.pending import PendingRequestTable
from shared_ipc.types import (
    HostContext,
    MessageEndpoint,
    MessageEvent,
    NestedEndpoint,
    WindowEndpoint,
)
from shared_ipc.wire import (
    CallMessage,
    ResultMessage,
    is_call_message,
    is_result_message,
    parse_message,
)
from shared_ipc.ws_transport import (
    WebSocketEndpoint,
    WebSocketIpcClient,
    WebSocketIpcServer,
    pump_websocket,
)

__version__ = "0.1.0"

__all__ = [
    # Channel and public operations
    "IpcChannel",
    "request",
    "notify",
    "register_handler",
    "handle_inbound",
    "get_default_channel",
    "set_default_channel",
    # Configuration (Pydantic models)
    "ChannelConfig",
    "WebSocketClientConfig",
    # Destinations and dispatch
    "Destination",
    "DestinationKind",
    "as_destination",
    "resolve_destination",
    "post",
    # Errors
    "IpcError",
    "ErrorCode",
    "InvalidDestination",
    "InvalidMessage",
    "MalformedMessage",
    "NoValidTransport",
    "UntrustedSource",
    "NoReplyTarget",
    "RemoteHandlerError",
    "RequestTimeout",
    "ChannelClosed",
    # Tables
    "HandlerRegistry",
    "attribute_resolver",
    "PendingRequestTable",
    # Types
    "HostContext",
    "MessageEndpoint",
    "MessageEvent",
    "NestedEndpoint",
    "WindowEndpoint",
    # Wire format
    "CallMessage",
    "ResultMessage",
    "is_call_message",
    "is_result_message",
    "parse_message",
    # In-memory transports
    "MemoryPort",
    "WindowPort",
    "FrameElement",
    "create_message_channel",
    "create_window_pair",
    # WebSocket transport
    "WebSocketEndpoint",
    "WebSocketIpcClient",
    "WebSocketIpcServer",
    "pump_websocket",
]
