"""Error taxonomy for shared-ipc.

Every failure raised by the library is an :class:`IpcError` carrying an
:class:`ErrorCode`. Only :class:`RemoteHandlerError` ever crosses the
boundary, and then only as a plain string in a result message's ``error``
field.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    INVALID_DESTINATION = "invalid_destination"
    INVALID_MESSAGE = "invalid_message"
    MALFORMED_MESSAGE = "malformed_message"
    NO_VALID_TRANSPORT = "no_valid_transport"
    UNTRUSTED_SOURCE = "untrusted_source"
    NO_REPLY_TARGET = "no_reply_target"
    REMOTE_HANDLER_ERROR = "remote_handler_error"
    REQUEST_TIMEOUT = "request_timeout"
    CHANNEL_CLOSED = "channel_closed"


class IpcError(Exception):
    """Base class for all shared-ipc errors.

    Attributes:
        code: The error code of this error class
        message: Human-readable description
    """

    code: ClassVar[ErrorCode]

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class InvalidDestination(IpcError):
    """No usable endpoint could be obtained from a destination."""

    code = ErrorCode.INVALID_DESTINATION


class InvalidMessage(IpcError):
    """An outbound message failed shape validation."""

    code = ErrorCode.INVALID_MESSAGE


class MalformedMessage(InvalidMessage):
    """An inbound payload is neither a call nor a result message."""

    code = ErrorCode.MALFORMED_MESSAGE


class NoValidTransport(IpcError):
    """Neither the endpoint nor the host context can send."""

    code = ErrorCode.NO_VALID_TRANSPORT


class UntrustedSource(IpcError):
    """A wrapped inbound event failed the transport trust check."""

    code = ErrorCode.UNTRUSTED_SOURCE


class NoReplyTarget(IpcError):
    """A call carried a handle but there is nowhere to send the reply."""

    code = ErrorCode.NO_REPLY_TARGET


class RemoteHandlerError(IpcError):
    """The remote handler failed; ``remote_message`` is its description."""

    code = ErrorCode.REMOTE_HANDLER_ERROR

    def __init__(self, remote_message: str) -> None:
        super().__init__(remote_message)
        self.remote_message = remote_message


class RequestTimeout(IpcError):
    """No result arrived for a request within its timeout."""

    code = ErrorCode.REQUEST_TIMEOUT

    def __init__(self, call: str, handle: int, timeout: float) -> None:
        super().__init__(
            f"IPC call {call!r} (handle {handle}) timed out after {timeout}s"
        )
        self.call = call
        self.handle = handle
        self.timeout = timeout


class ChannelClosed(IpcError):
    """The channel was closed before or while the operation ran."""

    code = ErrorCode.CHANNEL_CLOSED
