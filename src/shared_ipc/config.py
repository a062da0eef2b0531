"""Pydantic configuration models for shared-ipc.

These models are used when a channel or client is constructed. Messages on
the wire are plain dicts and are never run through pydantic.
"""

from __future__ import annotations

from typing import Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Label used when the host context does not name itself
DEFAULT_SOURCE_NAME = "worker"


class ChannelConfig(BaseModel):
    """Configuration options for an :class:`~shared_ipc.channel.IpcChannel`.

    Attributes:
        source_name: Diagnostic label placed in the ``source`` field of
            outgoing messages when the host context has no name of its own.
        request_timeout: Seconds to wait for a result before failing a
            request with ``RequestTimeout``. ``None`` waits forever.
        on_handler_error: Optional callback invoked with ``(call, exc)`` when
            a local handler raises while serving a call.
    """

    model_config = ConfigDict(
        frozen=False,
        arbitrary_types_allowed=True,
    )

    source_name: str = Field(
        default=DEFAULT_SOURCE_NAME,
        description="Diagnostic source label for outgoing messages",
    )
    request_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Request timeout in seconds (None = wait forever)",
    )
    on_handler_error: Callable[[str, BaseException], None] | None = None

    @field_validator("source_name")
    @classmethod
    def validate_source_name(cls, v: str) -> str:
        """Source labels must be non-empty."""
        if not v:
            raise ValueError("source_name cannot be empty")
        return v


class WebSocketClientConfig(BaseModel):
    """Configuration for :class:`~shared_ipc.ws_transport.WebSocketIpcClient`.

    Attributes:
        url: The WebSocket URL (ws:// or wss://)
        heartbeat: Optional ping interval in seconds
        channel: Optional configuration for the client's channel
    """

    model_config = ConfigDict(
        frozen=False,
        arbitrary_types_allowed=True,
    )

    url: str = Field(..., description="WebSocket endpoint URL")
    heartbeat: float | None = Field(
        default=None,
        gt=0,
        description="Ping interval in seconds (None = disabled)",
    )
    channel: ChannelConfig | None = Field(
        default=None,
        description="Optional channel configuration",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL format."""
        if not v:
            raise ValueError("URL cannot be empty")

        valid_schemes = ("ws://", "wss://")
        if not any(v.startswith(scheme) for scheme in valid_schemes):
            raise ValueError(
                f"URL must start with one of: {', '.join(valid_schemes)}"
            )
        return v
