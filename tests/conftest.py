"""Pytest configuration for all tests."""

from typing import Any, Callable

import pytest

from shared_ipc.channel import IpcChannel, set_default_channel
from shared_ipc.config import ChannelConfig
from shared_ipc.memory_transport import MemoryPort, create_message_channel
from shared_ipc.types import HostContext


class RecordingEndpoint:
    """Endpoint that records what is posted to it and delivers nothing."""

    def __init__(self) -> None:
        self.messages: list[Any] = []

    def post_message(self, message: Any) -> None:
        self.messages.append(message)


class RecordingWindow:
    """Window-like endpoint that records messages with their target origin."""

    def __init__(self, origin: str) -> None:
        self.origin = origin
        self.messages: list[tuple[Any, str]] = []

    def post_message(self, message: Any, target_origin: str = "*") -> None:
        self.messages.append((message, target_origin))


class ChannelPair:
    """Two channels connected by an in-memory message channel."""

    def __init__(
        self,
        config_a: ChannelConfig | None = None,
        config_b: ChannelConfig | None = None,
    ) -> None:
        self.port_a, self.port_b = create_message_channel("a", "b")
        self.a = IpcChannel(HostContext(name="a"), config_a)
        self.b = IpcChannel(HostContext(name="b"), config_b)
        self.port_a.bind(self.a)
        self.port_b.bind(self.b)

    async def drain(self) -> None:
        """Wait until both ports have delivered everything in flight."""
        for _ in range(3):
            await self.port_a.drain()
            await self.port_b.drain()


@pytest.fixture
def recording_endpoint() -> RecordingEndpoint:
    return RecordingEndpoint()


@pytest.fixture
def recording_window_factory() -> Callable[[str], RecordingWindow]:
    return RecordingWindow


@pytest.fixture
def channel_pair_factory() -> Callable[..., ChannelPair]:
    return ChannelPair


@pytest.fixture
def channel_pair() -> ChannelPair:
    return ChannelPair()


@pytest.fixture
def fresh_default_channel():
    """Give each test its own process-wide default channel."""
    set_default_channel(None)
    yield
    set_default_channel(None)


@pytest.fixture
def port_pair() -> tuple[MemoryPort, MemoryPort]:
    return create_message_channel()
