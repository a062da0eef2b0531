"""WebSocket transport for IpcChannel.

A WebSocket is a pair of one-way text streams; this module adapts it to the
endpoint protocol. Messages are JSON text frames. Replies to a call always
go back over the socket it arrived on.

Example:
    ```python
    server_channel = IpcChannel(HostContext(name="server"))
    server_channel.register_handler("greet", lambda name: f"Hello {name}!")

    server = WebSocketIpcServer(server_channel, port=8080)
    await server.start()

    async with WebSocketIpcClient("ws://localhost:8080/ipc") as client:
        print(await client.call("greet", "World"))  # "Hello World!"
    ```
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping

import aiohttp
from aiohttp import web

from shared_ipc.channel import IpcChannel
from shared_ipc.config import WebSocketClientConfig
from shared_ipc.error import IpcError
from shared_ipc.types import HostContext
from shared_ipc.wire import deserialize_message, serialize_message

logger = logging.getLogger(__name__)

WebSocketLike = aiohttp.ClientWebSocketResponse | web.WebSocketResponse


SendErrorCallback = Callable[[Mapping[str, Any], BaseException], None]


class WebSocketEndpoint:
    """Endpoint that posts messages as JSON text frames on a WebSocket.

    Writes happen in the background. A failed write is handed to
    ``on_send_error`` (normally :meth:`IpcChannel.fail_send`) so that a
    request waiting on it fails instead of hanging.
    """
    __slots__ = ('_ws', '_closed', '_send_tasks', '_on_send_error', 'name')

    def __init__(
        self,
        ws: WebSocketLike,
        name: str = "",
        on_send_error: SendErrorCallback | None = None,
    ) -> None:
        self._ws = ws
        self._closed = False
        self._send_tasks: set[asyncio.Task[None]] = set()
        self._on_send_error = on_send_error
        self.name = name

    @property
    def closed(self) -> bool:
        return self._closed or self._ws.closed

    def post_message(self, message: Any) -> None:
        """Queue a message for sending; does not wait for the write."""
        if self.closed:
            raise ConnectionError("WebSocket is closed")
        text = serialize_message(message)
        task = asyncio.get_running_loop().create_task(self._send(message, text))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)

    async def _send(self, message: Mapping[str, Any], text: str) -> None:
        try:
            await self._ws.send_str(text)
        except Exception as e:
            if self._on_send_error is None:
                logger.exception("Failed to send IPC message on %s", self.name or "websocket")
                return
            logger.warning("Failed to send IPC message on %s: %r", self.name or "websocket", e)
            self._on_send_error(message, e)

    async def flush(self) -> None:
        """Wait for every queued send to complete."""
        if self._send_tasks:
            await asyncio.gather(*list(self._send_tasks), return_exceptions=True)

    def set_closed(self) -> None:
        self._closed = True

    async def close(self) -> None:
        """Stop accepting messages, flush pending sends and close the socket."""
        self._closed = True
        await self.flush()
        await self._ws.close()


async def _handle_text_safe(channel: IpcChannel, text: str | bytes, endpoint: WebSocketEndpoint) -> None:
    """Route one frame, logging failures instead of ending the pump."""
    try:
        await channel.handle_inbound(deserialize_message(text), endpoint)
    except IpcError as e:
        logger.warning("Rejected IPC message on %s: %s", endpoint.name or "websocket", e)
    except Exception:
        logger.exception("Error handling IPC message on %s", endpoint.name or "websocket")


async def pump_websocket(
    ws: WebSocketLike,
    channel: IpcChannel,
    endpoint: WebSocketEndpoint,
) -> None:
    """Feed frames received on ``ws`` into ``channel`` until it closes.

    Each message is handled in its own task so that a handler making a
    nested call over the same socket cannot deadlock the pump.
    """
    tasks: set[asyncio.Task[None]] = set()
    try:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                data: str | bytes = msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                data = msg.data.decode("utf-8")
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.warning("WebSocket error on %s: %s", endpoint.name or "websocket", ws.exception())
                break
            else:
                continue

            task = asyncio.create_task(_handle_text_safe(channel, data, endpoint))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
    finally:
        endpoint.set_closed()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


class WebSocketIpcClient:
    """Client side of an IPC channel over a WebSocket connection.

    Example:
        ```python
        async with WebSocketIpcClient("ws://localhost:8080/ipc") as client:
            client.channel.register_handler("ping", lambda _: "pong")
            result = await client.call("add", {"a": 2, "b": 3})
        ```
    """

    def __init__(
        self,
        config: WebSocketClientConfig | str,
        channel: IpcChannel | None = None,
        host: HostContext | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Client configuration, or just the WebSocket URL
            channel: Channel to use; one is created from the config if omitted
            host: Host context for a created channel
        """
        if isinstance(config, str):
            config = WebSocketClientConfig(url=config)
        self.config = config
        self._owns_channel = channel is None
        self.channel = channel or IpcChannel(host, config.channel)
        self._http_session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._endpoint: WebSocketEndpoint | None = None
        self._pump_task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> WebSocketIpcClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    @property
    def endpoint(self) -> WebSocketEndpoint:
        if self._endpoint is None:
            raise RuntimeError("Not connected")
        return self._endpoint

    async def connect(self) -> None:
        """Connect to the server and start routing inbound messages."""
        self._http_session = aiohttp.ClientSession()
        self._ws = await self._http_session.ws_connect(
            self.config.url,
            heartbeat=self.config.heartbeat,
        )
        self._endpoint = WebSocketEndpoint(
            self._ws, name=self.config.url, on_send_error=self.channel.fail_send
        )
        self._pump_task = asyncio.create_task(
            pump_websocket(self._ws, self.channel, self._endpoint)
        )
        logger.info("Connected IPC WebSocket to %s", self.config.url)

    def request(self, call: str, data: Any = None, **kwargs: Any) -> asyncio.Future[Any]:
        return self.channel.request(self.endpoint, call, data, **kwargs)

    async def call(self, call: str, data: Any = None, **kwargs: Any) -> Any:
        return await self.request(call, data, **kwargs)

    def notify(self, call: str, data: Any = None) -> None:
        self.channel.notify(self.endpoint, call, data)

    async def close(self) -> None:
        """Close the connection.

        A channel created by this client is closed too, failing its pending
        requests with ChannelClosed.
        """
        if self._endpoint:
            await self._endpoint.flush()
        if self._owns_channel:
            self.channel.close()
        if self._ws:
            await self._ws.close()
            self._ws = None
        if self._pump_task:
            await self._pump_task
            self._pump_task = None
        if self._http_session:
            await self._http_session.close()
            self._http_session = None
        self._endpoint = None


class WebSocketIpcServer:
    """Serve an IPC channel to WebSocket clients.

    All connections share one channel: handlers registered on it serve
    every client, and each reply goes back on the connection its call came
    in on.
    """

    def __init__(
        self,
        channel: IpcChannel,
        host: str = "localhost",
        port: int = 8080,
        path: str = "/ipc",
    ) -> None:
        self.channel = channel
        self._host = host
        self._port = port
        self._path = path
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self.endpoints: list[WebSocketEndpoint] = []

    @property
    def port(self) -> int:
        """The bound port (useful when started with port 0)."""
        if self._site is not None and self._site._server is not None:
            sockets = getattr(self._site._server, "sockets", None)
            if sockets:
                return sockets[0].getsockname()[1]
        return self._port

    async def start(self) -> None:
        """Start the server."""
        self._app = web.Application()
        self._app.router.add_get(self._path, self.handle_websocket)

        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()

        logger.info("IPC WebSocket server started on ws://%s:%d%s",
                    self._host, self.port, self._path)

    async def stop(self) -> None:
        """Stop the server."""
        for endpoint in list(self.endpoints):
            await endpoint.close()
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        self._site = None
        self._app = None
        self.endpoints.clear()

    async def handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """aiohttp route handler for one IPC connection."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        endpoint = WebSocketEndpoint(
            ws, name=str(request.remote), on_send_error=self.channel.fail_send
        )
        self.endpoints.append(endpoint)
        logger.info("IPC WebSocket connection from %s", request.remote)
        try:
            await pump_websocket(ws, self.channel, endpoint)
        finally:
            await endpoint.flush()
            if endpoint in self.endpoints:
                self.endpoints.remove(endpoint)
            logger.info("IPC WebSocket connection from %s closed", request.remote)

        return ws
