"""Simple calculator server using IPC over WebSocket.

Run:
    uv run python examples/calculator/server.py
"""

import asyncio
import logging

from shared_ipc import HostContext, IpcChannel, WebSocketIpcServer

logging.basicConfig(level=logging.INFO)

channel = IpcChannel(HostContext(name="calculator"))


@channel.handler()
def add(data: dict) -> float:
    return data["a"] + data["b"]


@channel.handler()
def subtract(data: dict) -> float:
    return data["a"] - data["b"]


@channel.handler()
def multiply(data: dict) -> float:
    return data["a"] * data["b"]


@channel.handler()
def divide(data: dict) -> float:
    if data["b"] == 0:
        raise ZeroDivisionError("Division by zero")
    return data["a"] / data["b"]


@channel.handler("log")
def log_message(data: str) -> None:
    print(f"  client says: {data}")


async def main() -> None:
    """Run the calculator server."""
    server = WebSocketIpcServer(channel, host="127.0.0.1", port=8080)
    await server.start()

    print("🧮 Calculator server running on ws://127.0.0.1:8080/ipc")
    print()
    print("Run client with: uv run python examples/calculator/client.py")
    print("Press Ctrl+C to stop")

    try:
        await asyncio.Event().wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
    finally:
        await server.stop()
        channel.close()


if __name__ == "__main__":
    asyncio.run(main())
