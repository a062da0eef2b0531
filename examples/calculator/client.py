"""Simple calculator client using IPC over WebSocket.

Run (after starting server):
    uv run python examples/calculator/client.py
"""

import asyncio

from shared_ipc import ChannelConfig, RemoteHandlerError, WebSocketClientConfig, WebSocketIpcClient


async def main() -> None:
    """Run the calculator client."""
    print("🧮 Calculator Client")
    print("=" * 40)

    config = WebSocketClientConfig(
        url="ws://127.0.0.1:8080/ipc",
        channel=ChannelConfig(source_name="calculator-client", request_timeout=5.0),
    )

    async with WebSocketIpcClient(config) as client:
        for op, a, b in [("add", 5, 3), ("subtract", 10, 4), ("multiply", 7, 6), ("divide", 20, 4)]:
            result = await client.call(op, {"a": a, "b": b})
            print(f"  {op}({a}, {b}) = {result}")

        # Division by zero comes back as a remote error
        print("\nTesting divide(10, 0) - should fail...")
        try:
            await client.call("divide", {"a": 10, "b": 0})
        except RemoteHandlerError as e:
            print(f"  Expected error: {e}")

        client.notify("log", "all done")

    print("\n" + "=" * 40)
    print("✅ All tests completed!")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except OSError as e:
        print(f"\n❌ Error: {e}")
        print("Make sure the server is running: uv run python examples/calculator/server.py")
