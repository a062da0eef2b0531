"""A controller and a worker exchanging calls over an in-memory port,
plus a same-origin frame reached through its host element.

Run:
    uv run python examples/worker-greeting/main.py
"""

import asyncio

from shared_ipc import (
    Destination,
    FrameElement,
    HostContext,
    IpcChannel,
    create_message_channel,
    create_window_pair,
)


async def worker_demo() -> None:
    port_main, port_worker = create_message_channel("main", "worker")

    main_channel = IpcChannel(HostContext(name="main"))
    port_main.bind(main_channel)

    # The worker has no handle on its controller: it uses its global send
    worker_channel = IpcChannel(HostContext(name="worker", post_message=port_worker.post_message))
    port_worker.on_message(
        lambda message: worker_channel.handle_inbound(message, Destination.context())
    )

    main_channel.register_handler("generateGreeting", lambda name: f"Hello {name}!")

    async def start(_: object) -> str:
        greeting = await worker_channel.request(Destination.context(), "generateGreeting", "World")
        return f"worker got: {greeting}"

    worker_channel.register_handler("start", start)

    print(await main_channel.call(port_main, "start"))


async def frame_demo() -> None:
    origin = "https://app.example"
    parent, child = create_window_pair(origin, origin)

    parent_channel = IpcChannel(HostContext(name="parent", origin=origin))
    child_channel = IpcChannel(HostContext(name="frame", origin=origin))
    parent.bind(parent_channel)
    child.bind(child_channel)

    child_channel.register_handler("title", lambda _: "Embedded dashboard")
    frame = FrameElement(content_window=child)

    print("frame title:", await parent_channel.call(Destination.frame(frame), "title"))


async def main() -> None:
    await worker_demo()
    await frame_demo()


if __name__ == "__main__":
    asyncio.run(main())
