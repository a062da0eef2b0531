"""Pending-request table: handle allocation and in-flight futures."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Callable

from shared_ipc.error import RemoteHandlerError, RequestTimeout

logger = logging.getLogger(__name__)


class PendingEntry:
    """Entry in the pending table (a request we are waiting on)."""
    __slots__ = ('handle', 'call', 'future', 'timer')

    def __init__(
        self,
        handle: int,
        call: str,
        future: asyncio.Future[Any],
        timer: asyncio.TimerHandle | None = None,
    ) -> None:
        self.handle = handle
        self.call = call
        self.future = future
        self.timer = timer

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class PendingRequestTable:
    """Map from handle to the future of an outstanding request.

    Handles come from a monotonic counter starting at 0; they are never
    reset or reused for the lifetime of the table. Entries are removed when
    their result arrives, when they time out, when the caller cancels the
    future, or on :meth:`reject_all`.
    """

    def __init__(self) -> None:
        self._entries: dict[int, PendingEntry] = {}
        self._counter = itertools.count()
        self._next_handle = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, handle: object) -> bool:
        return handle in self._entries

    @property
    def next_handle(self) -> int:
        """The handle the next :meth:`register` will allocate."""
        return self._next_handle

    def register(self, call: str, timeout: float | None = None) -> PendingEntry:
        """Allocate a handle and register a future under it.

        Must be called from within the event loop. The entry exists before
        anything is sent, so a reply can never arrive ahead of it.
        """
        loop = asyncio.get_running_loop()
        handle = next(self._counter)
        self._next_handle = handle + 1

        future: asyncio.Future[Any] = loop.create_future()
        entry = PendingEntry(handle=handle, call=call, future=future)
        self._entries[handle] = entry

        if timeout is not None:
            entry.timer = loop.call_later(timeout, self._expire, handle, timeout)

        future.add_done_callback(lambda f, h=handle: self._on_done(h, f))
        return entry

    def discard(self, handle: int) -> PendingEntry | None:
        """Remove an entry without completing its future."""
        entry = self._entries.pop(handle, None)
        if entry is not None:
            entry.cancel_timer()
        return entry

    def resolve(self, handle: Any, data: Any) -> bool:
        """Resolve the future for ``handle``; False if it is unknown."""
        entry = self.discard(handle)
        if entry is None:
            return False
        if not entry.future.done():
            entry.future.set_result(data)
        return True

    def reject(self, handle: Any, error: str) -> bool:
        """Fail the future for ``handle`` with a RemoteHandlerError."""
        return self.fail(handle, RemoteHandlerError(error))

    def fail(self, handle: Any, exc: BaseException) -> bool:
        """Fail the future for ``handle`` with ``exc``; False if it is unknown."""
        entry = self.discard(handle)
        if entry is None:
            return False
        if not entry.future.done():
            entry.future.set_exception(exc)
        return True

    def reject_all(self, make_error: Callable[[], BaseException]) -> int:
        """Fail every outstanding future; returns the count.

        ``make_error`` is called once per future so that no two futures
        share an exception instance.
        """
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            entry.cancel_timer()
            if not entry.future.done():
                entry.future.set_exception(make_error())
        return len(entries)

    def _expire(self, handle: int, timeout: float) -> None:
        entry = self._entries.pop(handle, None)
        if entry is None:
            return
        entry.timer = None
        logger.debug("IPC call %r (handle %d) timed out", entry.call, handle)
        if not entry.future.done():
            entry.future.set_exception(RequestTimeout(entry.call, handle, timeout))

    def _on_done(self, handle: int, future: asyncio.Future[Any]) -> None:
        # Caller cancelled the future: nothing will ever complete it
        if future.cancelled():
            self.discard(handle)
