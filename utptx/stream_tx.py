"""The writing side of a uTP stream and the buffer it shares with the dispatcher."""

from __future__ import annotations

import asyncio
from typing import Union

from .utils import UtpBugError, fill_buffer_from_slices, prepare_2_ioslices

# Yield to the event loop after this many bytes to cooperate with other tasks.
_YIELD_EVERY = 8192


class UserTx:
    """Bounded outgoing byte buffer shared by the writer and the dispatcher."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._buffer = bytearray()
        self._vsock_closed = False
        self._writer_dropped = False
        self._writer_shutdown = False
        self._dispatcher_wakeup = asyncio.Event()
        self._writer_wakeup = asyncio.Event()

    def truncate_front(self, count: int) -> None:
        """Drop ``count`` delivered bytes from the front of the buffer."""
        skipped = min(count, len(self._buffer))
        del self._buffer[:skipped]
        if skipped:
            self._writer_wakeup.set()
        if skipped != count:
            raise UtpBugError(f"truncate_front: skipped={skipped}, count={count}")

    def read_range(self, offset: int, length: int) -> bytes:
        head, tail = prepare_2_ioslices(self._buffer, b"", offset, length)
        return head + tail

    def fill_buffer(self, out_buf: Union[bytearray, memoryview], offset: int, length: int) -> None:
        fill_buffer_from_slices(out_buf, offset, length, self._buffer, b"")

    def enqueue(self, data: bytes) -> int:
        """Append as much of ``data`` as fits; return how many bytes were taken."""
        count = min(len(data), self._capacity - len(self._buffer))
        if count > 0:
            self._buffer += data[:count]
            self._dispatcher_wakeup.set()
        return count

    def is_empty(self) -> bool:
        return not self._buffer

    def is_full(self) -> bool:
        return len(self._buffer) >= self._capacity

    def __len__(self) -> int:
        return len(self._buffer)

    def is_writer_dropped(self) -> bool:
        return self._writer_dropped

    def is_writer_shutdown(self) -> bool:
        return self._writer_shutdown

    def mark_vsock_closed(self) -> None:
        """Record that the connection died, waking any waiting writer."""
        self._vsock_closed = True
        self._writer_wakeup.set()

    def mark_writer_dropped(self) -> bool:
        """Record that the writer went away; return True the first time."""
        if self._writer_dropped:
            return False
        self._writer_dropped = True
        self._dispatcher_wakeup.set()
        return True

    async def wait_for_data(self) -> None:
        """Wait until there is data to send or the writer has finished."""
        while True:
            self._dispatcher_wakeup.clear()
            if self._buffer or self._writer_dropped or self._writer_shutdown:
                return
            await self._dispatcher_wakeup.wait()

    def _wake_dispatcher(self) -> None:
        self._dispatcher_wakeup.set()


class UtpStreamWriteHalf:
    """The user-facing writer of a uTP stream."""

    def __init__(self, user_tx: UserTx) -> None:
        self._user_tx = user_tx
        self._written_without_yield = 0

    async def write(self, data: bytes) -> int:
        """Write some of ``data``, waiting for room; return the number of bytes taken."""
        tx = self._user_tx
        if self._written_without_yield > _YIELD_EVERY:
            self._written_without_yield = 0
            await asyncio.sleep(0)
        while True:
            tx._writer_wakeup.clear()
            if tx._vsock_closed:
                raise OSError("socket closed")
            if tx._writer_shutdown:
                raise OSError("no writing after shutdown")
            if tx._writer_dropped:
                raise OSError("shutdown was initiated, can't write")
            if not data:
                return 0
            count = tx.enqueue(data)
            if count:
                self._written_without_yield += count
                return count
            self._written_without_yield = 0
            await tx._writer_wakeup.wait()

    async def write_all(self, data: bytes) -> None:
        view = memoryview(bytes(data))
        while view:
            count = await self.write(view)
            view = view[count:]

    async def flush(self) -> None:
        """Wait until every written byte has been delivered."""
        tx = self._user_tx
        while True:
            tx._writer_wakeup.clear()
            if tx.is_empty():
                return
            if tx._vsock_closed:
                raise OSError("socket died")
            await tx._writer_wakeup.wait()

    async def shutdown(self) -> None:
        """Flush, then ask for the connection to close and wait until it has."""
        tx = self._user_tx
        while True:
            tx._writer_wakeup.clear()
            if not tx.is_empty():
                if tx._vsock_closed:
                    raise OSError("socket died")
            elif tx._vsock_closed:
                return
            else:
                tx._writer_shutdown = True
                tx._wake_dispatcher()
            await tx._writer_wakeup.wait()

    def close(self) -> None:
        """Drop the writer; no further writes are possible."""
        self._user_tx.mark_writer_dropped()