"""Transport and environment abstractions, with real and mock implementations."""

from __future__ import annotations

import asyncio
import random
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

Address = Tuple[Any, ...]


class Transport(ABC):
    """The datagram transport underneath uTP."""

    @abstractmethod
    async def recv_from(self, size: int) -> Tuple[bytes, Address]:
        """Receive one datagram of at most ``size`` bytes."""

    @abstractmethod
    async def send_to(self, data: bytes, target: Address) -> int:
        """Send one datagram to ``target``; return the number of bytes sent."""

    @abstractmethod
    def bind_addr(self) -> Address:
        """The local address the transport is bound to."""


class _DatagramQueue(asyncio.DatagramProtocol):
    def __init__(self) -> None:
        self.queue: "asyncio.Queue[Any]" = asyncio.Queue()

    def datagram_received(self, data: bytes, addr: Address) -> None:
        self.queue.put_nowait((data, addr))

    def error_received(self, exc: Exception) -> None:
        self.queue.put_nowait(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self.queue.put_nowait(exc or ConnectionError("transport closed"))


class UdpTransport(Transport):
    """A UDP socket driven by asyncio."""

    def __init__(self, transport: asyncio.DatagramTransport, protocol: _DatagramQueue) -> None:
        self._transport = transport
        self._protocol = protocol

    @classmethod
    async def bind(cls, addr: Address) -> "UdpTransport":
        loop = asyncio.get_running_loop()
        transport, protocol = await loop.create_datagram_endpoint(
            _DatagramQueue, local_addr=addr
        )
        return cls(transport, protocol)

    async def recv_from(self, size: int) -> Tuple[bytes, Address]:
        item = await self._protocol.queue.get()
        if isinstance(item, BaseException):
            raise item
        data, addr = item
        return data[:size], addr

    async def send_to(self, data: bytes, target: Address) -> int:
        self._transport.sendto(data, target)
        return len(data)

    def bind_addr(self) -> Address:
        return tuple(self._transport.get_extra_info("sockname")[:2])

    def close(self) -> None:
        self._transport.close()


class UtpEnvironment(ABC):
    """Source of time and randomness, replaceable in tests."""

    @abstractmethod
    def now(self) -> float:
        """Monotonic time in seconds."""

    @abstractmethod
    def copy(self) -> "UtpEnvironment":
        """Another handle to the same environment."""

    @abstractmethod
    def random_u16(self) -> int:
        """A random integer in 0..65535."""


class DefaultUtpEnvironment(UtpEnvironment):
    """The real clock and random generator."""

    def now(self) -> float:
        return time.monotonic()

    def copy(self) -> "DefaultUtpEnvironment":
        return self

    def random_u16(self) -> int:
        return random.getrandbits(16)


@dataclass
class MockRandom:
    """Deterministic generator stepping by 100 from 1."""

    current: int = 1

    def next(self) -> int:
        value = self.current
        self.current = (self.current + 100) & 0xFFFF
        return value


@dataclass
class _MockState:
    now: float
    random: MockRandom = field(default_factory=MockRandom)
    lock: threading.Lock = field(default_factory=threading.Lock)


class MockUtpEnvironment(UtpEnvironment):
    """Environment with a manually advanced clock; copies share state."""

    def __init__(self, *, _state: Optional[_MockState] = None) -> None:
        self._state = _state if _state is not None else _MockState(now=time.monotonic())

    def increment_now(self, seconds: float) -> None:
        with self._state.lock:
            self._state.now += seconds

    def now(self) -> float:
        with self._state.lock:
            return self._state.now

    def copy(self) -> "MockUtpEnvironment":
        return MockUtpEnvironment(_state=self._state)

    def random_u16(self) -> int:
        with self._state.lock:
            return self._state.random.next()