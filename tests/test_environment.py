import asyncio
import time

import pytest

from utptx.environment import (
    DefaultUtpEnvironment,
    MockRandom,
    MockUtpEnvironment,
    UdpTransport,
)


def test_mock_random_sequence():
    rnd = MockRandom()
    assert [rnd.next(), rnd.next(), rnd.next()] == [1, 101, 201]


def test_mock_random_wraps():
    rnd = MockRandom(current=65500)
    assert rnd.next() == 65500
    assert rnd.next() == 64


def test_mock_environment_random():
    env = MockUtpEnvironment()
    assert env.random_u16() == 1
    assert env.random_u16() == 101


def test_mock_environment_increment_now():
    env = MockUtpEnvironment()
    start = env.now()
    env.increment_now(1.5)
    assert env.now() - start == pytest.approx(1.5)


def test_mock_environment_copy_shares_state():
    env = MockUtpEnvironment()
    other = env.copy()
    start = other.now()
    env.increment_now(2.0)
    assert other.now() - start == pytest.approx(2.0)
    assert env.random_u16() == 1
    assert other.random_u16() == 101


def test_mock_environment_clock_is_frozen():
    env = MockUtpEnvironment()
    start = env.now()
    time.sleep(0.02)
    assert env.now() - start == 0
    env.increment_now(0.25)
    assert env.now() - start == pytest.approx(0.25)


def test_default_environment():
    env = DefaultUtpEnvironment()
    first = env.now()
    assert env.now() >= first
    assert env.copy() is env
    values = [env.random_u16() for _ in range(50)]
    assert all(0 <= v <= 0xFFFF for v in values)


@pytest.mark.asyncio
async def test_udp_transport_round_trip():
    a = await UdpTransport.bind(("127.0.0.1", 0))
    b = await UdpTransport.bind(("127.0.0.1", 0))
    try:
        assert a.bind_addr()[0] == "127.0.0.1"
        sent = await a.send_to(b"ping", b.bind_addr())
        assert sent == 4
        data, addr = await asyncio.wait_for(b.recv_from(1500), 2)
        assert data == b"ping"
        assert addr == a.bind_addr()
    finally:
        a.close()
        b.close()


@pytest.mark.asyncio
async def test_udp_transport_truncates_to_size():
    a = await UdpTransport.bind(("127.0.0.1", 0))
    b = await UdpTransport.bind(("127.0.0.1", 0))
    try:
        await a.send_to(b"abcdef", b.bind_addr())
        data, _ = await asyncio.wait_for(b.recv_from(3), 2)
        assert data == b"abc"
    finally:
        a.close()
        b.close()