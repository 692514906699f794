# utptx

Building blocks for the sending side of a uTP (BEP 29) connection.

uTP never re-segments data, so outgoing bytes are split into segments once
and tracked until they are acknowledged. The package has no dependencies
beyond the standard library.

## Modules

- `utptx.stream_tx`
  - `UserTx(capacity)` – the bounded send buffer shared by the writer and
    whatever drives the connection. `enqueue(data)` takes as many bytes as
    fit and returns the count; `truncate_front(count)` drops delivered
    bytes; `read_range(offset, length)` and `fill_buffer(out_buf, offset,
    length)` copy buffered bytes out; `wait_for_data()` waits until there is
    data or the writer has shut down or gone away; `mark_vsock_closed()` and
    `mark_writer_dropped()` record the end of the connection or the writer.
    Inconsistent requests raise `UtpBugError`.
  - `UtpStreamWriteHalf(user_tx)` – the asyncio writer: `write`,
    `write_all`, `flush` (waits until the buffer is empty), `shutdown`
    (waits for the buffer to drain, then flags shutdown and waits until the
    connection is marked closed) and `close`. Writing after the connection
    closed, after shutdown or after close raises `OSError`.
- `utptx.segments` – `Segments`, the queue of segment metadata starting at
  SND.UNA: `enqueue`, `iter_for_sending`, `remove_up_to_ack` (cumulative
  and selective ACKs), `calc_flight_size`, `calc_pipe` (RFC 6675 pipe
  estimate, updating lost/expired flags), and MTU probe handling with
  `pop_mtu_probe` and `pop_expired_mtu_probe`.
- `utptx.segment` – `Segment`, `SegmentForSending`, `OnAckResult`, `Pipe`,
  `PopExpiredProbe`, `ExpiredProbe` and `rtt_min`. Round-trip samples are
  taken only from segments that were sent exactly once.
- `utptx.environment` – the `Transport` and `UtpEnvironment` abstract
  classes, `UdpTransport` (asyncio UDP, created with
  `await UdpTransport.bind(addr)`), `DefaultUtpEnvironment` (monotonic clock,
  random numbers) and `MockUtpEnvironment` with a hand-driven clock and a
  `MockRandom` generator counting 1, 101, 201, ...; copies of a mock
  environment share its state.
- `utptx.utils` – `SeqNr`, a wrapping 16-bit sequence number (subtracting
  two gives their signed distance, so comparisons work across the wrap),
  `seq_nr_offset`, `prepare_2_ioslices`, `fill_buffer_from_slices`,
  `run_before_and_after_if_changed`, the `FnDropGuard` context manager and
  `UtpBugError`.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
from utptx.segments import Segments
from utptx.utils import SeqNr

segments = Segments(SeqNr(100))
for size in (1000, 1000, 500):
    segments.enqueue(size, False)

for seg in segments.iter_for_sending(None):
    print(seg.seq_nr, seg.payload_offset, seg.payload_size)

result = segments.remove_up_to_ack(0.0, SeqNr(100), None)
print(result.acked_bytes)               # 1000
print(segments.total_len_packets())     # 2
```

A `MockUtpEnvironment` lets code that depends on time be driven by hand:

```python
from utptx.environment import MockUtpEnvironment

env = MockUtpEnvironment()
start = env.now()
env.increment_now(1.5)
print(env.now() - start)    # about 1.5
assert env.random_u16() == 1
assert env.random_u16() == 101
```

## What this package does not do

It is not a complete uTP stack. There is no packet header encoding or
decoding, no reading half of a stream, no congestion controller or
round-trip estimator, and nothing that accepts or opens connections or
runs the send/receive loop. Those parts are left to the code that uses
these building blocks.