"""Per-segment bookkeeping for the outgoing side of a uTP stream."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from .utils import SeqNr


def rtt_min(rtt1: Optional[float], rtt2: Optional[float]) -> Optional[float]:
    """The smaller of two optional round-trip samples, ignoring missing ones."""
    if rtt1 is None:
        return rtt2
    if rtt2 is None:
        return rtt1
    return min(rtt1, rtt2)


@dataclass
class Segment:
    """Metadata of one pre-segmented chunk of outgoing data."""

    payload_size: int
    payload_offset_absolute: int
    is_mtu_probe: bool = False
    is_delivered: bool = False
    # IsLost() from RFC 6675.
    is_lost: bool = False
    is_expired: bool = False
    has_sacks_after_it: bool = False
    _sends: int = 0
    _last_sent_at: Optional[float] = None

    def retransmit_count(self) -> int:
        """How many times the segment was sent again after the first send."""
        return max(self._sends - 1, 0)

    def send_count(self) -> int:
        """How many times the segment was sent in total."""
        return self._sends

    def last_sent(self) -> Optional[float]:
        """When the segment was last sent, or None if never."""
        return self._last_sent_at

    def rtt_sample(self, now: float) -> Optional[float]:
        """Round-trip sample for an ACK at ``now``; only segments sent exactly once give one."""
        if self._sends != 1 or self._last_sent_at is None:
            return None
        return now - self._last_sent_at

    def mark_sent(self, now: float) -> None:
        """Record a (re)transmission at ``now``."""
        self._sends += 1
        self._last_sent_at = now


@dataclass
class SegmentForSending:
    """A segment handed out for transmission together with its position."""

    segment: Segment
    seq_nr: SeqNr
    payload_offset: int

    @property
    def is_lost(self) -> bool:
        return self.segment.is_lost

    @property
    def is_expired(self) -> bool:
        return self.segment.is_expired

    @property
    def has_sacks_after_it(self) -> bool:
        return self.segment.has_sacks_after_it

    @property
    def is_mtu_probe(self) -> bool:
        return self.segment.is_mtu_probe

    @property
    def is_delivered(self) -> bool:
        return self.segment.is_delivered

    @property
    def payload_size(self) -> int:
        return self.segment.payload_size

    def send_count(self) -> int:
        return self.segment.send_count()

    def retransmit_count(self) -> int:
        return self.segment.retransmit_count()

    def on_sent(self, now: float) -> None:
        """Record that the segment was put on the wire at ``now``."""
        self.segment.mark_sent(now)


@dataclass
class OnAckResult:
    """What an incoming ACK freed up in the outgoing queue."""

    # Segments that can be removed from the front of the queue.
    acked_segments_count: int = 0
    # Bytes that can be removed from the front of the buffer.
    acked_bytes: int = 0
    max_acked_payload_size: int = 0
    # Segments newly marked delivered by a selective ACK.
    newly_sacked_segment_count: int = 0
    newly_sacked_byte_count: int = 0
    new_rtt: Optional[float] = None

    def update(self, other: "OnAckResult") -> None:
        """Accumulate another result into this one."""
        self.acked_segments_count += other.acked_segments_count
        self.acked_bytes += other.acked_bytes
        self.new_rtt = rtt_min(self.new_rtt, other.new_rtt)
        self.newly_sacked_segment_count += other.newly_sacked_segment_count
        self.newly_sacked_byte_count += other.newly_sacked_byte_count

    def __str__(self) -> str:
        return (
            f"acked_segments={self.acked_segments_count}, "
            f"bytes={self.acked_bytes}, new_rtt={self.new_rtt!r}"
        )


@dataclass(frozen=True)
class Pipe:
    """RFC 6675 estimate of data in flight, and when to recompute it."""

    pipe: int
    recalc_timer: Optional[float] = None


class PopExpiredProbe(enum.Enum):
    """Outcome of trying to pop an MTU probe that did not expire."""

    NOT_EXPIRED = "not_expired"
    EMPTY = "empty"


@dataclass(frozen=True)
class ExpiredProbe:
    """An MTU probe that was removed because it expired."""

    rewind_to: SeqNr
    payload_size: int