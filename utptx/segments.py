"""Pre-segmented outgoing data: sent, delivered and lost state per segment.

Segments are created once with ``enqueue``, handed out for transmission with
``iter_for_sending`` and removed once an ACK covers them. The payload itself
lives in the shared outgoing buffer; this queue only tracks metadata.

The last segment may be an MTU probe. If it is not delivered in time it is
popped and its data must be queued again.
"""

from __future__ import annotations

from collections import deque
from itertools import islice
from typing import Deque, Iterator, Optional, Sequence, Union

from .segment import (
    ExpiredProbe,
    OnAckResult,
    Pipe,
    PopExpiredProbe,
    Segment,
    SegmentForSending,
    rtt_min,
)
from .utils import SeqNr, UtpBugError


def _seq(value: Union[SeqNr, int]) -> SeqNr:
    return value if isinstance(value, SeqNr) else SeqNr(value)


class Segments:
    """Queue of outgoing segments, starting at SND.UNA."""

    def __init__(self, snd_una: Union[SeqNr, int]) -> None:
        self._segments: Deque[Segment] = deque()
        # Includes unsent segments, so this is not the flight size.
        self._len_bytes = 0
        # Absolute byte offset of the next segment since creation.
        self._offset = 0
        # Bytes removed from the front since creation.
        self._removed_offset = 0
        self._sack_depth = 0
        self._last_sack_empty = False
        # Sequence number of the first unacknowledged segment.
        self._snd_una = _seq(snd_una)

    @property
    def sack_depth(self) -> int:
        """How many segments the last selective ACK covered."""
        return self._sack_depth

    def first_seq_nr(self) -> Optional[SeqNr]:
        return self._snd_una if self._segments else None

    def total_len_packets(self) -> int:
        return len(self._segments)

    def total_len_bytes(self) -> int:
        return self._len_bytes

    def count_delivered(self) -> int:
        return sum(1 for s in self._segments if s.is_delivered)

    def is_empty(self) -> bool:
        return not self._segments

    def enqueue(self, payload_len: int, is_mtu_probe: bool) -> bool:
        """Append a segment; return whether it was enqueued."""
        self._segments.append(
            Segment(
                payload_size=payload_len,
                payload_offset_absolute=self._offset,
                is_mtu_probe=is_mtu_probe,
            )
        )
        self._offset += payload_len
        self._len_bytes += payload_len
        return True

    def pop_mtu_probe(self, seq_nr: Union[SeqNr, int]) -> bool:
        """Remove the last segment if it is the undelivered MTU probe ``seq_nr``."""
        if not self._segments:
            return False
        last_seq_nr = self._snd_una + len(self._segments) - 1
        last = self._segments[-1]
        if last_seq_nr == _seq(seq_nr) and last.is_mtu_probe and not last.is_delivered:
            self._segments.pop()
            return True
        return False

    def pop_expired_mtu_probe(
        self, retransmit_timed_out: bool, max_probe_retransmissions: int
    ) -> Union[ExpiredProbe, PopExpiredProbe]:
        """Remove the trailing MTU probe if it has expired."""
        if not self._segments:
            return PopExpiredProbe.EMPTY
        last = self._segments[-1]
        if last.is_delivered:
            return PopExpiredProbe.EMPTY
        if not last.is_mtu_probe:
            return PopExpiredProbe.EMPTY
        if retransmit_timed_out and last.retransmit_count() >= max_probe_retransmissions:
            self._segments.pop()
            return ExpiredProbe(
                rewind_to=self._snd_una + len(self._segments) - 1,
                payload_size=last.payload_size,
            )
        return PopExpiredProbe.NOT_EXPIRED

    def _acked(self, segment: Segment, now: float, result: OnAckResult) -> None:
        result.new_rtt = rtt_min(result.new_rtt, segment.rtt_sample(now))
        result.max_acked_payload_size = max(
            result.max_acked_payload_size, segment.payload_size
        )

    def _pop_front(self, result: OnAckResult) -> Segment:
        segment = self._segments.popleft()
        result.acked_segments_count += 1
        result.acked_bytes += segment.payload_size
        self._len_bytes -= segment.payload_size
        self._snd_una = self._snd_una + 1
        return segment

    def remove_up_to_ack(
        self,
        now: float,
        ack_nr: Union[SeqNr, int],
        selective_ack: Optional[Sequence[bool]] = None,
    ) -> OnAckResult:
        """Apply a (selective) ACK: drop acknowledged segments, mark SACKed ones delivered."""
        ack_nr = _seq(ack_nr)
        result = OnAckResult()

        offset = ack_nr - self._snd_una
        if offset >= 0:
            for _ in range(min(offset + 1, len(self._segments))):
                self._acked(self._pop_front(result), now, result)

        first = self.first_seq_nr()
        if first is not None and selective_ack is not None and first > ack_nr:
            sack = list(selective_ack)
            self._sack_depth = len(sack)
            self._last_sack_empty = not any(sack)

            sack_start_offset = (ack_nr + 2) - first
            if sack_start_offset >= 0:
                pairs = zip(islice(self._segments, sack_start_offset, None), sack)
            else:
                pairs = zip(self._segments, sack[-sack_start_offset:])

            for segment, is_sacked in pairs:
                if is_sacked and not segment.is_delivered:
                    segment.is_delivered = True
                    self._acked(segment, now, result)
                    result.newly_sacked_segment_count += 1
                    result.newly_sacked_byte_count += segment.payload_size

        # An older ACK may have marked the front delivered.
        while self._segments and self._segments[0].is_delivered:
            self._pop_front(result)

        self._removed_offset += result.acked_bytes
        return result

    def calc_flight_size(self, last_sent_seq_nr: Union[SeqNr, int]) -> int:
        """Payload of segments up to ``last_sent_seq_nr`` that are not yet delivered."""
        # After a retransmission timeout last_sent_seq_nr is rewound while the
        # segments keep their sent status, so count by position only.
        take = max(_seq(last_sent_seq_nr) - self._snd_una + 1, 0)
        return sum(
            0 if s.is_delivered else s.payload_size
            for s in islice(self._segments, take)
        )

    def calc_pipe(
        self,
        high_rxt: Union[SeqNr, int],
        high_data: Union[SeqNr, int],
        expiry_threshold: float,
        now: float,
    ) -> Pipe:
        """RFC 6675 pipe: estimate of outstanding data, updating loss flags."""
        high_rxt = _seq(high_rxt)
        pipe = 0
        delivered_segs = 0
        recalc_timer: Optional[float] = None

        take = max(_seq(high_data) - self._snd_una, 0)
        window = list(islice(self._segments, take))

        for offset in reversed(range(len(window))):
            segment = window[offset]
            last_sent = segment.last_sent()
            if last_sent is None:
                continue
            if segment.is_delivered:
                delivered_segs += 1
                continue

            seq_nr = self._snd_una + offset
            segment.has_sacks_after_it = delivered_segs > 0 or self._last_sack_empty

            if seq_nr <= high_rxt:
                pipe += segment.payload_size

            segment.is_expired = now - last_sent >= expiry_threshold

            if offset > self._sack_depth + 1:
                # Past the SACK depth nothing is known about the segment.
                segment.is_lost = segment.is_expired
            else:
                segment.is_lost = delivered_segs >= 3 or segment.is_expired

            if not segment.is_lost:
                pipe += segment.payload_size

            if not segment.is_expired and not segment.is_lost:
                recalc_timer = last_sent + expiry_threshold

        return Pipe(pipe=pipe, recalc_timer=recalc_timer)

    def iter_for_sending(
        self, start: Optional[Union[SeqNr, int]] = None
    ) -> Iterator[SegmentForSending]:
        """Undelivered segments from ``start`` (or the front) with their payload offsets."""
        offset = 0 if start is None else max(_seq(start) - self._snd_una, 0)
        snd_una = self._snd_una
        removed = self._removed_offset
        selected = list(islice(self._segments, offset, None))

        def generate() -> Iterator[SegmentForSending]:
            for idx, segment in enumerate(selected, start=offset):
                payload_offset = segment.payload_offset_absolute - removed
                if payload_offset < 0:
                    raise UtpBugError("segment payload offset before removed data")
                item = SegmentForSending(
                    segment=segment,
                    seq_nr=snd_una + idx,
                    payload_offset=payload_offset,
                )
                if not item.is_delivered:
                    yield item

        return generate()