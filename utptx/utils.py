"""Small helpers: sequence numbers, slice handling and guards."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, Tuple, TypeVar, Union

_SEQ_MOD = 1 << 16
_SEQ_MASK = _SEQ_MOD - 1
_SEQ_HALF = 1 << 15

T = TypeVar("T")
V = TypeVar("V")
R = TypeVar("R")

BytesLike = Union[bytes, bytearray, memoryview]


class UtpBugError(Exception):
    """An internal invariant was violated."""


@dataclass(frozen=True)
class SeqNr:
    """A 16-bit wrapping uTP sequence number."""

    value: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", int(self.value) & _SEQ_MASK)

    @staticmethod
    def _coerce(other: Union["SeqNr", int]) -> "SeqNr":
        return other if isinstance(other, SeqNr) else SeqNr(other)

    def _distance(self, other: Union["SeqNr", int]) -> int:
        diff = (self.value - self._coerce(other).value) & _SEQ_MASK
        return diff - _SEQ_MOD if diff >= _SEQ_HALF else diff

    def __add__(self, other: int) -> "SeqNr":
        if isinstance(other, SeqNr):
            return NotImplemented
        return SeqNr(self.value + int(other))

    def __sub__(self, other: Union["SeqNr", int]):
        """SeqNr - SeqNr gives a signed distance; SeqNr - int gives a SeqNr."""
        if isinstance(other, SeqNr):
            return self._distance(other)
        return SeqNr(self.value - int(other))

    def __lt__(self, other: Union["SeqNr", int]) -> bool:
        return self._distance(other) < 0

    def __le__(self, other: Union["SeqNr", int]) -> bool:
        return self._distance(other) <= 0

    def __gt__(self, other: Union["SeqNr", int]) -> bool:
        return self._distance(other) > 0

    def __ge__(self, other: Union["SeqNr", int]) -> bool:
        return self._distance(other) >= 0

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"SeqNr({self.value})"


def seq_nr_offset(new: int, old: int, wrap_tolerance: int) -> int:
    """Signed offset of ``new`` from ``old``, treating small wraps as forward moves."""
    new &= _SEQ_MASK
    old &= _SEQ_MASK
    if new < old:
        wrapped = (new - old) & _SEQ_MASK
        if wrapped <= wrap_tolerance:
            return wrapped
        return -(old - new)
    if new == old:
        return 0
    wrapped = (old - new) & _SEQ_MASK
    if wrapped <= wrap_tolerance:
        return -wrapped
    return new - old


def prepare_2_ioslices(
    first: BytesLike, second: BytesLike, offset: int, length: int
) -> Tuple[bytes, bytes]:
    """Select ``length`` bytes starting at ``offset`` from two consecutive slices."""
    if length == 0:
        return b"", b""

    total_len = len(first) + len(second)
    if offset >= total_len:
        raise UtpBugError("offset beyond buffer bounds")
    if offset + length > total_len:
        raise UtpBugError("requested length exceeds buffer bounds")

    if offset >= len(first):
        first_part = b""
        second_part = bytes(second[offset - len(first):])
    else:
        first_part = bytes(first[offset:])
        second_part = bytes(second)

    if length <= len(first_part):
        return first_part[:length], b""
    return first_part, second_part[: length - len(first_part)]


def fill_buffer_from_slices(
    out_buf: Union[bytearray, memoryview],
    offset: int,
    length: int,
    first: BytesLike,
    second: BytesLike,
) -> None:
    """Copy ``length`` bytes at ``offset`` of the two slices into the start of ``out_buf``."""
    if len(out_buf) < length:
        raise UtpBugError(
            f"output buffer too small: out_buf_len={len(out_buf)}, len={length}"
        )
    head, tail = prepare_2_ioslices(first, second, offset, length)
    out_buf[: len(head)] = head
    out_buf[len(head): len(head) + len(tail)] = tail


def run_before_and_after_if_changed(
    obj: T,
    calc: Callable[[T], V],
    maybe_change: Callable[[T], R],
    callback: Callable[[T, V, V], Any],
) -> R:
    """Run ``maybe_change`` and call ``callback`` if ``calc`` reports a different value."""
    before = calc(obj)
    result = maybe_change(obj)
    after = calc(obj)
    if before != after:
        callback(obj, before, after)
    return result


class FnDropGuard(Generic[R]):
    """Context manager that calls a function on exit unless disarmed."""

    def __init__(self, f: Callable[[], R]) -> None:
        self._f: Optional[Callable[[], R]] = f

    def disarm(self) -> None:
        self._f = None

    def __enter__(self) -> "FnDropGuard[R]":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        f, self._f = self._f, None
        if f is not None:
            f()
        return False