import pytest

from utptx.utils import (
    FnDropGuard,
    SeqNr,
    UtpBugError,
    fill_buffer_from_slices,
    prepare_2_ioslices,
    run_before_and_after_if_changed,
    seq_nr_offset,
)

U16_MAX = 0xFFFF
E = 255


def test_seq_nr_offset_no_wraps():
    assert seq_nr_offset(2, 1, 1024) == 1
    assert seq_nr_offset(1, 1, 1024) == 0
    assert seq_nr_offset(0, 1, 1024) == -1


def test_seq_nr_offset_new_wraps_within_tolerance():
    assert seq_nr_offset(0, U16_MAX, 1024) == 1
    assert seq_nr_offset(1023, U16_MAX, 1024) == 1024


def test_seq_nr_offset_old_wraps_within_tolerance():
    assert seq_nr_offset(U16_MAX, 0, 1024) == -1
    assert seq_nr_offset(U16_MAX, 1023, 1024) == -1024


def test_seq_nr_offset_outside_tolerance():
    assert seq_nr_offset(1024, U16_MAX, 1024) == -(U16_MAX - 1024)
    assert seq_nr_offset(U16_MAX, 1024, 1024) == U16_MAX - 1024


def _buf():
    return bytearray([E] * 10)


def test_fill_buffer_empty():
    buf = _buf()
    fill_buffer_from_slices(buf, 0, 0, b"", b"")
    assert buf == bytearray([E] * 10)


def test_fill_buffer_from_empty_slices_errors():
    with pytest.raises(UtpBugError):
        fill_buffer_from_slices(_buf(), 0, 1, b"", b"")


@pytest.mark.parametrize(
    "offset,length,expected",
    [
        (0, 1, [1]),
        (0, 3, [1, 2, 3]),
        (0, 4, [1, 2, 3, 4]),
        (1, 3, [2, 3, 4]),
        (1, 4, [2, 3, 4, 5]),
        (1, 5, [2, 3, 4, 5, 6]),
        (3, 0, []),
        (3, 1, [4]),
        (3, 3, [4, 5, 6]),
        (5, 1, [6]),
        (6, 0, []),
    ],
)
def test_fill_buffer_ok(offset, length, expected):
    buf = _buf()
    fill_buffer_from_slices(buf, offset, length, bytes([1, 2, 3]), bytes([4, 5, 6]))
    assert buf == bytearray(expected + [E] * (10 - len(expected)))


@pytest.mark.parametrize("offset,length", [(1, 6), (5, 2), (6, 1)])
def test_fill_buffer_errors(offset, length):
    with pytest.raises(UtpBugError):
        fill_buffer_from_slices(_buf(), offset, length, bytes([1, 2, 3]), bytes([4, 5, 6]))


def test_fill_buffer_too_small_output():
    with pytest.raises(UtpBugError):
        fill_buffer_from_slices(bytearray(2), 0, 3, bytes([1, 2, 3]), b"")


@pytest.mark.parametrize(
    "offset,length,expected",
    [
        (0, 0, (b"", b"")),
        (0, 2, (bytes([1, 2]), b"")),
        (1, 2, (bytes([2, 3]), b"")),
        (2, 2, (bytes([3]), bytes([4]))),
        (3, 2, (b"", bytes([4, 5]))),
        (0, 6, (bytes([1, 2, 3]), bytes([4, 5, 6]))),
    ],
)
def test_prepare_2_ioslices(offset, length, expected):
    assert prepare_2_ioslices(bytes([1, 2, 3]), bytes([4, 5, 6]), offset, length) == expected


@pytest.mark.parametrize("offset,length", [(7, 1), (0, 7), (5, 2)])
def test_prepare_2_ioslices_errors(offset, length):
    with pytest.raises(UtpBugError):
        prepare_2_ioslices(bytes([1, 2, 3]), bytes([4, 5, 6]), offset, length)


def test_seq_nr_wraps_on_add():
    assert SeqNr(U16_MAX) + 1 == SeqNr(0)
    assert SeqNr(0) - 1 == SeqNr(U16_MAX)


def test_seq_nr_distance_and_ordering_across_wrap():
    assert SeqNr(1) - SeqNr(U16_MAX) == 2
    assert SeqNr(U16_MAX) - SeqNr(1) == -2
    assert SeqNr(U16_MAX) < SeqNr(1)
    assert SeqNr(1) > SeqNr(U16_MAX)
    assert SeqNr(5) <= SeqNr(5)
    assert SeqNr(5) >= SeqNr(5)


def test_seq_nr_distance_matches_far_values():
    assert SeqNr(1000) - SeqNr(3) == 997
    assert SeqNr(0) - SeqNr(3) == -3


def test_run_before_and_after_if_changed_calls_on_change():
    calls = []
    obj = {"v": 1}

    def change(o):
        o["v"] = 2
        return "done"

    result = run_before_and_after_if_changed(
        obj, lambda o: o["v"], change, lambda o, b, a: calls.append((b, a))
    )
    assert result == "done"
    assert calls == [(1, 2)]


def test_run_before_and_after_if_changed_skips_when_same():
    calls = []
    result = run_before_and_after_if_changed(
        {"v": 1}, lambda o: o["v"], lambda o: 7, lambda o, b, a: calls.append((b, a))
    )
    assert result == 7
    assert calls == []


def test_fn_drop_guard_runs_on_exit():
    calls = []
    with FnDropGuard(lambda: calls.append(1)):
        assert calls == []
    assert calls == [1]


def test_fn_drop_guard_disarmed():
    calls = []
    with FnDropGuard(lambda: calls.append(1)) as guard:
        guard.disarm()
    assert calls == []


def test_fn_drop_guard_runs_on_exception():
    calls = []
    with pytest.raises(RuntimeError):
        with FnDropGuard(lambda: calls.append(1)):
            raise RuntimeError("boom")
    assert calls == [1]