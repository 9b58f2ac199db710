from datetime import datetime, timedelta

import pytest

from logcodec.cbor_time import append_duration, append_durations, append_time, append_times

INTEGER_CASES = [
    ("2013-02-03T19:54:00-08:00", b"\xc1\x1a\x51\x0f\x30\xd8"),
    ("1950-02-03T19:54:00-08:00", b"\xc1\x3a\x25\x71\x93\xa7"),
]

FLOAT_CASES = [
    ("2006-01-02T15:04:05.999999-08:00", b"\xc1\xfb\x41\xd0\xee\x6c\x59\x7f\xff\xfc"),
    ("1956-01-02T15:04:05.999999-08:00", b"\xc1\xfb\xc1\xba\x53\x81\x1a\x00\x00\x11"),
]


@pytest.mark.parametrize("text,binary", INTEGER_CASES)
def test_append_time_integer(text, binary):
    assert append_time(b"", datetime.fromisoformat(text)) == binary


@pytest.mark.parametrize("text,binary", FLOAT_CASES)
def test_append_time_float(text, binary):
    assert append_time(b"", datetime.fromisoformat(text)) == binary


def test_append_time_keeps_dst():
    text, binary = INTEGER_CASES[0]
    assert append_time(b"\xbf", datetime.fromisoformat(text)) == b"\xbf" + binary


def test_append_times():
    times = [datetime.fromisoformat(text) for text, _ in INTEGER_CASES]
    expected = b"\x82" + INTEGER_CASES[0][1] + INTEGER_CASES[1][1]
    assert append_times(b"", times) == expected


def test_append_times_empty():
    assert append_times(b"", []) == b"\x9f\xff"


def test_append_duration_int():
    assert append_duration(b"", timedelta(seconds=2), timedelta(seconds=1), True) == b"\x02"


def test_append_duration_int_truncates_toward_zero():
    assert append_duration(b"", timedelta(milliseconds=-1500), timedelta(seconds=1), True) == b"\x20"


def test_append_duration_float():
    out = append_duration(b"", timedelta(milliseconds=1500), timedelta(seconds=1), False)
    assert out == b"\xfb\x3f\xf8\x00\x00\x00\x00\x00\x00"


def test_append_duration_zero_unit():
    with pytest.raises(ZeroDivisionError):
        append_duration(b"", timedelta(seconds=1), timedelta(0), True)
    out = append_duration(b"", timedelta(seconds=1), timedelta(0), False)
    assert out == b"\xfb\x7f\xf0\x00\x00\x00\x00\x00\x00"


def test_append_durations():
    vals = [timedelta(seconds=1), timedelta(seconds=2), timedelta(seconds=3)]
    assert append_durations(b"", vals, timedelta(seconds=1), True) == b"\x83\x01\x02\x03"
    assert append_durations(b"", [], timedelta(seconds=1), True) == b"\x9f\xff"