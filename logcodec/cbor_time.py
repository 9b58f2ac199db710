"""CBOR encoding of timestamps and durations."""

import math
import struct
from datetime import datetime, timedelta, timezone

from logcodec.cbor_core import (
    FLOAT64_NAN,
    FLOAT64_NEG_INF,
    FLOAT64_POS_INF,
    MajorType,
    ADDITIONAL_BREAK,
    ADDITIONAL_FLOAT64,
    ADDITIONAL_INDEFINITE,
    TAG_TIMESTAMP,
    append_length_header,
    append_type_prefix,
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_TIMESTAMP_TAG = bytes((MajorType.TAGS | TAG_TIMESTAMP,))
_EMPTY_ARRAY = bytes(
    (MajorType.ARRAY | ADDITIONAL_INDEFINITE, MajorType.SIMPLE_AND_FLOAT | ADDITIONAL_BREAK)
)


def _unix(t):
    """Seconds (floored) and nanoseconds since the epoch; naive times are UTC."""
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    delta = t - _EPOCH
    return delta.days * 86400 + delta.seconds, delta.microseconds * 1000


def _nanoseconds(d):
    return (d.days * 86400 + d.seconds) * 10**9 + d.microseconds * 1000


def _append_int(dst, val):
    if val < 0:
        return append_length_header(dst, MajorType.NEGATIVE_INT, -val - 1)
    return append_length_header(dst, MajorType.UNSIGNED_INT, val)


def _append_float64(dst, val):
    if math.isnan(val):
        return bytes(dst) + FLOAT64_NAN
    if math.isinf(val):
        return bytes(dst) + (FLOAT64_POS_INF if val > 0 else FLOAT64_NEG_INF)
    head = bytes((MajorType.SIMPLE_AND_FLOAT | ADDITIONAL_FLOAT64,))
    return bytes(dst) + head + struct.pack(">d", val)


def append_time(dst, t):
    """Append a tagged epoch timestamp: an integer when whole, else a float64."""
    secs, nanos = _unix(t)
    out = bytes(dst) + _TIMESTAMP_TAG
    if nanos == 0:
        if secs < 0:
            return append_type_prefix(out, MajorType.NEGATIVE_INT, -secs - 1)
        return append_type_prefix(out, MajorType.UNSIGNED_INT, secs)
    return _append_float64(out, float(secs) * 1.0 + float(nanos) * 1e-9)


def append_times(dst, vals):
    """Append an array of timestamps."""
    vals = list(vals)
    if not vals:
        return bytes(dst) + _EMPTY_ARRAY
    out = append_length_header(dst, MajorType.ARRAY, len(vals))
    for t in vals:
        out = append_time(out, t)
    return out


def append_duration(dst, d, unit, use_int):
    """Append a duration expressed in multiples of unit, as integer or float."""
    dn, un = _nanoseconds(d), _nanoseconds(unit)
    if use_int:
        quotient = abs(dn) // abs(un)
        return _append_int(dst, -quotient if (dn < 0) != (un < 0) else quotient)
    if un == 0:
        value = math.nan if dn == 0 else math.copysign(math.inf, dn)
    else:
        value = dn / un
    return _append_float64(dst, value)


def append_durations(dst, vals, unit, use_int):
    """Append an array of durations."""
    vals = list(vals)
    if not vals:
        return bytes(dst) + _EMPTY_ARRAY
    out = append_length_header(dst, MajorType.ARRAY, len(vals))
    for d in vals:
        out = append_duration(out, d, unit, use_int)
    return out