"""JSON encoder producing compact, log-friendly byte output."""

import json
import math
import struct
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from ipaddress import (
    IPv4Address,
    IPv4Interface,
    IPv4Network,
    IPv6Address,
    IPv6Interface,
    IPv6Network,
    ip_address,
    ip_interface,
)

from logcodec import json_strings

UNIX = ""
UNIX_MS = "UNIXMS"
UNIX_MICRO = "UNIXMICRO"
UNIX_NANO = "UNIXNANO"

_UNIX_DIVISORS = {UNIX_MS: 10**6, UNIX_MICRO: 10**3, UNIX_NANO: 1}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _default_marshal(value):
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _trunc_div(a, b):
    """Integer division rounding toward zero."""
    quotient = abs(a) // abs(b)
    return -quotient if (a < 0) != (b < 0) else quotient


def _fixed(text):
    """Render a decimal literal in plain positional notation without a trailing fraction of zeros."""
    out = format(Decimal(text), "f")
    if "." in out:
        out = out.rstrip("0").rstrip(".")
    return out


def _to_float32(value):
    try:
        return struct.unpack(">f", struct.pack(">f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _special_float(value):
    if math.isnan(value):
        return b'"NaN"'
    if math.isinf(value):
        return b'"+Inf"' if value > 0 else b'"-Inf"'
    return None


def _float64_text(value):
    value = float(value)
    special = _special_float(value)
    if special is not None:
        return special
    return _fixed(repr(value)).encode("ascii")


def _float32_text(value):
    value = _to_float32(float(value))
    special = _special_float(value)
    if special is not None:
        return special
    text = repr(value)
    for precision in range(1, 10):
        candidate = f"{value:.{precision}g}"
        if _to_float32(float(candidate)) == value:
            text = candidate
            break
    return _fixed(text).encode("ascii")


def _ip_text(ip):
    if isinstance(ip, (IPv4Address, IPv6Address)):
        addr = ip
    elif isinstance(ip, str):
        addr = ip_address(ip)
    else:
        raw = bytes(ip)
        if not raw:
            return "<nil>"
        if len(raw) not in (4, 16):
            return "?" + raw.hex()
        addr = ip_address(raw)
    if isinstance(addr, IPv6Address) and addr.ipv4_mapped is not None:
        return str(addr.ipv4_mapped)
    return str(addr)


def _prefix_text(prefix):
    if isinstance(prefix, tuple):
        address, length = prefix
        return f"{_ip_text(address)}/{int(length)}"
    if isinstance(prefix, (IPv4Network, IPv6Network)):
        return f"{_ip_text(prefix.network_address)}/{prefix.prefixlen}"
    if not isinstance(prefix, (IPv4Interface, IPv6Interface)):
        prefix = ip_interface(prefix)
    return f"{_ip_text(prefix.ip)}/{prefix.network.prefixlen}"


def _mac_text(mac):
    if isinstance(mac, str):
        mac = bytes.fromhex(mac.replace(":", "").replace("-", "").replace(".", ""))
    return ":".join(f"{b:02x}" for b in bytes(mac))


def _unix_parts(t):
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    delta = t - _EPOCH
    return delta.days * 86400 + delta.seconds, delta.microseconds * 1000


def _nanoseconds(d):
    return (d.days * 86400 + d.seconds) * 10**9 + d.microseconds * 1000


def _json_array(items):
    return b"[" + b",".join(items) + b"]"


class JSONEncoder:
    """Appends JSON-encoded values to a byte buffer and returns the new buffer."""

    def __init__(self, marshal=None):
        self.marshal = marshal if marshal is not None else _default_marshal

    # Structure.

    def append_key(self, dst, key):
        dst = bytes(dst)
        if not dst:
            raise ValueError("cannot append a key to an empty buffer")
        if dst[-1:] != b"{":
            dst += b","
        return self.append_string(dst, key) + b":"

    def append_nil(self, dst):
        return bytes(dst) + b"null"

    def append_begin_marker(self, dst):
        return bytes(dst) + b"{"

    def append_end_marker(self, dst):
        return bytes(dst) + b"}"

    def append_line_break(self, dst):
        return bytes(dst) + b"\n"

    def append_array_start(self, dst):
        return bytes(dst) + b"["

    def append_array_end(self, dst):
        return bytes(dst) + b"]"

    def append_array_delim(self, dst):
        dst = bytes(dst)
        return dst + b"," if dst else dst

    def append_object_data(self, dst, obj):
        dst, obj = bytes(dst), bytes(obj)
        if obj[:1] == b"{":
            obj = obj[1:]
        if len(dst) > 1:
            dst += b","
        return dst + obj

    # Strings and bytes.

    def append_string(self, dst, s):
        return json_strings.append_string(dst, s)

    def append_strings(self, dst, vals):
        return json_strings.append_strings(dst, vals)

    def append_stringer(self, dst, val):
        if val is None:
            return self.append_interface(dst, None)
        return self.append_string(dst, str(val))

    def append_stringers(self, dst, vals):
        return bytes(dst) + _json_array(self.append_stringer(b"", v) for v in vals)

    def append_bytes(self, dst, s):
        return json_strings.append_bytes(dst, s)

    def append_hex(self, dst, s):
        return json_strings.append_hex(dst, s)

    # Scalars.

    def append_bool(self, dst, val):
        return bytes(dst) + (b"true" if val else b"false")

    def append_bools(self, dst, vals):
        return bytes(dst) + _json_array(b"true" if v else b"false" for v in vals)

    def append_int(self, dst, val):
        return bytes(dst) + str(int(val)).encode("ascii")

    def append_ints(self, dst, vals):
        return bytes(dst) + _json_array(str(int(v)).encode("ascii") for v in vals)

    def append_float32(self, dst, val):
        return bytes(dst) + _float32_text(val)

    def append_floats32(self, dst, vals):
        return bytes(dst) + _json_array(_float32_text(v) for v in vals)

    def append_float64(self, dst, val):
        return bytes(dst) + _float64_text(val)

    def append_floats64(self, dst, vals):
        return bytes(dst) + _json_array(_float64_text(v) for v in vals)

    def append_interface(self, dst, value):
        try:
            marshaled = self.marshal(value)
        except Exception as err:  # the log line must still be written
            return self.append_string(dst, f"marshaling error: {err}")
        if isinstance(marshaled, str):
            marshaled = marshaled.encode("utf-8")
        return bytes(dst) + bytes(marshaled)

    def append_type(self, dst, value):
        if value is None:
            return self.append_string(dst, "<nil>")
        kind = type(value)
        if kind.__module__ == "builtins":
            name = kind.__qualname__
        else:
            name = f"{kind.__module__}.{kind.__qualname__}"
        return self.append_string(dst, name)

    # Network values.

    def append_ip_addr(self, dst, ip):
        return self.append_string(dst, _ip_text(ip))

    def append_ip_prefix(self, dst, prefix):
        return self.append_string(dst, _prefix_text(prefix))

    def append_mac_addr(self, dst, mac):
        return self.append_string(dst, _mac_text(mac))

    # Time.

    def _time_item(self, t, fmt):
        if fmt == UNIX:
            return str(_unix_parts(t)[0]).encode("ascii")
        if fmt in _UNIX_DIVISORS:
            secs, nanos = _unix_parts(t)
            total = secs * 10**9 + nanos
            return str(_trunc_div(total, _UNIX_DIVISORS[fmt])).encode("ascii")
        return b'"' + t.strftime(fmt).encode("utf-8") + b'"'

    def append_time(self, dst, t, fmt):
        return bytes(dst) + self._time_item(t, fmt)

    def append_times(self, dst, vals, fmt):
        return bytes(dst) + _json_array(self._time_item(t, fmt) for t in vals)

    def _duration_item(self, d, unit, use_int):
        dn, un = _nanoseconds(d), _nanoseconds(unit)
        if use_int:
            if un == 0:
                raise ZeroDivisionError("duration unit is zero")
            return str(_trunc_div(dn, un)).encode("ascii")
        if un == 0:
            value = math.nan if dn == 0 else math.copysign(math.inf, dn)
        else:
            value = dn / un
        return _float64_text(value)

    def append_duration(self, dst, d, unit, use_int):
        return bytes(dst) + self._duration_item(d, unit, use_int)

    def append_durations(self, dst, vals, unit, use_int):
        return bytes(dst) + _json_array(self._duration_item(d, unit, use_int) for d in vals)


__all__ = ["JSONEncoder", "UNIX", "UNIX_MS", "UNIX_MICRO", "UNIX_NANO", "timedelta"]