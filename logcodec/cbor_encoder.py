"""CBOR encoder producing compact binary log output."""

import json
import math
import struct
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

from logcodec import cbor_time
from logcodec.cbor_core import (
    ADDITIONAL_BOOL_FALSE,
    ADDITIONAL_BOOL_TRUE,
    ADDITIONAL_BREAK,
    ADDITIONAL_FLOAT32,
    ADDITIONAL_FLOAT64,
    ADDITIONAL_INDEFINITE,
    ADDITIONAL_NULL,
    ADDITIONAL_UINT16,
    FLOAT32_NAN,
    FLOAT32_NEG_INF,
    FLOAT32_POS_INF,
    FLOAT64_NAN,
    FLOAT64_NEG_INF,
    FLOAT64_POS_INF,
    TAG_HEX_STRING,
    TAG_NETWORK_ADDR,
    TAG_NETWORK_PREFIX,
    MajorType,
    append_embedded_json,
    append_length_header,
)

_NIL = bytes((MajorType.SIMPLE_AND_FLOAT | ADDITIONAL_NULL,))
_TRUE = bytes((MajorType.SIMPLE_AND_FLOAT | ADDITIONAL_BOOL_TRUE,))
_FALSE = bytes((MajorType.SIMPLE_AND_FLOAT | ADDITIONAL_BOOL_FALSE,))
_BREAK = bytes((MajorType.SIMPLE_AND_FLOAT | ADDITIONAL_BREAK,))
_MAP_START = bytes((MajorType.MAP | ADDITIONAL_INDEFINITE,))
_ARRAY_START = bytes((MajorType.ARRAY | ADDITIONAL_INDEFINITE,))
_ONE_PAIR_MAP = bytes((MajorType.MAP | 1,))


def _default_marshal(value):
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _tag16(tag):
    return bytes((MajorType.TAGS | ADDITIONAL_UINT16,)) + tag.to_bytes(2, "big")


def _ip_bytes(ip):
    if isinstance(ip, (IPv4Address, IPv6Address)):
        return ip.packed
    if isinstance(ip, str):
        return ip_address(ip).packed
    return bytes(ip)


def _prefix_parts(prefix):
    if isinstance(prefix, tuple):
        address, length = prefix
        return _ip_bytes(address), int(length)
    if isinstance(prefix, (IPv4Network, IPv6Network)):
        return prefix.network_address.packed, prefix.prefixlen
    if not isinstance(prefix, (IPv4Interface, IPv6Interface)):
        prefix = ip_interface(prefix)
    return prefix.ip.packed, prefix.network.prefixlen


def _mac_bytes(mac):
    if isinstance(mac, str):
        return bytes.fromhex(mac.replace(":", "").replace("-", "").replace(".", ""))
    return bytes(mac)


def _type_name(value):
    kind = type(value)
    if kind.__module__ == "builtins":
        return kind.__qualname__
    return f"{kind.__module__}.{kind.__qualname__}"


def _array(dst, items):
    items = list(items)
    if not items:
        return bytes(dst) + _ARRAY_START + _BREAK
    return append_length_header(dst, MajorType.ARRAY, len(items)) + b"".join(items)


def _int_item(val):
    val = int(val)
    if val < 0:
        return append_length_header(b"", MajorType.NEGATIVE_INT, -val - 1)
    return append_length_header(b"", MajorType.UNSIGNED_INT, val)


def _float32_item(val):
    val = float(val)
    if math.isnan(val):
        return FLOAT32_NAN
    if math.isinf(val):
        return FLOAT32_POS_INF if val > 0 else FLOAT32_NEG_INF
    try:
        packed = struct.pack(">f", val)
    except OverflowError:
        return FLOAT32_POS_INF if val > 0 else FLOAT32_NEG_INF
    return bytes((MajorType.SIMPLE_AND_FLOAT | ADDITIONAL_FLOAT32,)) + packed


def _float64_item(val):
    val = float(val)
    if math.isnan(val):
        return FLOAT64_NAN
    if math.isinf(val):
        return FLOAT64_POS_INF if val > 0 else FLOAT64_NEG_INF
    return bytes((MajorType.SIMPLE_AND_FLOAT | ADDITIONAL_FLOAT64,)) + struct.pack(">d", val)


class CBOREncoder:
    """Appends CBOR-encoded values to a byte buffer and returns the new buffer."""

    def __init__(self, marshal=None):
        self.marshal = marshal if marshal is not None else _default_marshal

    # Structure.

    def append_key(self, dst, key):
        dst = bytes(dst)
        if not dst:
            dst = self.append_begin_marker(dst)
        return self.append_string(dst, key)

    def append_nil(self, dst):
        return bytes(dst) + _NIL

    def append_begin_marker(self, dst):
        return bytes(dst) + _MAP_START

    def append_end_marker(self, dst):
        return bytes(dst) + _BREAK

    def append_line_break(self, dst):
        return bytes(dst)

    def append_array_start(self, dst):
        return bytes(dst) + _ARRAY_START

    def append_array_end(self, dst):
        return bytes(dst) + _BREAK

    def append_array_delim(self, dst):
        return bytes(dst)

    def append_object_data(self, dst, obj):
        # The object carries its own map start marker, which is dropped.
        return bytes(dst) + bytes(obj)[1:]

    # Strings and bytes.

    def append_string(self, dst, s):
        data = s.encode("utf-8", "surrogatepass")
        return append_length_header(dst, MajorType.UTF8_STRING, len(data)) + data

    def append_strings(self, dst, vals):
        vals = list(vals)
        out = append_length_header(dst, MajorType.ARRAY, len(vals))
        for v in vals:
            out = self.append_string(out, v)
        return out

    def append_stringer(self, dst, val):
        if val is None:
            return self.append_nil(dst)
        return self.append_string(dst, str(val))

    def append_stringers(self, dst, vals):
        out = self.append_array_start(dst)
        for v in vals:
            out = self.append_stringer(out, v)
        return self.append_array_end(out)

    def append_bytes(self, dst, s):
        data = bytes(s)
        return append_length_header(dst, MajorType.BYTE_STRING, len(data)) + data

    def append_hex(self, dst, s):
        return self.append_bytes(bytes(dst) + _tag16(TAG_HEX_STRING), s)

    # Scalars.

    def append_bool(self, dst, val):
        return bytes(dst) + (_TRUE if val else _FALSE)

    def append_bools(self, dst, vals):
        return _array(dst, (_TRUE if v else _FALSE for v in vals))

    def append_int(self, dst, val):
        return bytes(dst) + _int_item(val)

    def append_ints(self, dst, vals):
        return _array(dst, (_int_item(v) for v in vals))

    def append_float32(self, dst, val):
        return bytes(dst) + _float32_item(val)

    def append_floats32(self, dst, vals):
        return _array(dst, (_float32_item(v) for v in vals))

    def append_float64(self, dst, val):
        return bytes(dst) + _float64_item(val)

    def append_floats64(self, dst, vals):
        return _array(dst, (_float64_item(v) for v in vals))

    def append_interface(self, dst, value):
        try:
            marshaled = self.marshal(value)
        except Exception as err:  # the log line must still be written
            return self.append_string(dst, f"marshaling error: {err}")
        if isinstance(marshaled, str):
            marshaled = marshaled.encode("utf-8")
        return append_embedded_json(dst, marshaled)

    def append_type(self, dst, value):
        if value is None:
            return self.append_string(dst, "<nil>")
        return self.append_string(dst, _type_name(value))

    # Network values.

    def append_ip_addr(self, dst, ip):
        return self.append_bytes(bytes(dst) + _tag16(TAG_NETWORK_ADDR), _ip_bytes(ip))

    def append_ip_prefix(self, dst, prefix):
        address, length = _prefix_parts(prefix)
        out = bytes(dst) + _tag16(TAG_NETWORK_PREFIX) + _ONE_PAIR_MAP
        out = self.append_bytes(out, address)
        return self.append_int(out, length & 0xFF)

    def append_mac_addr(self, dst, mac):
        return self.append_bytes(bytes(dst) + _tag16(TAG_NETWORK_ADDR), _mac_bytes(mac))

    # Time; the format argument has no meaning in the binary encoding.

    def append_time(self, dst, t, fmt=None):
        return cbor_time.append_time(dst, t)

    def append_times(self, dst, vals, fmt=None):
        return cbor_time.append_times(dst, vals)

    def append_duration(self, dst, d, unit, use_int):
        return cbor_time.append_duration(dst, d, unit, use_int)

    def append_durations(self, dst, vals, unit, use_int):
        return cbor_time.append_durations(dst, vals, unit, use_int)