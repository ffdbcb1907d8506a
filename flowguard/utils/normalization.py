"""Normalization utilities for observation fields and protocol names.

Sensors, capture backends and HTTP clients do not agree on key names
(`sourceIP`, `src_ip`, `src`...). Everything is mapped onto the canonical
observation keys before feature extraction.
"""

import ipaddress

# canonical key -> accepted spellings, checked in order
FIELD_ALIASES = {
    "source_ip": ("source_ip", "sourceIP", "src_ip", "src", "source"),
    "destination_ip": ("destination_ip", "destinationIP", "dst_ip", "dst", "destination", "dest"),
    "destination_port": ("destination_port", "destinationPort", "dst_port", "dport", "port"),
    "protocol": ("protocol", "proto", "layer"),
    "packet_size": ("packet_size", "packetSize", "length", "len", "size"),
    "timestamp": ("timestamp", "time", "ts"),
    "sensor_id": ("sensor_id", "sensorId", "sensor"),
}

_FOLDED_ALIASES = {
    canonical: frozenset(alias.lower() for alias in aliases)
    for canonical, aliases in FIELD_ALIASES.items()
}

_TRUE_STRINGS = frozenset(("true", "yes", "on", "1"))
_FALSE_STRINGS = frozenset(("false", "no", "off", "0"))

_PROTOCOL_NUMBERS = {
    6: "TCP",
    17: "UDP",
}


def normalize_field_name(field):
    """Map a raw key onto its canonical observation key.

    Args:
        field (str): Original field name

    Returns:
        str: Canonical key, or the stripped input when it is not an alias
    """
    if not field:
        return ""

    stripped = str(field).strip()
    folded = stripped.lower()
    for canonical, aliases in FIELD_ALIASES.items():
        if stripped in aliases or folded in _FOLDED_ALIASES[canonical]:
            return canonical
    return stripped


def pick(data, canonical, default=None):
    """Return the first non-empty value among the aliases of `canonical`.

    Exact spellings are tried first, in alias order; then any other key that
    `normalize_field_name` maps onto `canonical` (`SRC`, `Packet_Size`...).
    """
    for key in FIELD_ALIASES.get(canonical, (canonical,)):
        value = data.get(key)
        if value is not None and value != "":
            return value
    for key, value in data.items():
        if value is None or value == "":
            continue
        if isinstance(key, str) and normalize_field_name(key) == canonical:
            return value
    return default


def normalize_protocol(proto):
    """Return an upper-case protocol name.

    IP protocol numbers (6, 17) are mapped to TCP / UDP; bytes are decoded.
    Anything unusable becomes an empty string.
    """
    if proto is None:
        return ""
    if isinstance(proto, bool):
        return ""
    if isinstance(proto, int):
        return _PROTOCOL_NUMBERS.get(proto, str(proto))
    if isinstance(proto, bytes):
        proto = proto.decode("utf-8", errors="ignore")
    return str(proto).strip().upper()


def to_int(value, default=0):
    """Coerce `value` to int, returning `default` when it cannot be."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def to_bool(value, default=False):
    """Coerce config-style flags (`true`, `"off"`, `0`...) to bool."""
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return value != 0
    folded = str(value).strip().lower()
    if folded in _TRUE_STRINGS:
        return True
    if folded in _FALSE_STRINGS:
        return False
    return default


def is_valid_ip(ip_str):
    """Check whether `ip_str` is an IPv4 or IPv6 address."""
    try:
        ipaddress.ip_address(str(ip_str))
        return True
    except ValueError:
        return False
