"""Normalization utilities for consistent field handling.

Capture backends report MAC addresses, ports and protocol names in slightly
different shapes; these helpers coerce them into the canonical forms used by
`PacketRecord` and the analytics rules.
"""

_PROTOCOL_ALIASES = {
    "tcp": "TCP",
    "6": "TCP",
    "udp": "UDP",
    "17": "UDP",
}


def normalize_mac(mac):
    """Normalize a MAC address to lowercase colon-separated form.

    Args:
        mac (str): MAC in any of the common notations (``AA-BB-..``, ``aabb.ccdd..``)

    Returns:
        str: e.g. ``"ff:ff:ff:ff:ff:ff"``, or ``""`` when missing or malformed
    """
    if not mac:
        return ""
    digits = "".join(c for c in str(mac).lower() if c in "0123456789abcdef")
    if len(digits) != 12:
        return ""
    return ":".join(digits[i:i + 2] for i in range(0, 12, 2))


def to_int(value, default=0):
    """Best-effort integer conversion for ports and lengths.

    Args:
        value: Raw value (int, numeric string, None)
        default (int): Returned when the value cannot be converted

    Returns:
        int: Converted value, never negative
    """
    try:
        result = int(value)
    except (TypeError, ValueError):
        return default
    return result if result >= 0 else default


def normalize_protocol(proto):
    """Map a protocol name or IP protocol number onto TCP, UDP or OTHER."""
    if proto is None:
        return "OTHER"
    return _PROTOCOL_ALIASES.get(str(proto).strip().lower(), "OTHER")
