"""Small helpers shared by capture backends.

Provide a single place to build the canonical `PacketRecord` so backends
produce consistent fields with minimal duplicated code.
"""
from datetime import datetime
from typing import Any, Optional

from netwatch.models import PacketRecord
from netwatch.utils.normalization import normalize_mac, normalize_protocol, to_int


def first_attr(obj: Any, *names: str, default=None):
    """Return the first non-empty attribute among `names`."""
    if obj is None:
        return default
    for name in names:
        value = getattr(obj, name, None)
        if value not in (None, ""):
            return value
    return default


def make_packet_record(src: Optional[str], dst: Optional[str], proto: Any, length: Any,
                       src_port: Any = None, dst_port: Any = None,
                       hostname: Optional[str] = None, eth_dst: Optional[str] = None,
                       timestamp: Optional[datetime] = None) -> PacketRecord:
    """Create a canonical packet record.

    Args:
        src: Source IP
        dst: Destination IP
        proto: Transport protocol name or IP protocol number
        length: Frame length in bytes
        src_port: Source port (optional, for TCP/UDP)
        dst_port: Destination port (optional, for TCP/UDP)
        hostname: Best available hostname (SNI > DNS > HTTP Host)
        eth_dst: Destination MAC address
        timestamp: Capture time, defaults to now

    Returns:
        PacketRecord with normalized fields
    """
    return PacketRecord(
        timestamp=timestamp or datetime.now(),
        src_ip=str(src or ""),
        dst_ip=str(dst or ""),
        src_port=to_int(src_port),
        dst_port=to_int(dst_port),
        protocol=normalize_protocol(proto),
        length=to_int(length),
        hostname=str(hostname or "").strip(),
        eth_dst=normalize_mac(eth_dst),
    )
