"""Live packet-record producer backed by pyshark (tshark underneath)."""
from __future__ import annotations

import logging
from typing import Callable, Optional

import pyshark

from netwatch.capture.helpers import first_attr, make_packet_record
from netwatch.errors import CaptureError
from netwatch.models import PacketRecord

logger = logging.getLogger(__name__)


def _hostname(pkt) -> Optional[str]:
    # TLS SNI first, then the DNS query, then the HTTP Host header
    for layer, field in (('tls', 'handshake_extensions_server_name'),
                         ('dns', 'qry_name'),
                         ('http', 'host')):
        value = first_attr(getattr(pkt, layer, None), field)
        if value:
            return str(value)
    return None


def to_record(pkt) -> Optional[PacketRecord]:
    """Convert a pyshark packet into a PacketRecord; None when it carries no IPv4."""
    ip = getattr(pkt, 'ip', None)
    if ip is None:
        return None

    proto = "OTHER"
    src_port = dst_port = None
    if hasattr(pkt, 'tcp'):
        proto = "TCP"
        src_port = getattr(pkt.tcp, 'srcport', None)
        dst_port = getattr(pkt.tcp, 'dstport', None)
    elif hasattr(pkt, 'udp'):
        proto = "UDP"
        src_port = getattr(pkt.udp, 'srcport', None)
        dst_port = getattr(pkt.udp, 'dstport', None)

    return make_packet_record(
        src=getattr(ip, 'src', None),
        dst=getattr(ip, 'dst', None),
        proto=proto,
        length=getattr(pkt, 'length', 0),
        src_port=src_port,
        dst_port=dst_port,
        hostname=_hostname(pkt),
        eth_dst=first_attr(getattr(pkt, 'eth', None), 'dst'),
        timestamp=getattr(pkt, 'sniff_time', None),
    )


class PysharkCapture:

    def __init__(self, interface: Optional[str] = None, bpf_filter: Optional[str] = None):
        self.interface = interface
        self.bpf_filter = bpf_filter or None
        self._cap: Optional[pyshark.LiveCapture] = None
        self._running = False

    def start(self, callback: Callable[[PacketRecord], None]) -> None:
        """Start capture; blocks until `stop()` is called, which closes the capture."""
        try:
            self._cap = pyshark.LiveCapture(interface=self.interface, bpf_filter=self.bpf_filter)
        except Exception as e:
            raise CaptureError(f"failed to start capture on {self.interface}: {e}") from e
        self._running = True
        logger.info("Capturing on %s (filter=%s)", self.interface, self.bpf_filter)

        try:
            for pkt in self._cap.sniff_continuously():
                if not self._running:
                    break
                try:
                    record = to_record(pkt)
                except (AttributeError, ValueError) as e:
                    # best-effort: a malformed packet never stops the stream
                    logger.debug("Skipping undecodable packet: %s", e)
                    continue
                if record is not None:
                    callback(record)
        finally:
            self._close()

    def stop(self) -> None:
        self._running = False
        self._close()

    def _close(self) -> None:
        cap, self._cap = self._cap, None
        if cap is None:
            return
        try:
            cap.close()
        except Exception as e:
            logger.warning("Error stopping pyshark capture: %s", e)
