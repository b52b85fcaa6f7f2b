"""Exclusive layer-2 capture handle built on a scapy L2 socket.

A handle both transmits crafted frames and polls for inbound ones. Each
component opens its own and closes it when done; handles are never shared.
"""
from __future__ import annotations

import logging
import struct
from typing import Optional

from scapy.all import conf
from scapy.error import Scapy_Exception

from netwatch.errors import CaptureError, TransmitError

logger = logging.getLogger(__name__)


class ScapyHandle:
    def __init__(self, interface: str, bpf_filter: Optional[str] = None, promisc: bool = True):
        self.interface = interface
        self.bpf_filter = bpf_filter
        try:
            self._sock = conf.L2socket(iface=interface, filter=bpf_filter, promisc=promisc)
        except (OSError, Scapy_Exception) as e:
            raise CaptureError(f"failed to open handle on {interface}: {e}") from e
        logger.debug("Opened handle on %s (filter=%s, promisc=%s)", interface, bpf_filter, promisc)

    def send(self, frame) -> None:
        try:
            self._sock.send(frame)
        except (OSError, ValueError, TypeError, struct.error, Scapy_Exception) as e:
            raise TransmitError(f"failed to write frame on {self.interface}: {e}") from e

    def poll(self, timeout: float):
        """Wait up to `timeout` seconds for one frame; None when nothing arrived."""
        ready = self._sock.select([self._sock], timeout)
        if not ready:
            return None
        try:
            return self._sock.recv()
        except (OSError, Scapy_Exception) as e:
            logger.debug("Receive on %s failed: %s", self.interface, e)
            return None

    def close(self) -> None:
        self._sock.close()


def open_handle(interface: str, bpf_filter: Optional[str] = None, promisc: bool = True) -> ScapyHandle:
    return ScapyHandle(interface, bpf_filter=bpf_filter, promisc=promisc)
