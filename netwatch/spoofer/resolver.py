"""Single-target MAC resolution over ARP.

Broadcasts one ARP request for the wanted IP and polls the capture for a
reply whose sender protocol address matches it.
"""
from __future__ import annotations

import ipaddress
import logging
import time
from typing import Callable, Optional

from netwatch.capture.frames import arp_request, parse_arp_reply
from netwatch.capture.handle import open_handle
from netwatch.capture.iface import interface_info
from netwatch.errors import ConfigurationError, ResolutionTimeout
from netwatch.utils import config as cfg

logger = logging.getLogger(__name__)


def validate_ipv4(ip: str) -> str:
    try:
        return str(ipaddress.IPv4Address(str(ip).strip()))
    except ValueError as e:
        raise ConfigurationError(f"invalid IP address: {ip}") from e


class ArpResolver:
    def __init__(self, poll_interval: Optional[float] = None,
                 handle_factory: Callable = open_handle,
                 iface_lookup: Callable = interface_info,
                 clock: Callable[[], float] = time.monotonic):
        section = cfg.get('resolver') or {}
        self.default_deadline = float(section.get('deadline', 3.0))
        self.poll_interval = poll_interval if poll_interval is not None else float(section.get('poll_interval', 0.1))
        self._open = handle_factory
        self._lookup = iface_lookup
        self._clock = clock

    def resolve(self, ip: str, interface: str, deadline: Optional[float] = None) -> str:
        """Return the MAC address owning `ip` on `interface`.

        Exactly one request frame is transmitted. Raises ResolutionTimeout if
        no matching reply arrives within `deadline` seconds.
        """
        ip = validate_ipv4(ip)
        deadline = self.default_deadline if deadline is None else deadline
        local = self._lookup(interface)

        handle = self._open(interface, bpf_filter="arp", promisc=True)
        try:
            handle.send(arp_request(local.mac, local.ip, ip))
            start = self._clock()
            while True:
                if self._clock() - start > deadline:
                    raise ResolutionTimeout(ip, deadline)
                sender = parse_arp_reply(handle.poll(self.poll_interval))
                if sender is not None and sender.ip == ip:
                    logger.debug("Resolved %s -> %s", ip, sender.mac)
                    return sender.mac
        finally:
            handle.close()


def get_mac(ip: str, interface: str, deadline: float = 3.0) -> str:
    return ArpResolver().resolve(ip, interface, deadline)
