"""Subnet-wide host discovery by ARP sweep.

One thread probes every address of the local subnet in ascending order
while a reply collector thread records ARP replies coming back on the same
handle. Results are deduplicated by IP and sorted numerically.
"""
from __future__ import annotations

import ipaddress
import logging
import threading
from typing import Callable, Dict, Iterator, List, Optional

from netwatch.capture.frames import arp_request, parse_arp_reply
from netwatch.capture.handle import open_handle
from netwatch.capture.iface import interface_info
from netwatch.errors import CancelledError, TransmitError
from netwatch.models import Host, ScanConfig

logger = logging.getLogger(__name__)


def iter_probe_targets(network: ipaddress.IPv4Network, local_ip: str) -> Iterator[ipaddress.IPv4Address]:
    """Yield subnet addresses ascending, skipping network, broadcast and our own."""
    local = ipaddress.IPv4Address(local_ip)
    first = int(network.network_address) + 1
    last = int(network.broadcast_address)
    for value in range(first, last):
        addr = ipaddress.IPv4Address(value)
        if addr != local:
            yield addr


class _ReplyCollector(threading.Thread):
    """Reads ARP replies from the handle until stopped."""

    def __init__(self, handle, network: ipaddress.IPv4Network, local_ip: str, poll_interval: float):
        super().__init__(name="arp-reply-collector", daemon=True)
        self._handle = handle
        self._network = network
        self._local = ipaddress.IPv4Address(local_ip)
        self._poll_interval = poll_interval
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._hosts: Dict[str, Host] = {}

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self._record(self._handle.poll(self._poll_interval))
            except Exception as e:
                logger.exception("Reply collector failed on a frame: %s", e)

    def _record(self, pkt) -> None:
        sender = parse_arp_reply(pkt)
        if sender is None:
            return
        try:
            ip = ipaddress.IPv4Address(sender.ip)
        except ValueError:
            return
        if ip not in self._network or ip == self._local:
            return
        with self._lock:
            if sender.ip not in self._hosts:
                self._hosts[sender.ip] = Host(ip=sender.ip, mac=sender.mac)
                logger.debug("Discovered %s at %s", sender.ip, sender.mac)

    def stop(self) -> None:
        self._stop_event.set()

    def hosts(self) -> List[Host]:
        with self._lock:
            return sorted(self._hosts.values(), key=lambda h: h.sort_key)


class HostDiscoveryScanner:
    def __init__(self, handle_factory: Callable = open_handle,
                 iface_lookup: Callable = interface_info,
                 poll_interval: float = 0.1):
        self._open = handle_factory
        self._lookup = iface_lookup
        self.poll_interval = poll_interval

    def scan(self, interface: str, config: Optional[ScanConfig] = None,
             cancel: Optional[threading.Event] = None) -> List[Host]:
        """Sweep the subnet of `interface` and return the hosts that answered.

        Setting `cancel` stops probing (and the idle wait) promptly; whatever
        has been collected is returned. If it fires before the first probe
        goes out, CancelledError is raised instead.
        """
        config = (config or ScanConfig.from_config()).normalized()
        cancel = cancel or threading.Event()
        local = self._lookup(interface)

        handle = self._open(interface, bpf_filter="arp", promisc=config.promiscuous)
        collector = _ReplyCollector(handle, local.network, local.ip, self.poll_interval)
        collector.start()
        logger.info("Scanning %s on %s (max_hosts=%s)", local.network, interface, config.max_hosts)

        sent = 0
        try:
            for target in iter_probe_targets(local.network, local.ip):
                if 0 < config.max_hosts <= sent:
                    break
                if cancel.wait(config.rate_limit):
                    if sent == 0:
                        raise CancelledError(f"scan of {local.network} cancelled before any probe")
                    break
                try:
                    handle.send(arp_request(local.mac, local.ip, str(target)))
                except TransmitError as e:
                    logger.debug("Probe to %s failed: %s", target, e)
                    continue
                sent += 1

            if not cancel.is_set():
                cancel.wait(config.idle_wait)
        finally:
            collector.stop()
            collector.join()
            handle.close()

        hosts = collector.hosts()
        logger.info("Scan finished: %d probes sent, %d hosts found", sent, len(hosts))
        return hosts


def discover_hosts(interface: str, config: Optional[ScanConfig] = None,
                   deadline: Optional[float] = None, scanner: Optional[HostDiscoveryScanner] = None) -> List[Host]:
    """Scan with an overall deadline in seconds (None waits for the full sweep)."""
    scanner = scanner or HostDiscoveryScanner()
    cancel = threading.Event()
    timer = None
    if deadline is not None:
        timer = threading.Timer(deadline, cancel.set)
        timer.daemon = True
        timer.start()
    try:
        return scanner.scan(interface, config, cancel)
    finally:
        if timer is not None:
            timer.cancel()
