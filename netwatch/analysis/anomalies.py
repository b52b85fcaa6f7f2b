"""Rule-based anomaly detection over the packet-record stream.

Three rules run on every record: broadcast storm, plaintext (unsecure)
protocol use and single-source packet floods (possible DoS). Both rate
rules reset their counter when they fire, so a sustained flood alerts once
per window that crosses the threshold rather than on every packet.
"""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from netwatch.analysis.services import service_name
from netwatch.capture.frames import BROADCAST_MAC
from netwatch.models import Alert, AnomalyConfig, AnomalyType, PacketRecord
from netwatch.utils import config as cfg

logger = logging.getLogger(__name__)

UNSECURE_PORTS = {port: service_name(port) for port in (80, 21, 23)}


@dataclass
class _Window:
    started: float
    count: int = 0
    last_seen: float = 0.0


class AnomalyDetector:
    def __init__(self, config: Optional[AnomalyConfig] = None,
                 alert_history: Optional[int] = None,
                 clock: Callable[[], float] = time.monotonic,
                 wallclock: Callable[[], datetime] = datetime.now):
        self.config = config or AnomalyConfig.from_config()
        if alert_history is None:
            alert_history = int((cfg.get('stats') or {}).get('alert_history', 20))
        self._clock = clock
        self._wallclock = wallclock
        self._lock = threading.Lock()

        self._broadcast: Optional[_Window] = None
        self._unsecure_alerts: Dict[Tuple[str, int], float] = {}
        self._ip_windows: Dict[str, _Window] = {}
        self._alerts: deque = deque(maxlen=alert_history)
        self._last_cleanup = clock()

    def process(self, record: PacketRecord) -> List[Alert]:
        """Evaluate all rules against one record; returns the alerts it raised."""
        with self._lock:
            now = self._clock()
            raised: List[Alert] = []
            for rule in (self._detect_broadcast_storm, self._detect_unsecure_protocol, self._detect_dos):
                alert = rule(record, now)
                if alert is not None:
                    self._alerts.append(alert)
                    raised.append(alert)
            self._maybe_cleanup(now)
            return raised

    def recent_alerts(self, n: int = 5) -> List[Alert]:
        """Up to `n` most recent alerts, oldest first."""
        if n <= 0:
            return []
        with self._lock:
            return list(self._alerts)[-n:]

    def _alert(self, kind: AnomalyType, source: str, message: str) -> Alert:
        return Alert(type=kind, source=source, message=message, timestamp=self._wallclock())

    def _tick(self, window: Optional[_Window], now: float) -> _Window:
        """Count one packet in a 1-second window, restarting it once expired."""
        if window is None or now - window.started > self.config.window:
            window = _Window(started=now)
        window.count += 1
        window.last_seen = now
        return window

    def _detect_broadcast_storm(self, record: PacketRecord, now: float) -> Optional[Alert]:
        if (record.eth_dst or "").lower() != BROADCAST_MAC:
            return None
        self._broadcast = window = self._tick(self._broadcast, now)
        if window.count <= self.config.broadcast_threshold:
            return None
        count = window.count
        self._broadcast = _Window(started=now, last_seen=now)
        return self._alert(
            AnomalyType.BROADCAST_STORM, "Network",
            f"Broadcast storm detected: {count} broadcasts in 1 second",
        )

    def _detect_unsecure_protocol(self, record: PacketRecord, now: float) -> Optional[Alert]:
        name = UNSECURE_PORTS.get(record.dst_port)
        if name is None or not record.src_ip:
            return None
        key = (record.src_ip, record.dst_port)
        last = self._unsecure_alerts.get(key)
        if last is not None and now - last <= self.config.unsecure_cooldown:
            return None
        self._unsecure_alerts[key] = now
        return self._alert(
            AnomalyType.UNSECURE_PROTOCOL, record.src_ip,
            f"Plaintext {name} traffic on port {record.dst_port} from {record.src_ip}",
        )

    def _detect_dos(self, record: PacketRecord, now: float) -> Optional[Alert]:
        src = record.src_ip
        if not src:
            return None
        window = self._tick(self._ip_windows.get(src), now)
        self._ip_windows[src] = window
        if window.count <= self.config.dos_threshold:
            return None
        count = window.count
        self._ip_windows[src] = _Window(started=now, last_seen=now)
        return self._alert(
            AnomalyType.POSSIBLE_DOS, src,
            f"High packet rate from {src}: {count} pps",
        )

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self.config.cleanup_interval:
            return
        self._last_cleanup = now
        retention = self.config.data_retention
        stale_keys = [k for k, last in self._unsecure_alerts.items() if now - last > retention]
        for key in stale_keys:
            del self._unsecure_alerts[key]
        stale_ips = [ip for ip, w in self._ip_windows.items() if now - w.last_seen > retention]
        for ip in stale_ips:
            del self._ip_windows[ip]
        if stale_keys or stale_ips:
            logger.debug("Purged %d throttle and %d window entries", len(stale_keys), len(stale_ips))

    def tracked_sources(self) -> int:
        """Number of source IPs with a live rate window."""
        with self._lock:
            return len(self._ip_windows)
