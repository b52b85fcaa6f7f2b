"""Streaming traffic statistics: volume, rates, top talkers, protocols, domains."""
from __future__ import annotations

import threading
import time
from collections import Counter, deque
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from netwatch.models import DomainEntry, DomainSource, IPStat, PacketRecord, ProtocolStat
from netwatch.utils import config as cfg

# hostname source by destination port; UDP without a known port counts as DNS
_PORT_SOURCES = {
    443: DomainSource.SNI,
    853: DomainSource.SNI,  # DNS over TLS
    53: DomainSource.DNS,
}
_PROTOCOL_SOURCES = {
    "UDP": DomainSource.DNS,
}


def classify_hostname_source(record: PacketRecord) -> DomainSource:
    source = _PORT_SOURCES.get(record.dst_port) or _PROTOCOL_SOURCES.get(record.protocol)
    return source or DomainSource.HTTP


class TrafficStatsAggregator:
    """Thread-safe aggregator fed one PacketRecord at a time.

    All reads return snapshot copies.
    """

    def __init__(self, domain_log_size: Optional[int] = None,
                 clock: Callable[[], float] = time.monotonic,
                 wallclock: Callable[[], datetime] = datetime.now):
        if domain_log_size is None:
            domain_log_size = int((cfg.get('stats') or {}).get('domain_log_size', 50))
        self._clock = clock
        self._wallclock = wallclock
        self._lock = threading.Lock()
        self._total_bytes = 0
        self._window_bytes = 0
        self._window_packets = 0
        self._last_tick = clock()
        self._ip_bytes: Counter = Counter()
        self._protocol_counts: Counter = Counter()
        self._domain_log: deque = deque(maxlen=domain_log_size)

    def process(self, record: PacketRecord) -> None:
        length = record.length or 0
        with self._lock:
            self._total_bytes += length
            self._window_bytes += length
            self._window_packets += 1

            if record.src_ip:
                self._ip_bytes[record.src_ip] += length

            self._protocol_counts[record.protocol or "Unknown"] += 1

            if record.hostname:
                self._domain_log.append(DomainEntry(
                    hostname=record.hostname,
                    timestamp=self._wallclock(),
                    source=classify_hostname_source(record),
                ))

    @property
    def total_bytes(self) -> int:
        with self._lock:
            return self._total_bytes

    def rates(self) -> Tuple[float, float]:
        """(bits/sec, packets/sec) since the previous call; resets the window."""
        with self._lock:
            now = self._clock()
            elapsed = now - self._last_tick
            if elapsed <= 0:
                return 0.0, 0.0
            bps = self._window_bytes * 8 / elapsed
            pps = self._window_packets / elapsed
            self._window_bytes = 0
            self._window_packets = 0
            self._last_tick = now
            return bps, pps

    def top_talkers(self, n: int) -> List[IPStat]:
        if n <= 0:
            return []
        with self._lock:
            ranked = self._ip_bytes.most_common(n)
        return [IPStat(ip=ip, bytes=count) for ip, count in ranked]

    def protocol_breakdown(self) -> List[ProtocolStat]:
        with self._lock:
            ranked = self._protocol_counts.most_common()
        return [ProtocolStat(protocol=proto, count=count) for proto, count in ranked]

    def domain_log(self) -> List[DomainEntry]:
        with self._lock:
            return list(self._domain_log)
