"""Data model shared between discovery, spoofing and the analytics layer.

Every value type here is immutable; components exchange them by value and
never hand out references to their own mutable state.
"""
from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from netwatch.utils import config as cfg
from netwatch.utils.normalization import normalize_mac, normalize_protocol, to_int


@dataclass(frozen=True)
class Host:
    """A device discovered on the local subnet. Identity is the IP."""

    ip: str
    mac: str
    name: str = ""

    @property
    def sort_key(self) -> int:
        return int(ipaddress.IPv4Address(self.ip))


@dataclass(frozen=True)
class PacketRecord:
    """One decoded packet summary as produced by the capture collaborator.

    All fields are best-effort: absent values keep their empty defaults.
    """

    timestamp: Optional[datetime] = None
    src_ip: str = ""
    dst_ip: str = ""
    src_port: int = 0
    dst_port: int = 0
    protocol: str = "OTHER"
    length: int = 0
    hostname: str = ""
    eth_dst: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PacketRecord":
        """Build a record from a loosely shaped dict (HTTP ingest, JSON lines)."""
        ts = data.get('timestamp')
        if isinstance(ts, str):
            try:
                ts = datetime.fromisoformat(ts)
            except ValueError:
                ts = None
        elif not isinstance(ts, datetime):
            ts = None
        return cls(
            timestamp=ts,
            src_ip=str(data.get('src_ip') or data.get('src') or ''),
            dst_ip=str(data.get('dst_ip') or data.get('dst') or ''),
            src_port=to_int(data.get('src_port')),
            dst_port=to_int(data.get('dst_port') or data.get('port')),
            protocol=normalize_protocol(data.get('protocol')),
            length=to_int(data.get('length')),
            hostname=str(data.get('hostname') or ''),
            eth_dst=normalize_mac(data.get('eth_dst')),
        )


class AnomalyType(str, Enum):
    BROADCAST_STORM = "BROADCAST_STORM"
    UNSECURE_PROTOCOL = "UNSECURE_PROTOCOL"
    POSSIBLE_DOS = "POSSIBLE_DOS"


class DomainSource(str, Enum):
    SNI = "SNI"
    DNS = "DNS"
    HTTP = "HTTP"


@dataclass(frozen=True)
class IPStat:
    ip: str
    bytes: int


@dataclass(frozen=True)
class ProtocolStat:
    protocol: str
    count: int


@dataclass(frozen=True)
class DomainEntry:
    hostname: str
    timestamp: datetime
    source: DomainSource


@dataclass(frozen=True)
class Alert:
    type: AnomalyType
    source: str
    message: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'source': self.source,
            'message': self.message,
            'timestamp': self.timestamp.isoformat(),
        }


DEFAULT_RATE_LIMIT = 50e-6
DEFAULT_IDLE_WAIT = 0.5
DEFAULT_MAX_HOSTS = 4096
MIN_CAPPED_HOSTS = 512


@dataclass(frozen=True)
class ScanConfig:
    """Discovery tuning. Durations are in seconds."""

    rate_limit: float = DEFAULT_RATE_LIMIT
    idle_wait: float = DEFAULT_IDLE_WAIT
    max_hosts: int = DEFAULT_MAX_HOSTS
    promiscuous: bool = True

    @classmethod
    def from_config(cls) -> "ScanConfig":
        section = cfg.get('scan') or {}
        return cls(
            rate_limit=float(section.get('rate_limit', DEFAULT_RATE_LIMIT)),
            idle_wait=float(section.get('idle_wait', DEFAULT_IDLE_WAIT)),
            max_hosts=int(section.get('max_hosts', DEFAULT_MAX_HOSTS)),
            promiscuous=bool(section.get('promiscuous', True)),
        )

    def normalized(self) -> "ScanConfig":
        """Apply defaults: non-positive durations fall back, max_hosts <= 0 means
        unlimited (-1), and a cap is never below 512 probes."""
        max_hosts = self.max_hosts
        if max_hosts <= 0:
            max_hosts = -1
        elif max_hosts < MIN_CAPPED_HOSTS:
            max_hosts = MIN_CAPPED_HOSTS
        return replace(
            self,
            rate_limit=self.rate_limit if self.rate_limit > 0 else DEFAULT_RATE_LIMIT,
            idle_wait=self.idle_wait if self.idle_wait > 0 else DEFAULT_IDLE_WAIT,
            max_hosts=max_hosts,
        )


@dataclass(frozen=True)
class AnomalyConfig:
    """Thresholds for the anomaly rules. Durations are in seconds."""

    broadcast_threshold: int = 50
    dos_threshold: int = 500
    unsecure_cooldown: float = 10.0
    cleanup_interval: float = 60.0
    data_retention: float = 300.0
    window: float = field(default=1.0, repr=False)

    @classmethod
    def from_config(cls) -> "AnomalyConfig":
        section = cfg.get('anomaly') or {}
        defaults = cls()
        return cls(
            broadcast_threshold=int(section.get('broadcast_threshold', defaults.broadcast_threshold)),
            dos_threshold=int(section.get('dos_threshold', defaults.dos_threshold)),
            unsecure_cooldown=float(section.get('unsecure_cooldown', defaults.unsecure_cooldown)),
            cleanup_interval=float(section.get('cleanup_interval', defaults.cleanup_interval)),
            data_retention=float(section.get('data_retention', defaults.data_retention)),
        )
