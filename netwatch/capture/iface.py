"""Local interface addressing (own MAC, IPv4 address and subnet)."""
from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass

from scapy.all import conf, get_if_addr, get_if_hwaddr
from scapy.error import Scapy_Exception
from scapy.utils import ltoa

from netwatch.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InterfaceInfo:
    name: str
    mac: str
    ip: str
    network: ipaddress.IPv4Network


def _route_iface_name(iface) -> str:
    return iface if isinstance(iface, str) else getattr(iface, 'name', str(iface))


def _subnet_for(interface: str, ip: str) -> ipaddress.IPv4Network:
    """Pick the most specific on-link route of `interface` that contains `ip`."""
    best = None
    for net, msk, gw, iface, addr, _metric in conf.route.routes:
        if _route_iface_name(iface) != interface or msk in (0, 0xFFFFFFFF):
            continue
        candidate = ipaddress.IPv4Network((net, ltoa(msk)), strict=False)
        if ipaddress.IPv4Address(ip) not in candidate:
            continue
        if best is None or candidate.prefixlen > best.prefixlen:
            best = candidate
    if best is None:
        raise ConfigurationError(f"could not determine subnet for {interface} ({ip})")
    return best


def interface_info(interface: str) -> InterfaceInfo:
    if not interface:
        raise ConfigurationError("no interface given")
    try:
        mac = get_if_hwaddr(interface)
        ip = get_if_addr(interface)
    except (OSError, ValueError, Scapy_Exception) as e:
        raise ConfigurationError(f"could not get interface {interface}: {e}") from e

    if not ip or ip == "0.0.0.0":
        raise ConfigurationError(f"no IPv4 address found on interface {interface}")

    network = _subnet_for(interface, ip)
    logger.debug("Interface %s: mac=%s ip=%s network=%s", interface, mac, ip, network)
    return InterfaceInfo(name=interface, mac=mac.lower(), ip=ip, network=network)
