"""Ethernet-II + ARP frame construction and parsing.

Frames are standard ARP over Ethernet (hardware type 1, protocol type
IPv4, address sizes 6/4) so real hosts accept them.
"""
from __future__ import annotations

from typing import NamedTuple, Optional

from scapy.all import ARP, Ether

BROADCAST_MAC = "ff:ff:ff:ff:ff:ff"
ZERO_MAC = "00:00:00:00:00:00"

ARP_REQUEST = 1
ARP_REPLY = 2

_HW_ETHERNET = 1
_PTYPE_IPV4 = 0x0800
_ETHERTYPE_ARP = 0x0806


class ArpSender(NamedTuple):
    ip: str
    mac: str


def _arp_frame(op, eth_src, eth_dst, hwsrc, psrc, hwdst, pdst):
    return Ether(src=eth_src, dst=eth_dst, type=_ETHERTYPE_ARP) / ARP(
        hwtype=_HW_ETHERNET,
        ptype=_PTYPE_IPV4,
        hwlen=6,
        plen=4,
        op=op,
        hwsrc=hwsrc,
        psrc=psrc,
        hwdst=hwdst,
        pdst=pdst,
    )


def arp_request(src_mac: str, src_ip: str, target_ip: str):
    """Broadcast 'who-has target_ip' from (src_mac, src_ip)."""
    return _arp_frame(ARP_REQUEST, src_mac, BROADCAST_MAC, src_mac, src_ip, ZERO_MAC, target_ip)


def arp_reply(src_mac: str, src_ip: str, dst_mac: str, dst_ip: str):
    """Unicast 'src_ip is-at src_mac' addressed to (dst_mac, dst_ip).

    The Ethernet source is the claimed MAC, so the same builder serves both
    forged and restoring replies.
    """
    return _arp_frame(ARP_REPLY, src_mac, dst_mac, src_mac, src_ip, dst_mac, dst_ip)


def parse_arp_reply(pkt) -> Optional[ArpSender]:
    """Return the sender of an ARP reply, or None for anything else."""
    if pkt is None or not pkt.haslayer(ARP):
        return None
    arp = pkt[ARP]
    if arp.op != ARP_REPLY:
        return None
    return ArpSender(ip=arp.psrc, mac=str(arp.hwsrc).lower())
