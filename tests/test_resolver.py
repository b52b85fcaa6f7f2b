#tests/test_resolver.py

import pytest
from scapy.all import ARP, Ether

from netwatch.capture.frames import BROADCAST_MAC, ZERO_MAC, arp_reply, arp_request
from netwatch.errors import ConfigurationError, ResolutionTimeout
from netwatch.spoofer.resolver import ArpResolver
from tests.conftest import HOST_MAC, FakeHandle, HandleFactory, make_iface_lookup

TARGET = "192.168.1.20"
TARGET_MAC = "aa:bb:cc:dd:ee:20"


def _resolver(handle, clock):
    factory = HandleFactory(handle)
    resolver = ArpResolver(poll_interval=0.1, handle_factory=factory,
                           iface_lookup=make_iface_lookup(), clock=clock)
    return resolver, factory


def test_resolve_returns_sender_mac_of_matching_reply(clock):
    def responder(frame):
        return [arp_reply(TARGET_MAC, frame[ARP].pdst, HOST_MAC, frame[ARP].psrc)]

    handle = FakeHandle(responder=responder, clock=clock)
    resolver, factory = _resolver(handle, clock)

    assert resolver.resolve(TARGET, "eth0") == TARGET_MAC
    assert factory.calls == [("eth0", "arp", True)]
    assert handle.closed


def test_resolve_sends_exactly_one_broadcast_request(clock):
    handle = FakeHandle(replies=[arp_reply(TARGET_MAC, TARGET, HOST_MAC, "192.168.1.10")], clock=clock)
    resolver, _ = _resolver(handle, clock)
    resolver.resolve(TARGET, "eth0")

    assert len(handle.sent) == 1
    frame = handle.sent[0]
    assert frame[Ether].dst == BROADCAST_MAC
    assert frame[Ether].type == 0x0806
    arp = frame[ARP]
    assert arp.op == 1
    assert (arp.hwtype, arp.ptype, arp.hwlen, arp.plen) == (1, 0x0800, 6, 4)
    assert arp.hwsrc == HOST_MAC
    assert arp.psrc == "192.168.1.10"
    assert arp.hwdst == ZERO_MAC
    assert arp.pdst == TARGET


def test_resolve_ignores_requests_and_other_senders(clock):
    handle = FakeHandle(replies=[
        arp_request("aa:bb:cc:dd:ee:99", TARGET, "192.168.1.10"),
        arp_reply("aa:bb:cc:dd:ee:30", "192.168.1.30", HOST_MAC, "192.168.1.10"),
        None,
        arp_reply(TARGET_MAC, TARGET, HOST_MAC, "192.168.1.10"),
    ], clock=clock)
    resolver, _ = _resolver(handle, clock)

    assert resolver.resolve(TARGET, "eth0") == TARGET_MAC


def test_resolve_times_out_without_reply(clock):
    handle = FakeHandle(clock=clock)
    resolver, _ = _resolver(handle, clock)
    start = clock()

    with pytest.raises(ResolutionTimeout):
        resolver.resolve(TARGET, "eth0", deadline=3.0)

    assert clock() - start == pytest.approx(3.1, abs=0.15)
    assert len(handle.sent) == 1
    assert handle.closed


def test_resolve_rejects_invalid_ip(clock):
    handle = FakeHandle(clock=clock)
    resolver, factory = _resolver(handle, clock)

    with pytest.raises(ConfigurationError):
        resolver.resolve("not-an-ip", "eth0")
    assert factory.calls == []
