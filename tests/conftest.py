#tests/conftest.py
import ipaddress
import queue
import threading

import pytest

from netwatch.capture.iface import InterfaceInfo
from netwatch.errors import TransmitError

HOST_MAC = "02:00:00:00:00:01"


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeHandle:
    """In-memory stand-in for a layer-2 capture handle."""

    def __init__(self, replies=(), responder=None, clock=None):
        self.sent = []
        self.attempts = 0
        self.closed = False
        self.fail_sends = False
        self.responder = responder
        self.clock = clock
        self._inbox = queue.Queue()
        self._lock = threading.Lock()
        for reply in replies:
            self._inbox.put(reply)

    def inject(self, pkt):
        self._inbox.put(pkt)

    def send(self, frame):
        with self._lock:
            self.attempts += 1
        if self.fail_sends:
            raise TransmitError("link down")
        with self._lock:
            self.sent.append(frame)
        if self.responder is not None:
            for reply in self.responder(frame) or ():
                self._inbox.put(reply)

    def poll(self, timeout):
        if self.clock is not None:
            try:
                return self._inbox.get_nowait()
            except queue.Empty:
                self.clock.advance(timeout)
                return None
        try:
            return self._inbox.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self):
        self.closed = True


class HandleFactory:
    def __init__(self, handle):
        self.handle = handle
        self.calls = []

    def __call__(self, interface, bpf_filter=None, promisc=True):
        self.calls.append((interface, bpf_filter, promisc))
        return self.handle


def make_iface_lookup(ip="192.168.1.10", network="192.168.1.0/24", mac=HOST_MAC):
    def lookup(name):
        return InterfaceInfo(name=name, mac=mac, ip=ip, network=ipaddress.IPv4Network(network))
    return lookup


@pytest.fixture
def clock():
    return FakeClock()
