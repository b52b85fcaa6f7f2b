"""Exception hierarchy shared by all netwatch components."""


class NetwatchError(Exception):
    """Base class for every error raised by netwatch."""


class ConfigurationError(NetwatchError):
    """Invalid IP address or interface supplied at setup time."""


class ResolutionTimeout(NetwatchError):
    """No matching ARP reply arrived before the deadline."""

    def __init__(self, ip: str, deadline: float):
        super().__init__(f"timeout waiting for ARP reply from {ip} after {deadline}s")
        self.ip = ip
        self.deadline = deadline


class ResolutionFailure(NetwatchError):
    """The MITM engine could not learn the target or gateway MAC."""


class CaptureError(NetwatchError):
    """A capture handle could not be opened or configured."""


class TransmitError(NetwatchError):
    """A frame could not be serialized or written to the wire."""


class CancelledError(NetwatchError):
    """The caller aborted the operation before it produced anything."""
