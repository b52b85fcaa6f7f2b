"""Kernel IP forwarding toggles (Linux sysctl)."""
import logging
import subprocess
import sys

from netwatch.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _sysctl(value: int) -> None:
    cmd = ["sysctl", "-w", f"net.ipv4.ip_forward={value}"]
    try:
        subprocess.run(cmd, check=True, capture_output=True, text=True)
    except (OSError, subprocess.CalledProcessError) as e:
        output = getattr(e, 'stderr', '') or getattr(e, 'stdout', '') or ''
        raise ConfigurationError(f"failed to set ip forwarding to {value}: {e} ({output.strip()})") from e


def enable_ip_forwarding() -> None:
    if not sys.platform.startswith("linux"):
        raise ConfigurationError(f"ip forwarding not implemented for {sys.platform}")
    _sysctl(1)
    logger.info("IP forwarding enabled")


def disable_ip_forwarding() -> None:
    if not sys.platform.startswith("linux"):
        return
    _sysctl(0)
    logger.info("IP forwarding disabled")
