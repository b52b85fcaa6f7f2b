# runner.py
"""
Main runner: discovery, optional ARP MITM, live capture and analytics.
"""
from __future__ import annotations

import argparse
import logging
import threading
import time

from netwatch.api.app import create_app
from netwatch.api.ingest import TrafficMonitor
from netwatch.capture.pyshark_capture import PysharkCapture
from netwatch.discovery.scanner import discover_hosts
from netwatch.errors import CancelledError, NetwatchError
from netwatch.models import ScanConfig
from netwatch.spoofer.engine import new_mitm_engine
from netwatch.spoofer.forward import disable_ip_forwarding, enable_ip_forwarding
from netwatch.utils import config as cfg
from netwatch.utils import logger as logconf

logger = logging.getLogger(__name__)


def choose_target(interface, scan_config, timeout):
    """Scan the subnet and let the user pick a target and gateway."""
    print(f"No target specified. Scanning network on {interface}...")
    try:
        hosts = discover_hosts(interface, scan_config, deadline=timeout)
    except CancelledError:
        print("Scan timed out.")
        return None, None

    if not hosts:
        print("No hosts found.")
        return None, None

    print("\nAvailable Targets:")
    for i, host in enumerate(hosts, start=1):
        print(f"[{i}] IP: {host.ip}\tMAC: {host.mac}")

    choice = input("\nSelect target (number): ").strip()
    try:
        index = int(choice)
    except ValueError:
        index = 0
    if not 1 <= index <= len(hosts):
        raise SystemExit("Invalid selection")
    target = hosts[index - 1].ip
    print(f"Selected Target: {target}")

    gateway = input("Enter Gateway IP (leave empty to skip MITM): ").strip() or None
    return target, gateway


def print_summary(monitor: TrafficMonitor, top: int = 5):
    bps, pps = monitor.stats.rates()
    print(f"\n=== {time.strftime('%H:%M:%S')}  {bps / 1000:.1f} kbit/s  {pps:.1f} pkt/s  "
          f"total {monitor.stats.total_bytes} bytes ===")
    for stat in monitor.stats.top_talkers(top):
        print(f"  {stat.ip:15}  {stat.bytes} bytes")
    protocols = ", ".join(f"{p.protocol}={p.count}" for p in monitor.stats.protocol_breakdown())
    print(f"  protocols: {protocols or '-'}")
    for entry in monitor.stats.domain_log()[-top:]:
        print(f"  [{entry.source.value}] {entry.hostname}")
    for alert in monitor.detector.recent_alerts(5):
        print(f"  ! {alert.type.value}: {alert.message}")


def scan_config_from_args(args) -> ScanConfig:
    return ScanConfig(
        rate_limit=args.scan_rate,
        idle_wait=args.scan_idle_wait,
        max_hosts=args.scan_max_hosts,
        promiscuous=not args.no_promisc,
    )


def save_scan_config(args) -> bool:
    """Persist the effective scan settings so later runs start from them."""
    scan_config = scan_config_from_args(args)
    section = dict(cfg.get('scan') or {})
    section.update(
        rate_limit=scan_config.rate_limit,
        idle_wait=scan_config.idle_wait,
        max_hosts=scan_config.max_hosts,
        promiscuous=scan_config.promiscuous,
        timeout=args.scan_timeout,
    )
    cfg.set_section('scan', section)
    return cfg.save()


def run(args):
    scan_config = scan_config_from_args(args)

    target, gateway = args.target, args.gateway
    if not target:
        target, gateway = choose_target(args.interface, scan_config, args.scan_timeout)
        if not target:
            return
        if not gateway:
            print("No gateway given; capturing passively.")
            target = None

    engine = None
    forwarding = False
    capture_filter = None
    if target and gateway:
        print("Starting MITM setup...")
        enable_ip_forwarding()
        forwarding = True
        try:
            engine = new_mitm_engine(target, gateway, args.interface)
            engine.start()
        except NetwatchError:
            disable_ip_forwarding()
            raise
        # drop our own transmissions so forwarded packets are not counted twice
        capture_filter = f"not ether src {engine.host_mac}"
        print(f"MITM Active. Filter: {capture_filter}")
    elif target or gateway:
        raise SystemExit("Both --target and --gateway must be specified for MITM mode")

    monitor = TrafficMonitor()
    monitor.start()
    capture = PysharkCapture(args.interface, capture_filter)
    capture_thread = threading.Thread(target=capture.start, args=(monitor.ingest,), name="capture", daemon=True)
    capture_thread.start()

    try:
        if args.api_port:
            create_app(monitor).run(host='127.0.0.1', port=args.api_port)
        else:
            while capture_thread.is_alive():
                time.sleep(args.refresh)
                print_summary(monitor)
    except KeyboardInterrupt:
        print("\nCapture stopped by user")
    finally:
        capture.stop()
        monitor.stop(drain=False)
        if engine is not None:
            print("Stopping Spoofer...")
            engine.stop()
        if forwarding:
            print("Disabling IP Forwarding...")
            try:
                disable_ip_forwarding()
            except NetwatchError as e:
                logger.warning("%s", e)


def build_parser():
    scan = cfg.get('scan') or {}
    parser = argparse.ArgumentParser(description="Netwatch: ARP discovery, MITM and traffic analytics")
    parser.add_argument("-i", "--interface", required=True,
                        help="Network interface to capture from (e.g. eth0, wlan0)")
    parser.add_argument("--target", help="Target IP for MITM (requires --gateway)")
    parser.add_argument("--gateway", help="Gateway IP for MITM (requires --target)")
    parser.add_argument("--scan-timeout", type=float, default=float(scan.get('timeout', 10.0)),
                        help="Timeout for the discovery scan in seconds")
    parser.add_argument("--scan-idle-wait", type=float, default=float(scan.get('idle_wait', 0.5)),
                        help="Seconds to wait for late ARP replies after probing")
    parser.add_argument("--scan-rate", type=float, default=float(scan.get('rate_limit', 50e-6)),
                        help="Delay between ARP probes in seconds")
    parser.add_argument("--scan-max-hosts", type=int, default=int(scan.get('max_hosts', 4096)),
                        help="Maximum hosts to probe; 0 or negative scans the full subnet")
    parser.add_argument("--no-promisc", action="store_true",
                        help="Do not open the discovery capture in promiscuous mode")
    parser.add_argument("--refresh", type=float, default=2.0,
                        help="Seconds between console summaries")
    parser.add_argument("--api-port", type=int, default=0,
                        help="Serve the JSON API on this port instead of printing summaries")
    parser.add_argument("--save-config", action="store_true",
                        help="Store the scan settings given here as the new defaults")
    parser.add_argument("--log-level", default="INFO")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logconf.configure(getattr(logging, args.log_level.upper(), logging.INFO))
    if args.save_config and save_scan_config(args):
        logger.info("Saved scan settings as the new defaults")
    try:
        run(args)
    except NetwatchError as e:
        raise SystemExit(f"netwatch: {e}")


if __name__ == "__main__":
    main()
