from netwatch.discovery.scanner import HostDiscoveryScanner, discover_hosts, iter_probe_targets
