"""Central logger configuration for netwatch modules."""
import logging


def configure(level=logging.INFO):
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    # scapy is noisy about routes and interfaces on import
    for name in ('scapy.runtime', 'scapy.loading', 'scapy.interactive'):
        logging.getLogger(name).setLevel(logging.ERROR)
