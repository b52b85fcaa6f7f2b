"""Ingestion pipeline feeding packet records to the analytics components.

A `TrafficMonitor` owns one aggregator, one detector, a bounded queue (the
buffered, ordered channel between capture and analysis) and a worker thread
that hands every record, in arrival order, to both consumers.

Ingest is non-blocking: when the queue is full the record is dropped with a
warning rather than stalling the capture thread.
"""
from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Dict, Optional, Union

from netwatch.analysis.anomalies import AnomalyDetector
from netwatch.analysis.stats import TrafficStatsAggregator
from netwatch.models import PacketRecord
from netwatch.utils import config as cfg

logger = logging.getLogger(__name__)


class TrafficMonitor:
    def __init__(self, stats: Optional[TrafficStatsAggregator] = None,
                 detector: Optional[AnomalyDetector] = None,
                 maxsize: Optional[int] = None):
        self.stats = stats or TrafficStatsAggregator()
        self.detector = detector or AnomalyDetector()
        # bounded queue to avoid unbounded memory growth under load
        maxsize = maxsize if maxsize is not None else int(cfg.get('queue_maxsize') or 1000)
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._stop_event = threading.Event()
        self._worker: Optional[threading.Thread] = None
        self._dropped_lock = threading.Lock()
        self.dropped = 0

    def start(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._stop_event.clear()
        self._worker = threading.Thread(target=self._run, name="traffic-monitor", daemon=True)
        self._worker.start()

    def stop(self, drain: bool = True) -> None:
        """Stop the worker; with `drain` the queued records are processed first."""
        if drain and self._worker is not None and self._worker.is_alive():
            self._queue.join()
        self._stop_event.set()
        if self._worker is not None:
            self._worker.join()
            self._worker = None

    def ingest(self, packet: Union[PacketRecord, Dict[str, Any]]) -> bool:
        """Enqueue one record (or record-shaped dict); False when it was dropped."""
        record = packet if isinstance(packet, PacketRecord) else PacketRecord.from_dict(packet)
        try:
            self._queue.put(record, timeout=0.2)
        except queue.Full:
            with self._dropped_lock:
                self.dropped += 1
            logger.warning('Ingest queue full; dropping packet')
            return False
        return True

    def handle(self, record: PacketRecord) -> None:
        """Process one record synchronously through both consumers."""
        self.stats.process(record)
        for alert in self.detector.process(record):
            logger.warning('Detection alert: [%s] %s', alert.type.value, alert.message)

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                record = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            try:
                self.handle(record)
            except Exception as e:
                logger.exception('Error analysing record %s: %s', record, e)
            finally:
                self._queue.task_done()

    def snapshot(self, top: int = 10, alerts: int = 5) -> Dict[str, Any]:
        """All presentation data as plain JSON-ready values."""
        bps, pps = self.stats.rates()
        return {
            'rates': {'bps': bps, 'pps': pps},
            'total_bytes': self.stats.total_bytes,
            'top_talkers': [{'ip': s.ip, 'bytes': s.bytes} for s in self.stats.top_talkers(top)],
            'protocols': [{'protocol': p.protocol, 'count': p.count} for p in self.stats.protocol_breakdown()],
            'domains': [
                {'hostname': d.hostname, 'timestamp': d.timestamp.isoformat(), 'source': d.source.value}
                for d in self.stats.domain_log()
            ],
            'alerts': [a.to_dict() for a in self.detector.recent_alerts(alerts)],
        }
