#tests/test_app.py

import pytest

from netwatch.analysis.anomalies import AnomalyDetector
from netwatch.analysis.stats import TrafficStatsAggregator
from netwatch.api.app import create_app
from netwatch.api.ingest import TrafficMonitor
from netwatch.models import AnomalyConfig, PacketRecord


@pytest.fixture
def monitor(clock):
    return TrafficMonitor(
        stats=TrafficStatsAggregator(domain_log_size=50, clock=clock),
        detector=AnomalyDetector(config=AnomalyConfig(), alert_history=20, clock=clock),
        maxsize=10,
    )


@pytest.fixture
def client(monitor):
    return create_app(monitor).test_client()


def test_read_endpoints(client, monitor, clock):
    monitor.handle(PacketRecord(src_ip="10.0.0.1", length=500, dst_port=443, protocol="TCP", hostname="a.example"))
    monitor.handle(PacketRecord(src_ip="10.0.0.2", length=300, dst_port=23, protocol="TCP"))
    clock.advance(2.0)

    assert client.get('/api/rates').get_json() == {'bps': 3200.0, 'pps': 1.0, 'total_bytes': 800}
    assert client.get('/api/top-talkers?n=1').get_json() == [{'ip': '10.0.0.1', 'bytes': 500}]
    assert client.get('/api/protocols').get_json() == [{'protocol': 'TCP', 'count': 2}]
    domains = client.get('/api/domains').get_json()
    assert [(d['hostname'], d['source']) for d in domains] == [('a.example', 'SNI')]
    alerts = client.get('/api/alerts?n=5').get_json()
    assert [a['source'] for a in alerts] == ['10.0.0.2']


def test_ingest_requires_json(client):
    resp = client.post('/ingest', data='nope', content_type='text/plain')
    assert resp.status_code == 400


def test_ingest_queues_record(client, monitor):
    resp = client.post('/ingest', json={'src_ip': '10.0.0.9', 'length': 42})
    assert resp.status_code == 202
    assert monitor._queue.qsize() == 1
