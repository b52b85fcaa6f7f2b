#tests/test_stats.py

import threading

from netwatch.analysis.stats import TrafficStatsAggregator, classify_hostname_source
from netwatch.models import DomainSource, IPStat, PacketRecord


def _agg(clock):
    return TrafficStatsAggregator(domain_log_size=50, clock=clock)


def test_total_bytes_is_sum_of_lengths(clock):
    agg = _agg(clock)
    lengths = [60, 1500, 0, 42, 900]
    for n in lengths:
        agg.process(PacketRecord(src_ip="10.0.0.1", length=n))
    assert agg.total_bytes == sum(lengths)


def test_top_talkers_scenario(clock):
    agg = _agg(clock)
    agg.process(PacketRecord(src_ip="10.0.0.1", length=500))
    agg.process(PacketRecord(src_ip="10.0.0.2", length=300))
    agg.process(PacketRecord(src_ip="10.0.0.1", length=200))

    assert agg.top_talkers(2) == [IPStat("10.0.0.1", 700), IPStat("10.0.0.2", 300)]


def test_top_talkers_limit_and_order(clock):
    agg = _agg(clock)
    for i, n in enumerate([5, 90, 40, 40, 300, 1]):
        agg.process(PacketRecord(src_ip=f"10.0.0.{i}", length=n))

    top = agg.top_talkers(3)
    assert len(top) == 3
    assert all(a.bytes >= b.bytes for a, b in zip(top, top[1:]))
    assert top[0] == IPStat("10.0.0.4", 300)
    assert agg.top_talkers(0) == []


def test_rates_with_zero_elapsed_keeps_window(clock):
    agg = _agg(clock)
    agg.process(PacketRecord(length=100))

    assert agg.rates() == (0.0, 0.0)
    assert agg.rates() == (0.0, 0.0)

    clock.advance(2.0)
    assert agg.rates() == (400.0, 0.5)


def test_rates_without_records_resets_window_start(clock):
    agg = _agg(clock)
    clock.advance(1.0)
    assert agg.rates() == (0.0, 0.0)

    clock.advance(0.5)
    agg.process(PacketRecord(length=100))
    agg.process(PacketRecord(length=100))
    # measured against the previous call, not construction time
    assert agg.rates() == (3200.0, 4.0)


def test_domain_log_keeps_fifty_most_recent(clock):
    agg = _agg(clock)
    for i in range(51):
        agg.process(PacketRecord(hostname=f"host{i}.example", dst_port=443, protocol="TCP"))

    names = [entry.hostname for entry in agg.domain_log()]
    assert len(names) == 50
    assert "host0.example" not in names
    assert names == [f"host{i}.example" for i in range(1, 51)]


def test_records_without_hostname_are_not_logged(clock):
    agg = _agg(clock)
    agg.process(PacketRecord(src_ip="10.0.0.1", length=10))
    assert agg.domain_log() == []


def test_hostname_source_classification():
    assert classify_hostname_source(PacketRecord(dst_port=443, protocol="TCP")) == DomainSource.SNI
    assert classify_hostname_source(PacketRecord(dst_port=853, protocol="TCP")) == DomainSource.SNI
    assert classify_hostname_source(PacketRecord(dst_port=53, protocol="TCP")) == DomainSource.DNS
    assert classify_hostname_source(PacketRecord(dst_port=5353, protocol="UDP")) == DomainSource.DNS
    assert classify_hostname_source(PacketRecord(dst_port=80, protocol="TCP")) == DomainSource.HTTP
    assert classify_hostname_source(PacketRecord(dst_port=443, protocol="UDP")) == DomainSource.SNI


def test_protocol_breakdown_descending(clock):
    agg = _agg(clock)
    for proto in ["TCP", "UDP", "TCP", "OTHER", "TCP", "UDP", ""]:
        agg.process(PacketRecord(protocol=proto))

    breakdown = agg.protocol_breakdown()
    assert [(p.protocol, p.count) for p in breakdown[:2]] == [("TCP", 3), ("UDP", 2)]
    assert {p.protocol for p in breakdown} == {"TCP", "UDP", "OTHER", "Unknown"}
    assert all(a.count >= b.count for a, b in zip(breakdown, breakdown[1:]))


def test_snapshots_are_copies(clock):
    agg = _agg(clock)
    agg.process(PacketRecord(src_ip="10.0.0.1", length=5, hostname="a.example"))
    agg.domain_log().clear()
    agg.top_talkers(5).clear()
    assert len(agg.domain_log()) == 1
    assert len(agg.top_talkers(5)) == 1


def test_empty_record_is_tolerated(clock):
    agg = _agg(clock)
    agg.process(PacketRecord())
    assert agg.total_bytes == 0
    assert agg.top_talkers(5) == []


def test_concurrent_process_and_reads_stay_consistent():
    agg = TrafficStatsAggregator(domain_log_size=50)
    errors = []

    def worker(n):
        try:
            for i in range(2000):
                agg.process(PacketRecord(src_ip=f"10.0.{n}.{i % 250}", length=3,
                                         hostname=f"h{n}-{i}.example", dst_port=443))
                if i % 50 == 0:
                    agg.rates()
                    agg.top_talkers(5)
                    assert len(agg.domain_log()) <= 50
        except Exception as e:  # surfaced to the main thread below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert agg.total_bytes == 8 * 2000 * 3
    assert len(agg.domain_log()) == 50
    assert sum(s.bytes for s in agg.top_talkers(8 * 250)) == 8 * 2000 * 3
    assert sum(p.count for p in agg.protocol_breakdown()) == 8 * 2000
