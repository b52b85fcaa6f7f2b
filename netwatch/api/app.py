"""Small internal API exposing the analytics snapshots over HTTP.

Every read endpoint returns copied snapshot data, so it is safe to poll
while the capture thread keeps feeding the monitor. `/ingest` lets an
external producer push record dicts into the same pipeline.
"""
from flask import Flask, jsonify, request

from netwatch.api.ingest import TrafficMonitor


def create_app(monitor: TrafficMonitor) -> Flask:
    app = Flask(__name__)

    def _limit(name, default):
        return request.args.get(name, default, type=int)

    @app.route('/api/rates', methods=['GET'])
    def rates_route():
        bps, pps = monitor.stats.rates()
        return jsonify({'bps': bps, 'pps': pps, 'total_bytes': monitor.stats.total_bytes})

    @app.route('/api/top-talkers', methods=['GET'])
    def top_talkers_route():
        stats = monitor.stats.top_talkers(_limit('n', 10))
        return jsonify([{'ip': s.ip, 'bytes': s.bytes} for s in stats])

    @app.route('/api/protocols', methods=['GET'])
    def protocols_route():
        stats = monitor.stats.protocol_breakdown()
        return jsonify([{'protocol': p.protocol, 'count': p.count} for p in stats])

    @app.route('/api/domains', methods=['GET'])
    def domains_route():
        return jsonify([
            {'hostname': d.hostname, 'timestamp': d.timestamp.isoformat(), 'source': d.source.value}
            for d in monitor.stats.domain_log()
        ])

    @app.route('/api/alerts', methods=['GET'])
    def alerts_route():
        return jsonify([a.to_dict() for a in monitor.detector.recent_alerts(_limit('n', 5))])

    @app.route('/ingest', methods=['POST'])
    def ingest_route():
        pkt = request.get_json(silent=True)
        if not pkt or not isinstance(pkt, dict):
            return jsonify({'error': 'no JSON payload'}), 400
        if not monitor.ingest(pkt):
            return jsonify({'error': 'queue full'}), 503
        return jsonify({'status': 'ok'}), 202

    return app
