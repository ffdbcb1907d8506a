"""HTTP API in front of the detection engine.

- POST /api/analyze : analyze one observation synchronously, return the verdict
- POST /api/ingest  : enqueue an observation for the background pipeline
- GET  /api/stats   : engine and queue counters
- POST /api/sweep   : drop stale flows now (for hosts with sparse traffic)
"""
from __future__ import annotations

import logging
from typing import Optional

from flask import Flask, jsonify, request

from flowguard.api.ingest import IngestPipeline, to_event
from flowguard.detection.engine import AnomalyEngine
from flowguard.utils import config as cfg

logger = logging.getLogger(__name__)


def create_app(engine: Optional[AnomalyEngine] = None, pipeline: Optional[IngestPipeline] = None) -> Flask:
    engine = engine or AnomalyEngine()
    pipeline = pipeline or IngestPipeline(engine)
    app = Flask(__name__)
    app.config['ENGINE'] = engine
    app.config['PIPELINE'] = pipeline

    def _payload():
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or not data:
            return None
        return data

    @app.route('/api/analyze', methods=['POST'])
    def analyze_route():
        data = _payload()
        if data is None:
            return jsonify({'error': 'expected a JSON object'}), 400
        try:
            verdict = engine.analyze_and_predict(data)
        except Exception as e:
            logger.exception('Analysis failed for %s', data)
            return jsonify({'error': 'analysis failed', 'details': str(e)}), 500
        return jsonify(to_event(verdict, data))

    @app.route('/api/ingest', methods=['POST'])
    def ingest_route():
        data = _payload()
        if data is None:
            return jsonify({'error': 'expected a JSON object'}), 400
        if not pipeline.submit(data):
            return jsonify({'error': 'queue full'}), 503
        return jsonify({'status': 'queued'}), 202

    @app.route('/api/stats', methods=['GET'])
    def stats_route():
        stats = engine.stats()
        stats['queue'] = {'maxsize': pipeline.maxsize, 'dropped': pipeline.dropped}
        return jsonify(stats)

    @app.route('/api/sweep', methods=['POST'])
    def sweep_route():
        removed = engine.sweep()
        return jsonify({'removed': removed, 'active_flows': engine.stats()['active_flows']})

    return app


def run(host: Optional[str] = None, port: Optional[int] = None) -> None:
    api_cfg = cfg.get('api') or {}
    app = create_app()
    app.run(host=host or api_cfg.get('host', '127.0.0.1'), port=int(port or api_cfg.get('port', 5000)))
