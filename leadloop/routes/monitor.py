"""
Run routes: health, batch launch and status, learning stats, query proposals.
"""
import logging

from flask import Blueprint, request, jsonify

from leadloop.errors import ConfigurationError
from leadloop.pipeline.manager import launch_run, propose_queries
from leadloop.services.circuit_breaker import health_report
from leadloop.services.db import learning_stats, search_runs_for_batch

logger = logging.getLogger('routes.monitor')

bp = Blueprint('monitor', __name__)


@bp.route('/health')
def health_check():
    """Liveness plus circuit breaker state."""
    return jsonify({'status': 'healthy', 'breakers': health_report()}), 200


@bp.route('/api/runs', methods=['POST'])
def create_run():
    """Enqueue a batch. Body: {"limit_queries": 5, "min_score": 50} (both optional)."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    limit_queries = data.get('limit_queries')
    min_score = data.get('min_score')

    for name, value, minimum in (('limit_queries', limit_queries, 1), ('min_score', min_score, 0)):
        if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < minimum):
            return jsonify({'error': f'{name} must be an integer >= {minimum}'}), 400

    try:
        batch_id = launch_run(limit_queries=limit_queries, min_score=min_score)
    except ConfigurationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.error("Failed to launch batch: %s", e, exc_info=True)
        return jsonify({'error': str(e)}), 500

    return jsonify({'batch_id': batch_id, 'status': 'queued'}), 202


@bp.route('/api/runs/<batch_id>')
def get_run(batch_id):
    """Per-query search runs of one batch."""
    runs = search_runs_for_batch(batch_id)
    if not runs:
        return jsonify({'error': 'Batch not found'}), 404
    return jsonify({'batch_id': batch_id, 'runs': runs})


@bp.route('/api/stats')
def stats():
    """Query and template counters with IPS-estimated mean reward."""
    try:
        return jsonify(learning_stats())
    except Exception as e:
        logger.error("Stats query failed: %s", e, exc_info=True)
        return jsonify({'error': str(e)}), 500


@bp.route('/api/queries/propose', methods=['POST'])
def propose():
    """Store new disabled candidate queries from entity domains and conversion patterns."""
    try:
        created = propose_queries()
    except Exception as e:
        logger.error("Query proposal failed: %s", e, exc_info=True)
        return jsonify({'error': str(e)}), 500
    return jsonify({'created': created})
