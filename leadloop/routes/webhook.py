"""
Outcome webhook: the CRM (or a human) reports WON / LOST for an attempt.

POST /webhook/outcome
    {"outcome": "WON", "attempt_id": "..."}   or   {"outcome": "LOST", "lead_id": "..."}

When WEBHOOK_SECRET is set the request must carry it in X-Webhook-Secret.
Replays return 200 with applied=false.
"""
import hmac
import logging

from flask import Blueprint, request, jsonify

from leadloop.config import WEBHOOK_SECRET
from leadloop.errors import AttemptNotFoundError, InvalidOutcomeError
from leadloop.services.outcomes import record_outcome

logger = logging.getLogger('routes.webhook')

bp = Blueprint('webhook', __name__)


def _authorized():
    if not WEBHOOK_SECRET:
        return True
    supplied = request.headers.get('X-Webhook-Secret', '')
    return hmac.compare_digest(supplied, WEBHOOK_SECRET)


@bp.route('/webhook/outcome', methods=['POST'])
def outcome_webhook():
    if not _authorized():
        return jsonify({'error': 'Unauthorized'}), 401

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    attempt_id = data.get('attempt_id')
    lead_id = data.get('lead_id')
    if not attempt_id and not lead_id:
        return jsonify({'error': 'attempt_id or lead_id is required'}), 400

    try:
        result = record_outcome(data.get('outcome'), attempt_id=attempt_id, lead_id=lead_id)
    except InvalidOutcomeError as e:
        return jsonify({'error': str(e)}), 400
    except AttemptNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        logger.error("Outcome webhook failed: %s", e, exc_info=True)
        return jsonify({'error': 'Failed to record outcome'}), 500

    return jsonify(result.to_dict()), 200
