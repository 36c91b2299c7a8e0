"""
Request Manual Review Handler.
POST /sobriety-check/request-review
Body: { "laborerId": "..." }

Sends the laborer's latest failed check to an administrator and lifts the
cooldown while the review is pending.
"""
from shared.logging import logger, log_event
from shared.auth import resolve_actor
from shared.models import Rejected
from shared.utils import format_response, parse_body, rejection_response
from handlers.sobriety._gate import build_gate

gate = build_gate()


def handler(event, context):
    log_event(event)

    try:
        laborer_id = resolve_actor(event, parse_body(event), 'laborerId')
        if not laborer_id:
            return format_response(400, {'error': 'Missing laborerId'})

        result = gate.request_manual_review(laborer_id)
        if isinstance(result, Rejected):
            return rejection_response(result)
        return format_response(200, result)

    except Exception as e:
        logger.error(f"Error requesting manual review: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
