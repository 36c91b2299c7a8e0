"""
Admin Review Sobriety Check Handler.
"""
from shared.logging import logger, log_event
from shared.auth import get_user_sub, is_admin
from shared.models import Rejected
from shared.utils import format_response, parse_body, get_path_param, rejection_response
from handlers.sobriety._gate import build_gate

gate = build_gate()

DECISIONS = ('APPROVE', 'REJECT')


def handler(event, context):
    """
    POST /admin/sobriety-check/{checkId}/review
    Body: {
        "decision": "APPROVE" | "REJECT",
        "reason": "Optional notes",
        "resetCooldown": true
    }
    """
    log_event(event)

    try:
        if not is_admin(event):
            return format_response(403, {'error': 'Admin access required'})

        check_id = get_path_param(event, 'checkId')
        body = parse_body(event)
        decision = str(body.get('decision', '')).upper()

        if not check_id:
            return format_response(400, {'error': 'Missing checkId'})
        if decision not in DECISIONS:
            return format_response(400, {'error': 'Invalid decision. Must be APPROVE or REJECT'})

        admin_id = get_user_sub(event)
        if decision == 'APPROVE':
            result = gate.approve(check_id, admin_id)
        else:
            result = gate.reject(
                check_id,
                admin_id,
                reason=body.get('reason'),
                reset_cooldown=bool(body.get('resetCooldown', True))
            )

        if isinstance(result, Rejected):
            return rejection_response(result)
        return format_response(200, result)

    except Exception as e:
        logger.error(f"Error reviewing sobriety check: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
