"""
Get Latest Sobriety Check Handler.
GET /sobriety-check/latest/{laborerId}
"""
from shared.logging import logger, log_event
from shared.auth import get_user_sub, is_admin
from shared.utils import format_response, get_path_param
from handlers.sobriety._gate import build_gate

gate = build_gate()


def handler(event, context):
    """
    Latest check plus cooldown state for the check screen.
    Laborers may only read their own; administrators may read anyone's.
    """
    log_event(event)

    try:
        caller_id = get_user_sub(event)
        laborer_id = get_path_param(event, 'laborerId') or caller_id
        if not laborer_id:
            return format_response(400, {'error': 'Missing laborerId'})

        if caller_id and laborer_id != caller_id and not is_admin(event):
            return format_response(403, {'error': 'Forbidden', 'message': 'Not your sobriety check'})

        return format_response(200, gate.cooldown_status(laborer_id))

    except Exception as e:
        logger.error(f"Error fetching sobriety status: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
