"""
List Pending Reviews Handler.
GET /admin/sobriety-checks
"""
from shared.logging import logger, log_event
from shared.auth import is_admin
from shared.s3_utils import generate_presigned_url
from shared.utils import format_response
from handlers.sobriety._gate import build_gate

gate = build_gate()


def handler(event, context):
    """Checks awaiting an administrator, oldest first, with viewable image links."""
    log_event(event)

    try:
        if not is_admin(event):
            return format_response(403, {'error': 'Admin access required'})

        checks = sorted(gate.pending_reviews(), key=lambda c: c.get('reviewRequestedAt') or c.get('checkedAt', ''))
        for check in checks:
            check['imageUrl'] = generate_presigned_url(check.get('imageReference'))

        return format_response(200, {'checks': checks, 'count': len(checks)})

    except Exception as e:
        logger.error(f"Error listing pending reviews: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
