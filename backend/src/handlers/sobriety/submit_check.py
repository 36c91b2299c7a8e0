"""
Submit Sobriety Check Handler.
Stores the captured image, runs the vision analysis and records the result.
Analysis errors and timeouts are recorded as a failed check.
"""
from shared.logging import logger, log_event
from shared.auth import resolve_actor
from shared.models import Rejected
from shared.s3_utils import decode_image, InvalidImageError
from shared.utils import format_response, parse_body, rejection_response
from handlers.sobriety._gate import build_gate

gate = build_gate()


def handler(event, context):
    """
    POST /sobriety-check
    Body: {
        "laborerId": "...",
        "image": "data:image/jpeg;base64,...",
        "jobId": "optional"
    }
    """
    log_event(event)

    try:
        body = parse_body(event)
        laborer_id = resolve_actor(event, body, 'laborerId')
        if not laborer_id:
            return format_response(400, {'error': 'Missing laborerId'})

        try:
            image_bytes = decode_image(body.get('image'))
        except InvalidImageError as e:
            return format_response(400, {'error': str(e)})

        result = gate.submit_check(laborer_id, image_bytes, job_id=body.get('jobId'))
        if isinstance(result, Rejected):
            return rejection_response(result)

        return format_response(200, result)

    except Exception as e:
        logger.error(f"Error submitting sobriety check: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
