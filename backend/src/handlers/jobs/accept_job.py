"""
Accept Job Handler.
First laborer whose conditional write lands gets the job; everyone else
gets "job no longer available".
"""
from shared.config import config
from shared.logging import logger, log_event
from shared.acceptance import JobAcceptanceArbiter
from shared.auth import resolve_actor
from shared.connections import DynamoConnectionRegistry
from shared.dispatch import notify_job_taken
from shared.models import Rejected
from shared.stores import DynamoJobStore, DynamoProfileStore
from shared.utils import format_response, parse_body, get_path_param, rejection_response

arbiter = JobAcceptanceArbiter(DynamoJobStore(), DynamoProfileStore())
registry = DynamoConnectionRegistry()


def handler(event, context):
    """
    POST /jobs/{jobId}/accept
    Body: { "laborerId": "..." }
    """
    log_event(event)

    try:
        job_id = get_path_param(event, 'jobId')
        laborer_id = resolve_actor(event, parse_body(event), 'laborerId')

        if not job_id or not laborer_id:
            return format_response(400, {'error': 'Missing jobId or laborerId'})

        result = arbiter.accept(job_id, laborer_id)
        if isinstance(result, Rejected):
            return rejection_response(result)

        if config.NOTIFY_JOB_TAKEN and result.get('offeredTo'):
            notify_job_taken(result['offeredTo'], job_id, laborer_id, registry)

        return format_response(200, result)

    except Exception as e:
        logger.error(f"Error accepting job: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
