"""
Job Transition Handlers.
One Lambda entry point per transition after acceptance:

    POST /jobs/{jobId}/start     laborer, requires a valid sobriety pass
    POST /jobs/{jobId}/ready     laborer
    POST /jobs/{jobId}/complete  customer
    POST /jobs/{jobId}/cancel    customer, only while pending
"""
from shared.logging import logger, log_event
from shared.auth import resolve_actor
from shared.lifecycle import JobLifecycle
from shared.models import Rejected
from shared.sobriety import SobrietyGate
from shared.stores import DynamoJobStore, DynamoProfileStore, DynamoSobrietyStore
from shared.utils import format_response, parse_body, get_path_param, rejection_response
from shared.vision import BedrockVisionAnalyzer

profile_store = DynamoProfileStore()
lifecycle = JobLifecycle(
    DynamoJobStore(),
    profile_store,
    SobrietyGate(DynamoSobrietyStore(), BedrockVisionAnalyzer())
)


def start_handler(event, context):
    return _run(event, 'laborerId', lifecycle.start)


def ready_handler(event, context):
    return _run(event, 'laborerId', lifecycle.mark_ready)


def complete_handler(event, context):
    return _run(event, 'customerId', lifecycle.complete)


def cancel_handler(event, context):
    return _run(event, 'customerId', lifecycle.cancel)


def _run(event, actor_field, transition):
    log_event(event)

    try:
        job_id = get_path_param(event, 'jobId')
        actor_id = resolve_actor(event, parse_body(event), actor_field)

        if not job_id or not actor_id:
            return format_response(400, {'error': f'Missing jobId or {actor_field}'})

        result = transition(job_id, actor_id)
        if isinstance(result, Rejected):
            return rejection_response(result)
        return format_response(200, result)

    except Exception as e:
        logger.error(f"Error in {transition.__name__} for job: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
