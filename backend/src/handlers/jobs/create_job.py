"""
Create Job Handler.
Stores a new pending job, matches available laborers by skill and pushes
the offer to every matched laborer with a live WebSocket connection.
"""
import uuid
from decimal import Decimal, InvalidOperation
from shared.config import config
from shared.logging import logger, log_event
from shared.auth import resolve_actor
from shared.connections import DynamoConnectionRegistry
from shared.dispatch import notify
from shared.matcher import match_candidates
from shared.models import DeliveryStatus, JobStatus, SkillType
from shared.stores import DynamoJobStore, DynamoProfileStore
from shared.utils import format_response, parse_body, utc_now, to_iso

job_store = DynamoJobStore()
profile_store = DynamoProfileStore()
registry = DynamoConnectionRegistry()


def handler(event, context):
    """
    POST /jobs
    Body: {
        "customerId": "...",
        "skillsNeeded": [{"skill": "mason", "quantity": 1, "rate": 800}],
        "location": "...",
        "totalAmount": 800
    }
    """
    log_event(event)

    try:
        body = parse_body(event)
        customer_id = resolve_actor(event, body, 'customerId')
        if not customer_id:
            return format_response(400, {'error': 'Missing customerId'})

        skills_needed, error = validate_skills(body.get('skillsNeeded'))
        if error:
            return format_response(400, {'error': error})

        location = (body.get('location') or '').strip()
        if not location:
            return format_response(400, {'error': 'Missing location'})

        try:
            total_amount = Decimal(str(body['totalAmount'])) if body.get('totalAmount') is not None \
                else sum(line['quantity'] * line['rate'] for line in skills_needed)
        except (InvalidOperation, ValueError):
            return format_response(400, {'error': 'Invalid totalAmount'})
        if not total_amount.is_finite() or total_amount <= 0:
            return format_response(400, {'error': 'totalAmount must be positive'})

        job = {
            'jobId': str(uuid.uuid4()),
            'customerId': customer_id,
            'status': JobStatus.PENDING,
            'skillsNeeded': skills_needed,
            'location': location,
            'totalAmount': total_amount,
            'customerConvenienceFee': config.CUSTOMER_CONVENIENCE_FEE,
            'workerConvenienceFee': config.WORKER_CONVENIENCE_FEE,
            'platformFee': config.CUSTOMER_CONVENIENCE_FEE + config.WORKER_CONVENIENCE_FEE,
            'createdAt': to_iso(utc_now()),
        }

        # Posting the job must succeed even if matching does not
        candidates = set()
        try:
            candidates = match_candidates(job, profile_store)
        except Exception as e:
            logger.error(f"Matching failed for job {job['jobId']}, no offers sent: {e}")

        if config.NOTIFY_JOB_TAKEN and candidates:
            job['offeredTo'] = sorted(candidates)

        job_store.put(job)
        outcomes = notify(candidates, job, registry) if candidates else {}

        return format_response(201, {
            'job': job,
            'candidates': len(candidates),
            'notified': sum(1 for status in outcomes.values() if status == DeliveryStatus.DELIVERED)
        })

    except Exception as e:
        logger.error(f"Error creating job: {e}")
        return format_response(500, {'error': 'Internal Server Error'})


def validate_skills(lines):
    """
    Normalize skillsNeeded into [{skill, quantity, rate}] with Decimal rates.

    Returns:
        tuple: (lines, error message or None)
    """
    if not isinstance(lines, list) or not lines:
        return None, 'skillsNeeded must be a non-empty list'

    normalized = []
    for line in lines:
        if not isinstance(line, dict):
            return None, 'Each skillsNeeded entry must be an object'
        skill = str(line.get('skill', '')).lower().strip()
        if skill not in SkillType.ALL:
            return None, f'Unknown skill: {skill or "(empty)"}'
        try:
            quantity = int(line.get('quantity', 1))
            rate = Decimal(str(line.get('rate', 0)))
        except (InvalidOperation, TypeError, ValueError):
            return None, f'Invalid quantity or rate for {skill}'
        if quantity < 1 or not rate.is_finite() or rate < 0:
            return None, f'Invalid quantity or rate for {skill}'
        normalized.append({'skill': skill, 'quantity': quantity, 'rate': rate})

    return normalized, None
