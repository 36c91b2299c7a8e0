"""
Dispatch notifier: push job offers to matched laborers.

This is a broadcast, not a transaction. Each candidate is attempted on its
own; a failure for one never blocks or undoes delivery to another, and
nothing here is allowed to fail the job-posting request.
"""
from typing import Any, Dict, Iterable
from .config import config
from .logging import logger
from .models import DeliveryStatus, MessageType


def _push(registry, laborer_id: str, message: Dict[str, Any]) -> str:
    try:
        return registry.send(laborer_id, message)
    except Exception as e:
        logger.warning(f"Push to laborer {laborer_id} failed: {e}")
        return DeliveryStatus.CLOSED


def notify(candidates: Iterable[str], job: Dict[str, Any], registry) -> Dict[str, str]:
    """
    Send a new_job offer to every candidate's live channel.

    Returns:
        Mapping of laborer id -> DeliveryStatus
    """
    message = {
        'type': MessageType.NEW_JOB,
        'job': job,
        'expiresInSeconds': config.OFFER_TTL_SECONDS
    }

    outcomes = {}
    for laborer_id in candidates:
        outcomes[laborer_id] = _push(registry, laborer_id, message)

    delivered = sum(1 for status in outcomes.values() if status == DeliveryStatus.DELIVERED)
    logger.info(f"Job {job.get('jobId')} offered: {delivered}/{len(outcomes)} delivered")
    return outcomes


def notify_job_taken(
    candidates: Iterable[str],
    job_id: str,
    winner_id: str,
    registry
) -> Dict[str, str]:
    """
    Tell the laborers who lost the race that the offer is gone, so their
    clients can retract it before the offer TTL runs out.
    """
    message = {'type': MessageType.JOB_TAKEN, 'jobId': job_id}
    outcomes = {}
    for laborer_id in candidates:
        if laborer_id == winner_id:
            continue
        outcomes[laborer_id] = _push(registry, laborer_id, message)
    return outcomes
