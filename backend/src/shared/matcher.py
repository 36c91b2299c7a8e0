"""
Job matching: which laborers should be offered a newly posted job.
"""
from typing import Any, Dict, Set
from .logging import logger
from .models import AvailabilityStatus


def required_skills(job: Dict[str, Any]) -> Set[str]:
    """Distinct skills named in the job's skillsNeeded lines."""
    return {
        line['skill'] for line in job.get('skillsNeeded') or []
        if line.get('skill')
    }


def match_candidates(job: Dict[str, Any], profile_store) -> Set[str]:
    """
    Laborers who have at least one of the job's skills and are available.

    A failing profile lookup propagates: the caller must not notify
    anyone off a partial candidate set.

    Args:
        job: Job item with a skillsNeeded list of {skill, quantity, rate}
        profile_store: Store exposing get_by_skill(skill)

    Returns:
        Set of laborer user ids (order is meaningless)
    """
    candidates = set()
    for skill in required_skills(job):
        for profile in profile_store.get_by_skill(skill):
            if profile.get('availabilityStatus') == AvailabilityStatus.AVAILABLE:
                candidates.add(profile['userId'])

    logger.info(f"Job {job.get('jobId')} matched {len(candidates)} available laborers")
    return candidates
