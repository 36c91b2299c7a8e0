"""
Job acceptance: many laborers may be offered the same job and tap accept
at the same moment; exactly one of them gets it.
"""
from typing import Any, Callable, Dict, Union
from datetime import datetime
from .logging import logger
from .models import AvailabilityStatus, JobStatus, Rejected, RejectReason
from .utils import utc_now, to_iso


class JobAcceptanceArbiter:
    """
    Serializes accept attempts for a job through the job store's
    conditional transition. Whoever's pending -> assigned write lands
    first wins; everyone else gets Rejected(AlreadyAssigned), whatever
    order their requests reached us in.
    """

    def __init__(self, job_store, profile_store, clock: Callable[[], datetime] = utc_now):
        self.job_store = job_store
        self.profile_store = profile_store
        self.clock = clock

    def accept(self, job_id: str, laborer_id: str) -> Union[Dict[str, Any], Rejected]:
        """
        Claim a pending job for `laborer_id`.

        Returns:
            The assigned job, or Rejected(AlreadyAssigned | NotFound)
        """
        job = self.job_store.try_transition(
            job_id,
            JobStatus.PENDING,
            JobStatus.ASSIGNED,
            fields={
                'assignedLaborerId': laborer_id,
                'assignedAt': to_iso(self.clock())
            }
        )

        if job is None:
            current = self.job_store.get(job_id)
            if current is None:
                return Rejected(RejectReason.NOT_FOUND, 'Job not found')
            logger.info(
                f"Laborer {laborer_id} lost job {job_id} "
                f"(status={current.get('status')})"
            )
            return Rejected(
                RejectReason.ALREADY_ASSIGNED,
                'Job is no longer available',
                {'status': current.get('status')}
            )

        logger.info(f"Job {job_id} assigned to laborer {laborer_id}")
        self._mark_busy(laborer_id, job_id)
        return job

    def _mark_busy(self, laborer_id: str, job_id: str) -> None:
        # Not atomic with the assignment. If this write is lost the laborer
        # stays dispatchable until reconciled; the job itself is unaffected.
        try:
            if not self.profile_store.set_availability(laborer_id, AvailabilityStatus.BUSY):
                logger.error(f"No profile for laborer {laborer_id} after winning job {job_id}")
        except Exception as e:
            logger.error(f"Could not mark laborer {laborer_id} busy after job {job_id}: {e}")
