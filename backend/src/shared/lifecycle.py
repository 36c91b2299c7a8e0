"""
Job transitions after acceptance: start, ready for review, complete, cancel.
Every change goes through the job store's conditional transition, so a
job never moves twice from the same status.
"""
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union
from .logging import logger
from .models import AvailabilityStatus, JobStatus, Rejected, RejectReason
from .utils import utc_now, to_iso


class JobLifecycle:

    def __init__(self, job_store, profile_store, sobriety_gate, clock: Callable[[], datetime] = utc_now):
        self.job_store = job_store
        self.profile_store = profile_store
        self.sobriety_gate = sobriety_gate
        self.clock = clock

    def start(self, job_id: str, laborer_id: str) -> Union[Dict[str, Any], Rejected]:
        """assigned -> in_progress, for the assigned laborer once cleared by the sobriety gate."""
        if not self.sobriety_gate.is_cleared(laborer_id):
            return Rejected(
                RejectReason.SOBRIETY_CHECK_REQUIRED,
                'Pass a sobriety check before starting work'
            )
        return self._move(
            job_id, JobStatus.ASSIGNED, JobStatus.IN_PROGRESS,
            fields={'startedAt': to_iso(self.clock())},
            owner=('assignedLaborerId', laborer_id)
        )

    def mark_ready(self, job_id: str, laborer_id: str) -> Union[Dict[str, Any], Rejected]:
        """in_progress -> ready_for_review, reported by the assigned laborer."""
        return self._move(
            job_id, JobStatus.IN_PROGRESS, JobStatus.READY_FOR_REVIEW,
            fields={'readyAt': to_iso(self.clock())},
            owner=('assignedLaborerId', laborer_id)
        )

    def complete(self, job_id: str, customer_id: str) -> Union[Dict[str, Any], Rejected]:
        """ready_for_review -> completed, confirmed by the customer. Frees the laborer."""
        job = self._move(
            job_id, JobStatus.READY_FOR_REVIEW, JobStatus.COMPLETED,
            fields={'completedAt': to_iso(self.clock())},
            owner=('customerId', customer_id)
        )
        if isinstance(job, Rejected):
            return job

        laborer_id = job.get('assignedLaborerId')
        try:
            self.profile_store.set_availability(laborer_id, AvailabilityStatus.AVAILABLE)
        except Exception as e:
            logger.error(f"Could not mark laborer {laborer_id} available after job {job_id}: {e}")
        return job

    def cancel(self, job_id: str, customer_id: str) -> Union[Dict[str, Any], Rejected]:
        """pending -> cancelled. Once someone has accepted, cancellation is an admin matter."""
        return self._move(
            job_id, JobStatus.PENDING, JobStatus.CANCELLED,
            fields={'cancelledAt': to_iso(self.clock())},
            owner=('customerId', customer_id)
        )

    def _move(
        self,
        job_id: str,
        from_status: str,
        to_status: str,
        fields: Dict[str, Any],
        owner: Optional[tuple] = None
    ) -> Union[Dict[str, Any], Rejected]:
        expected = {owner[0]: owner[1]} if owner else {}
        job = self.job_store.try_transition(job_id, from_status, to_status, fields=fields, expected=expected)
        if job is not None:
            logger.info(f"Job {job_id}: {from_status} -> {to_status}")
            return job

        current = self.job_store.get(job_id)
        if current is None:
            return Rejected(RejectReason.NOT_FOUND, 'Job not found')
        if owner and current.get(owner[0]) != owner[1]:
            return Rejected(RejectReason.FORBIDDEN, 'Not your job')
        return Rejected(
            RejectReason.INVALID_STATE,
            f'Job is {current.get("status")}, expected {from_status}',
            {'status': current.get('status')}
        )
