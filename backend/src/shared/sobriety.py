"""
Sobriety gate: a laborer must pass a camera check before starting work.

    (no check) --submit--> passed | failed
    failed --(cooldown elapses)--> submit again
    failed --request review--> pending_review
    pending_review --admin approve--> passed
    pending_review --admin reject---> failed (fresh or cleared cooldown)

A failed record carries cooldownUntil; no other status does. While the
latest record is pending_review, automatic retries are suspended until
an administrator decides.
"""
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union
from .config import config
from .logging import logger
from .models import Rejected, RejectReason, SobrietyStatus
from .s3_utils import store_check_image
from .utils import utc_now, to_iso, parse_iso
from .vision import analyze_with_timeout


class SobrietyGate:

    def __init__(
        self,
        record_store,
        analyzer,
        image_store: Callable[[str, str, bytes], str] = store_check_image,
        clock: Callable[[], datetime] = utc_now,
        cooldown_hours: float = None,
        pass_valid_hours: float = None,
        analysis_timeout: float = None
    ):
        self.records = record_store
        self.analyzer = analyzer
        self.image_store = image_store
        self.clock = clock
        self.cooldown = timedelta(hours=cooldown_hours if cooldown_hours is not None else config.SOBRIETY_COOLDOWN_HOURS)
        self.pass_valid = timedelta(hours=pass_valid_hours if pass_valid_hours is not None else config.SOBRIETY_PASS_VALID_HOURS)
        self.analysis_timeout = analysis_timeout if analysis_timeout is not None else config.ANALYSIS_TIMEOUT_SECONDS

    def latest(self, laborer_id: str) -> Optional[Dict[str, Any]]:
        return self.records.latest(laborer_id)

    def cooldown_status(self, laborer_id: str) -> Dict[str, Any]:
        """What the check screen needs: is a retry blocked, until when, and can review be requested."""
        latest = self.latest(laborer_id)
        now = self.clock()
        status = {
            'latest': latest,
            'cooldownActive': False,
            'cooldownUntil': None,
            'remainingSeconds': 0,
            'canRequestReview': bool(latest) and latest.get('status') == SobrietyStatus.FAILED,
        }
        until = self._active_cooldown(latest, now)
        if until:
            status.update({
                'cooldownActive': True,
                'cooldownUntil': to_iso(until),
                'remainingSeconds': int((until - now).total_seconds()),
            })
        return status

    def submit_check(
        self,
        laborer_id: str,
        image_bytes: bytes,
        job_id: str = None
    ) -> Union[Dict[str, Any], Rejected]:
        """
        Capture and analyze one check.

        Returns:
            The new record, or Rejected(CooldownActive | ReviewPending)
        """
        now = self.clock()
        latest = self.latest(laborer_id)

        until = self._active_cooldown(latest, now)
        if until:
            return Rejected(
                RejectReason.COOLDOWN_ACTIVE,
                'Cooldown period active',
                {
                    'cooldownUntil': to_iso(until),
                    'remainingSeconds': int((until - now).total_seconds()),
                    'canRequestReview': True,
                }
            )
        if latest and latest.get('status') == SobrietyStatus.PENDING_REVIEW:
            return Rejected(
                RejectReason.REVIEW_PENDING,
                'A manual review is pending for your last check',
                {'checkId': latest['checkId']}
            )

        check_id = str(uuid.uuid4())
        image_reference = self.image_store(laborer_id, check_id, image_bytes)
        verdict = analyze_with_timeout(self.analyzer, image_bytes, self.analysis_timeout)

        record = {
            'checkId': check_id,
            'laborerId': laborer_id,
            'status': verdict.status,
            'analysisResult': verdict.findings,
            'imageReference': image_reference,
            'checkedAt': to_iso(now),
        }
        if job_id:
            record['jobId'] = job_id
        if verdict.failure_reason:
            record['failureReason'] = verdict.failure_reason
        if verdict.status == SobrietyStatus.FAILED:
            record['cooldownUntil'] = to_iso(now + self.cooldown)

        self.records.insert(record)
        logger.info(f"Sobriety check {check_id} for laborer {laborer_id}: {verdict.status}")
        return record

    def request_manual_review(self, laborer_id: str) -> Union[Dict[str, Any], Rejected]:
        """Move the latest failed record to pending_review, lifting its cooldown."""
        latest = self.latest(laborer_id)
        if latest is None:
            return Rejected(RejectReason.NOT_FOUND, 'No sobriety check to review')
        if latest.get('status') != SobrietyStatus.FAILED:
            return Rejected(
                RejectReason.INVALID_STATE,
                'Only a failed check can be sent for manual review',
                {'status': latest.get('status')}
            )

        updated = self.records.update(
            latest['checkId'],
            {
                'status': SobrietyStatus.PENDING_REVIEW,
                'reviewRequestedAt': to_iso(self.clock()),
            },
            remove=('cooldownUntil',),
            expected_status=SobrietyStatus.FAILED
        )
        if updated is None:
            return self._explain_missed_update(latest['checkId'], SobrietyStatus.FAILED)

        logger.info(f"Manual review requested for check {latest['checkId']}")
        return updated

    def approve(self, check_id: str, admin_id: str) -> Union[Dict[str, Any], Rejected]:
        updated = self.records.update(
            check_id,
            {
                'status': SobrietyStatus.PASSED,
                'reviewedAt': to_iso(self.clock()),
                'reviewedBy': admin_id,
            },
            remove=('cooldownUntil',),
            expected_status=SobrietyStatus.PENDING_REVIEW
        )
        if updated is None:
            return self._explain_missed_update(check_id, SobrietyStatus.PENDING_REVIEW)
        logger.info(f"Check {check_id} approved by {admin_id}")
        return updated

    def reject(
        self,
        check_id: str,
        admin_id: str,
        reason: str = None,
        reset_cooldown: bool = True
    ) -> Union[Dict[str, Any], Rejected]:
        """
        Keep the check failed. With reset_cooldown a fresh cooldown starts
        now; without it the laborer may retry immediately.
        """
        now = self.clock()
        fields = {
            'status': SobrietyStatus.FAILED,
            'reviewedAt': to_iso(now),
            'reviewedBy': admin_id,
        }
        if reason:
            fields['reviewReason'] = reason
        remove = ()
        if reset_cooldown:
            fields['cooldownUntil'] = to_iso(now + self.cooldown)
        else:
            remove = ('cooldownUntil',)

        updated = self.records.update(
            check_id,
            fields,
            remove=remove,
            expected_status=SobrietyStatus.PENDING_REVIEW
        )
        if updated is None:
            return self._explain_missed_update(check_id, SobrietyStatus.PENDING_REVIEW)
        logger.info(f"Check {check_id} rejected by {admin_id}")
        return updated

    def pending_reviews(self) -> List[Dict[str, Any]]:
        return self.records.list_by_status(SobrietyStatus.PENDING_REVIEW)

    def is_cleared(self, laborer_id: str) -> bool:
        """True if the laborer's latest check passed recently enough to start work."""
        latest = self.latest(laborer_id)
        if not latest or latest.get('status') != SobrietyStatus.PASSED:
            return False
        cleared_at = max(
            moment for moment in (parse_iso(latest.get('checkedAt')), parse_iso(latest.get('reviewedAt')))
            if moment is not None
        )
        return self.clock() - cleared_at <= self.pass_valid

    def _active_cooldown(self, latest: Optional[Dict[str, Any]], now: datetime) -> Optional[datetime]:
        if not latest or latest.get('status') != SobrietyStatus.FAILED:
            return None
        until = parse_iso(latest.get('cooldownUntil'))
        if until and now < until:
            return until
        return None

    def _explain_missed_update(self, check_id: str, expected_status: str) -> Rejected:
        current = self.records.get(check_id)
        if current is None:
            return Rejected(RejectReason.NOT_FOUND, 'Sobriety check not found')
        return Rejected(
            RejectReason.INVALID_STATE,
            f'Check is {current.get("status")}, expected {expected_status}',
            {'status': current.get('status')}
        )
