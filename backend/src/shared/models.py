"""
Data models and status constants for the labor marketplace.
Based on the job lifecycle: pending → assigned → in_progress → ready_for_review → completed
(pending → cancelled before anyone accepts).
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class JobStatus:
    """Job lifecycle statuses."""
    PENDING = 'pending'
    ASSIGNED = 'assigned'
    IN_PROGRESS = 'in_progress'
    READY_FOR_REVIEW = 'ready_for_review'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class AvailabilityStatus:
    """Laborer availability for dispatch."""
    AVAILABLE = 'available'
    BUSY = 'busy'


class SkillType:
    """Trades a laborer can be dispatched for."""
    MASON = 'mason'
    CARPENTER = 'carpenter'
    PLUMBER = 'plumber'
    PAINTER = 'painter'
    HELPER = 'helper'

    ALL = (MASON, CARPENTER, PLUMBER, PAINTER, HELPER)


class SobrietyStatus:
    """Sobriety check outcomes."""
    PASSED = 'passed'
    FAILED = 'failed'
    PENDING_REVIEW = 'pending_review'


class AnalysisFailure:
    """Why a check failed closed instead of carrying a model verdict."""
    TIMEOUT = 'AnalysisTimeout'
    UNAVAILABLE = 'AnalysisUnavailable'
    MALFORMED = 'MalformedResponse'


class PaymentStatus:
    """Payment settlement statuses; the payout side moves records on from pending."""
    PENDING = 'pending'


class WithdrawalStatus:
    """Withdrawal request statuses."""
    PENDING = 'pending'


class DeliveryStatus:
    """Outcome of pushing one message to one laborer."""
    DELIVERED = 'delivered'
    NOT_CONNECTED = 'not_connected'
    CLOSED = 'closed'


class MessageType:
    """Push channel message types."""
    REGISTER = 'register'
    NEW_JOB = 'new_job'
    JOB_TAKEN = 'job_taken'


class RejectReason:
    """Machine-readable reasons for expected (non-exceptional) refusals."""
    ALREADY_ASSIGNED = 'AlreadyAssigned'
    NOT_FOUND = 'NotFound'
    COOLDOWN_ACTIVE = 'CooldownActive'
    REVIEW_PENDING = 'ReviewPending'
    INVALID_STATE = 'InvalidState'
    FORBIDDEN = 'Forbidden'
    SOBRIETY_CHECK_REQUIRED = 'SobrietyCheckRequired'
    INSUFFICIENT_BALANCE = 'InsufficientBalance'
    BELOW_MINIMUM = 'BelowMinimum'


@dataclass
class Rejected:
    """
    A refused operation. Race losses and precondition failures come back
    as values of this type rather than exceptions.
    """
    reason: str
    message: str = ''
    detail: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        body = {'error': self.reason, 'message': self.message or self.reason}
        body.update(self.detail)
        return body


@dataclass
class Verdict:
    """Parsed result of a vision analysis call."""
    status: str
    findings: Any
    parsed: bool = True
    failure_reason: Optional[str] = None
