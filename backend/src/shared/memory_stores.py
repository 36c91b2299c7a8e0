"""
In-memory stores for tests and local development.

Same method names and return conventions as the DynamoDB stores. Every
store guards its dict with a lock so the compare-and-swap in
try_transition holds under real threads.
"""
import copy
import threading
from decimal import Decimal
from typing import List, Dict, Any, Optional, Iterable


class InMemoryProfileStore:
    """Laborer profiles keyed by userId."""

    def __init__(self, profiles: Optional[Iterable[Dict[str, Any]]] = None):
        self._lock = threading.Lock()
        self._profiles: Dict[str, Dict[str, Any]] = {}
        for profile in profiles or []:
            self._profiles[profile['userId']] = copy.deepcopy(profile)

    def get(self, laborer_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            profile = self._profiles.get(laborer_id)
            return copy.deepcopy(profile) if profile else None

    def get_by_skill(self, skill: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(p) for p in self._profiles.values()
                if skill in (p.get('skills') or [])
            ]

    def set_availability(self, laborer_id: str, status: str) -> bool:
        with self._lock:
            profile = self._profiles.get(laborer_id)
            if profile is None:
                return False
            profile['availabilityStatus'] = status
            return True

    def add_earnings(self, laborer_id: str, amount) -> bool:
        with self._lock:
            profile = self._profiles.get(laborer_id)
            if profile is None:
                return False
            profile['totalEarnings'] = Decimal(str(profile.get('totalEarnings', 0))) + amount
            profile['completedJobs'] = int(profile.get('completedJobs', 0)) + 1
            return True


class InMemoryJobStore:
    """Jobs keyed by jobId."""

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: Dict[str, Dict[str, Any]] = {}

    def get(self, job_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job else None

    def put(self, job: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            if job['jobId'] in self._jobs:
                raise ValueError(f"Job {job['jobId']} already exists")
            self._jobs[job['jobId']] = copy.deepcopy(job)
            return copy.deepcopy(job)

    def try_transition(
        self,
        job_id: str,
        from_status: str,
        to_status: str,
        fields: Optional[Dict[str, Any]] = None,
        expected: Optional[Dict[str, Any]] = None,
        remove: Iterable[str] = ()
    ) -> Optional[Dict[str, Any]]:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.get('status') != from_status:
                return None
            for name, value in (expected or {}).items():
                if job.get(name) != value:
                    return None
            job.update(fields or {})
            job['status'] = to_status
            for name in remove:
                job.pop(name, None)
            return copy.deepcopy(job)


class InMemorySobrietyStore:
    """Sobriety check records keyed by checkId."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[str, Dict[str, Any]] = {}

    def get(self, check_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._records.get(check_id)
            return copy.deepcopy(record) if record else None

    def latest(self, laborer_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            records = [r for r in self._records.values() if r['laborerId'] == laborer_id]
            if not records:
                return None
            return copy.deepcopy(max(records, key=lambda r: r['checkedAt']))

    def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            self._records[record['checkId']] = copy.deepcopy(record)
            return copy.deepcopy(record)

    def update(
        self,
        check_id: str,
        fields: Dict[str, Any],
        remove: Iterable[str] = (),
        expected_status: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._records.get(check_id)
            if record is None:
                return None
            if expected_status and record.get('status') != expected_status:
                return None
            record.update(fields)
            for name in remove:
                record.pop(name, None)
            return copy.deepcopy(record)

    def list_by_status(self, status: str) -> List[Dict[str, Any]]:
        with self._lock:
            records = [copy.deepcopy(r) for r in self._records.values() if r.get('status') == status]
        return sorted(records, key=lambda r: r['checkedAt'])


class InMemoryLedgerStore:
    """Payments, wallets and withdrawals."""

    def __init__(self):
        self._lock = threading.Lock()
        self._payments: Dict[str, Dict[str, Any]] = {}
        self._wallets: Dict[str, Dict[str, Any]] = {}
        self._withdrawals: Dict[str, Dict[str, Any]] = {}

    def get_wallet(self, laborer_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            wallet = self._wallets.get(laborer_id)
            return copy.deepcopy(wallet) if wallet else None

    def get_payment(self, payment_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            payment = self._payments.get(payment_id)
            return copy.deepcopy(payment) if payment else None

    def list_withdrawals(self, laborer_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(w) for w in self._withdrawals.values() if w['laborerId'] == laborer_id]

    def record_payment(self, payment: Dict[str, Any], timestamp: str) -> bool:
        """Insert the payment and credit the wallet together; False if already recorded."""
        with self._lock:
            if payment['paymentId'] in self._payments:
                return False
            self._payments[payment['paymentId']] = copy.deepcopy(payment)
            wallet = self._wallets.setdefault(payment['laborerId'], _empty_wallet(payment['laborerId']))
            wallet['availableBalance'] += payment['amount']
            wallet['totalEarnings'] += payment['amount']
            wallet['totalPlatformFees'] += payment['workerConvenienceFee']
            wallet['updatedAt'] = timestamp
            return True

    def debit_for_withdrawal(self, withdrawal: Dict[str, Any], timestamp: str) -> bool:
        """Debit the wallet and record the withdrawal together; False if balance is short."""
        with self._lock:
            wallet = self._wallets.get(withdrawal['laborerId'])
            if wallet is None or wallet['availableBalance'] < withdrawal['amount']:
                return False
            wallet['availableBalance'] -= withdrawal['amount']
            wallet['totalWithdrawn'] += withdrawal['amount']
            wallet['updatedAt'] = timestamp
            self._withdrawals[withdrawal['withdrawalId']] = copy.deepcopy(withdrawal)
            return True


def _empty_wallet(laborer_id: str) -> Dict[str, Any]:
    return {
        'laborerId': laborer_id,
        'availableBalance': Decimal('0'),
        'totalEarnings': Decimal('0'),
        'totalPlatformFees': Decimal('0'),
        'totalWithdrawn': Decimal('0'),
    }
