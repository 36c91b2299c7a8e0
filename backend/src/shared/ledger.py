"""
Wallet and settlement ledger.

A completed job produces exactly one payment record. The laborer's wallet
is credited with the job amount minus the worker convenience fee; the
platform keeps both convenience fees. Withdrawals debit the wallet and are
left pending for the payout side to process.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Tuple, Union
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError
from .config import config
from .dynamo import dynamodb, is_condition_failure
from .logging import logger
from .models import JobStatus, PaymentStatus, Rejected, RejectReason, WithdrawalStatus
from .utils import utc_now, to_iso

_serializer = TypeSerializer()


def calculate_payment_split(
    total_amount: Decimal,
    worker_fee: Decimal = None,
    customer_fee: Decimal = None
) -> Tuple[Decimal, Decimal]:
    """
    Calculate the split between laborer and platform.

    Args:
        total_amount: Service amount agreed for the job (excludes the customer fee)
        worker_fee: Flat fee deducted from the laborer
        customer_fee: Flat fee the customer paid on top of total_amount

    Returns:
        tuple: (laborer_amount, platform_fee)
    """
    worker_fee = config.WORKER_CONVENIENCE_FEE if worker_fee is None else Decimal(str(worker_fee))
    customer_fee = config.CUSTOMER_CONVENIENCE_FEE if customer_fee is None else Decimal(str(customer_fee))
    total_amount = Decimal(str(total_amount))

    laborer_amount = max(total_amount - worker_fee, Decimal('0'))
    platform_fee = (total_amount - laborer_amount) + customer_fee
    return laborer_amount, platform_fee


def empty_wallet(laborer_id: str) -> Dict[str, Any]:
    return {
        'laborerId': laborer_id,
        'availableBalance': Decimal('0'),
        'totalEarnings': Decimal('0'),
        'totalPlatformFees': Decimal('0'),
        'totalWithdrawn': Decimal('0'),
    }


def withdrawal_eligibility(wallet: Dict[str, Any], amount: Decimal) -> Tuple[bool, Optional[str]]:
    """Whether `amount` may be withdrawn from `wallet`; returns (ok, RejectReason or None)."""
    if amount < config.MINIMUM_WITHDRAWAL:
        return False, RejectReason.BELOW_MINIMUM
    if Decimal(str(wallet.get('availableBalance', 0))) < amount:
        return False, RejectReason.INSUFFICIENT_BALANCE
    return True, None


class DynamoLedgerStore:
    """Payments, wallets and withdrawals in DynamoDB; multi-item writes are transactional."""

    def __init__(self, client=None):
        self.client = client or dynamodb.meta.client
        self.wallets = dynamodb.Table(config.WALLETS_TABLE)
        self.payments = dynamodb.Table(config.PAYMENTS_TABLE)

    def get_wallet(self, laborer_id: str) -> Optional[Dict[str, Any]]:
        return self.wallets.get_item(Key={'laborerId': laborer_id}).get('Item')

    def get_payment(self, payment_id: str) -> Optional[Dict[str, Any]]:
        return self.payments.get_item(Key={'paymentId': payment_id}).get('Item')

    def record_payment(self, payment: Dict[str, Any], timestamp: str) -> bool:
        """
        Insert the payment and credit the wallet in one transaction.
        Returns False if a payment for this job already exists.
        """
        try:
            self.client.transact_write_items(
                TransactItems=[
                    {
                        'Put': {
                            'TableName': config.PAYMENTS_TABLE,
                            'Item': {k: _serializer.serialize(v) for k, v in payment.items()},
                            'ConditionExpression': 'attribute_not_exists(paymentId)'
                        }
                    },
                    {
                        'Update': {
                            'TableName': config.WALLETS_TABLE,
                            'Key': {'laborerId': {'S': payment['laborerId']}},
                            'UpdateExpression': (
                                'ADD availableBalance :amount, totalEarnings :amount, '
                                'totalPlatformFees :fee SET updatedAt = :ts'
                            ),
                            'ExpressionAttributeValues': {
                                ':amount': {'N': str(payment['amount'])},
                                ':fee': {'N': str(payment['workerConvenienceFee'])},
                                ':ts': {'S': timestamp}
                            }
                        }
                    }
                ]
            )
            return True
        except ClientError as e:
            if is_condition_failure(e):
                return False
            raise

    def debit_for_withdrawal(self, withdrawal: Dict[str, Any], timestamp: str) -> bool:
        """
        Debit the wallet (with balance check) and record the withdrawal in one transaction.
        Returns False if the balance is insufficient.
        """
        amount = {'N': str(withdrawal['amount'])}
        try:
            self.client.transact_write_items(
                TransactItems=[
                    {
                        'Update': {
                            'TableName': config.WALLETS_TABLE,
                            'Key': {'laborerId': {'S': withdrawal['laborerId']}},
                            'UpdateExpression': (
                                'SET availableBalance = availableBalance - :amount, updatedAt = :ts '
                                'ADD totalWithdrawn :amount'
                            ),
                            'ConditionExpression': 'availableBalance >= :amount',
                            'ExpressionAttributeValues': {
                                ':amount': amount,
                                ':ts': {'S': timestamp}
                            }
                        }
                    },
                    {
                        'Put': {
                            'TableName': config.WITHDRAWALS_TABLE,
                            'Item': {k: _serializer.serialize(v) for k, v in withdrawal.items()}
                        }
                    }
                ]
            )
            return True
        except ClientError as e:
            if is_condition_failure(e):
                return False
            raise


class SettlementLedger:

    def __init__(self, ledger_store, profile_store, clock: Callable[[], datetime] = utc_now):
        self.store = ledger_store
        self.profile_store = profile_store
        self.clock = clock

    def record_completion(self, job: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Create the payment for a completed job and credit the laborer.

        Returns:
            The payment record, or None if the job is not completed or was already settled
        """
        if job.get('status') != JobStatus.COMPLETED or not job.get('assignedLaborerId'):
            return None

        worker_fee = Decimal(str(job.get('workerConvenienceFee', config.WORKER_CONVENIENCE_FEE)))
        customer_fee = Decimal(str(job.get('customerConvenienceFee', config.CUSTOMER_CONVENIENCE_FEE)))
        laborer_amount, platform_fee = calculate_payment_split(job['totalAmount'], worker_fee, customer_fee)

        timestamp = to_iso(self.clock())
        payment = {
            'paymentId': job['jobId'],
            'jobId': job['jobId'],
            'laborerId': job['assignedLaborerId'],
            'customerId': job['customerId'],
            'amount': laborer_amount,
            'customerConvenienceFee': customer_fee,
            'workerConvenienceFee': worker_fee,
            'platformFee': platform_fee,
            'status': PaymentStatus.PENDING,
            'createdAt': timestamp,
        }

        if not self.store.record_payment(payment, timestamp):
            logger.info(f"Job {job['jobId']} already settled, skipping")
            return None

        try:
            self.profile_store.add_earnings(payment['laborerId'], laborer_amount)
        except Exception as e:
            logger.error(f"Could not update earnings for laborer {payment['laborerId']}: {e}")

        logger.info(
            f"Settled job {job['jobId']}: laborer {payment['laborerId']} +{laborer_amount}, "
            f"platform fee {platform_fee}"
        )
        return payment

    def get_wallet(self, laborer_id: str) -> Dict[str, Any]:
        wallet = empty_wallet(laborer_id)
        wallet.update(self.store.get_wallet(laborer_id) or {})
        return wallet

    def request_withdrawal(self, laborer_id: str, amount) -> Union[Dict[str, Any], Rejected]:
        amount = Decimal(str(amount))
        wallet = self.get_wallet(laborer_id)
        ok, reason = withdrawal_eligibility(wallet, amount)
        if not ok:
            return Rejected(reason, _withdrawal_message(reason), {
                'availableBalance': wallet['availableBalance'],
                'minimumWithdrawal': config.MINIMUM_WITHDRAWAL,
            })

        timestamp = to_iso(self.clock())
        withdrawal = {
            'withdrawalId': str(uuid.uuid4()),
            'laborerId': laborer_id,
            'amount': amount,
            'status': WithdrawalStatus.PENDING,
            'requestedAt': timestamp,
        }
        # The balance may have moved since we read it; the debit re-checks atomically
        if not self.store.debit_for_withdrawal(withdrawal, timestamp):
            return Rejected(RejectReason.INSUFFICIENT_BALANCE, _withdrawal_message(RejectReason.INSUFFICIENT_BALANCE))

        logger.info(f"Withdrawal {withdrawal['withdrawalId']} of {amount} requested by {laborer_id}")
        return withdrawal


def _withdrawal_message(reason: str) -> str:
    if reason == RejectReason.BELOW_MINIMUM:
        return f'Minimum withdrawal is {config.MINIMUM_WITHDRAWAL}'
    return 'Insufficient balance'
