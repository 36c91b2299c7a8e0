"""
Tests for settlement and withdrawals.
"""
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from shared.ledger import DynamoLedgerStore, SettlementLedger, calculate_payment_split
from shared.memory_stores import InMemoryLedgerStore
from shared.models import JobStatus, PaymentStatus, RejectReason, WithdrawalStatus


@pytest.fixture
def completed_job(pending_job):
    pending_job.update(
        status=JobStatus.COMPLETED,
        assignedLaborerId='A',
        totalAmount=Decimal('800'),
        customerConvenienceFee=Decimal('10'),
        workerConvenienceFee=Decimal('10'),
    )
    return pending_job


class TestPaymentSplit:
    """Tests for calculate_payment_split."""

    def test_flat_fees(self):
        """Both flat fees go to the platform."""
        laborer_amount, platform_fee = calculate_payment_split(Decimal('800'))

        assert laborer_amount == Decimal('790')
        assert platform_fee == Decimal('20')

    def test_amount_smaller_than_fee(self):
        """The laborer's share never goes negative."""
        laborer_amount, platform_fee = calculate_payment_split(Decimal('5'), worker_fee=10, customer_fee=10)

        assert laborer_amount == Decimal('0')
        assert platform_fee == Decimal('15')


class TestSettlement:
    """Tests for SettlementLedger.record_completion."""

    def test_completion_credits_wallet_once(self, laborers, completed_job, clock):
        """A completed job credits the wallet exactly once."""
        store = InMemoryLedgerStore()
        ledger = SettlementLedger(store, laborers, clock=clock)

        payment = ledger.record_completion(completed_job)
        duplicate = ledger.record_completion(completed_job)

        assert payment['paymentId'] == 'J1'
        assert payment['amount'] == Decimal('790')
        assert payment['platformFee'] == Decimal('20')
        assert payment['status'] == PaymentStatus.PENDING
        assert duplicate is None

        wallet = ledger.get_wallet('A')
        assert wallet['availableBalance'] == Decimal('790')
        assert wallet['totalEarnings'] == Decimal('790')
        assert laborers.get('A')['completedJobs'] == 1

    def test_unfinished_job_is_not_settled(self, laborers, pending_job, clock):
        """Jobs that are not completed produce no payment."""
        ledger = SettlementLedger(InMemoryLedgerStore(), laborers, clock=clock)

        assert ledger.record_completion(pending_job) is None

    def test_empty_wallet_for_new_laborer(self, laborers, clock):
        """A laborer without a wallet reads as zero balance."""
        ledger = SettlementLedger(InMemoryLedgerStore(), laborers, clock=clock)

        assert ledger.get_wallet('C')['availableBalance'] == Decimal('0')


class TestWithdrawal:
    """Tests for SettlementLedger.request_withdrawal."""

    def test_withdrawal_debits_wallet(self, laborers, completed_job, clock):
        """A valid withdrawal is recorded pending and debits the wallet."""
        store = InMemoryLedgerStore()
        ledger = SettlementLedger(store, laborers, clock=clock)
        ledger.record_completion(completed_job)

        withdrawal = ledger.request_withdrawal('A', '500')

        assert withdrawal['status'] == WithdrawalStatus.PENDING
        assert withdrawal['amount'] == Decimal('500')
        assert ledger.get_wallet('A')['availableBalance'] == Decimal('290')
        assert store.list_withdrawals('A')[0]['withdrawalId'] == withdrawal['withdrawalId']

    def test_below_minimum(self, laborers, completed_job, clock):
        """Amounts under the minimum are refused."""
        ledger = SettlementLedger(InMemoryLedgerStore(), laborers, clock=clock)
        ledger.record_completion(completed_job)

        result = ledger.request_withdrawal('A', 50)

        assert result.reason == RejectReason.BELOW_MINIMUM
        assert result.detail['minimumWithdrawal'] == Decimal('100')

    def test_insufficient_balance(self, laborers, completed_job, clock):
        """Amounts over the balance are refused and nothing is debited."""
        ledger = SettlementLedger(InMemoryLedgerStore(), laborers, clock=clock)
        ledger.record_completion(completed_job)

        result = ledger.request_withdrawal('A', 1000)

        assert result.reason == RejectReason.INSUFFICIENT_BALANCE
        assert ledger.get_wallet('A')['availableBalance'] == Decimal('790')

    def test_balance_race_lost_at_write(self, laborers, clock):
        """A balance drop between read and debit is still refused."""
        store = MagicMock()
        store.get_wallet.return_value = {'laborerId': 'A', 'availableBalance': Decimal('500')}
        store.debit_for_withdrawal.return_value = False
        ledger = SettlementLedger(store, laborers, clock=clock)

        assert ledger.request_withdrawal('A', 400).reason == RejectReason.INSUFFICIENT_BALANCE


class TestDynamoLedgerStore:
    """Tests for DynamoLedgerStore transactions."""

    def test_payment_and_credit_in_one_transaction(self):
        """Payment insert and wallet credit share one transaction."""
        client = MagicMock()
        store = DynamoLedgerStore(client=client)
        payment = {
            'paymentId': 'J1', 'laborerId': 'A',
            'amount': Decimal('790'), 'workerConvenienceFee': Decimal('10')
        }

        assert store.record_payment(payment, '2024-03-01T06:00:00+00:00')

        items = client.transact_write_items.call_args.kwargs['TransactItems']
        assert items[0]['Put']['ConditionExpression'] == 'attribute_not_exists(paymentId)'
        assert items[0]['Put']['Item']['amount'] == {'N': '790'}
        assert items[1]['Update']['Key'] == {'laborerId': {'S': 'A'}}

    def test_duplicate_payment(self):
        """A cancelled transaction means the job was already settled."""
        client = MagicMock()
        client.transact_write_items.side_effect = ClientError(
            {'Error': {'Code': 'TransactionCanceledException', 'Message': 'ConditionalCheckFailed'}},
            'TransactWriteItems'
        )
        store = DynamoLedgerStore(client=client)
        payment = {'paymentId': 'J1', 'laborerId': 'A', 'amount': Decimal('1'), 'workerConvenienceFee': Decimal('0')}

        assert store.record_payment(payment, 'ts') is False

    def test_other_errors_propagate(self):
        """Throughput and other errors are raised to the caller."""
        client = MagicMock()
        client.transact_write_items.side_effect = ClientError(
            {'Error': {'Code': 'ProvisionedThroughputExceededException', 'Message': 'slow down'}},
            'TransactWriteItems'
        )
        store = DynamoLedgerStore(client=client)

        with pytest.raises(ClientError):
            store.debit_for_withdrawal({'withdrawalId': 'w', 'laborerId': 'A', 'amount': Decimal('100')}, 'ts')
