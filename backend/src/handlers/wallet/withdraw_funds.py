"""
Withdraw Funds Handler.
POST /wallet/withdraw
Body: { "laborerId": "...", "amount": 500 }

The wallet is debited immediately and the withdrawal is left pending for
the payout side to process.
"""
from decimal import Decimal, InvalidOperation
from shared.logging import logger, log_event
from shared.auth import resolve_actor
from shared.ledger import DynamoLedgerStore, SettlementLedger
from shared.models import Rejected
from shared.stores import DynamoProfileStore
from shared.utils import format_response, parse_body, rejection_response

ledger = SettlementLedger(DynamoLedgerStore(), DynamoProfileStore())


def handler(event, context):
    log_event(event)

    try:
        body = parse_body(event)
        laborer_id = resolve_actor(event, body, 'laborerId')
        if not laborer_id:
            return format_response(400, {'error': 'Missing laborerId'})

        if body.get('amount') is None:
            return format_response(400, {'error': 'Missing amount'})
        try:
            amount = Decimal(str(body['amount']))
        except InvalidOperation:
            return format_response(400, {'error': 'Invalid amount'})
        if not amount.is_finite() or amount <= 0:
            return format_response(400, {'error': 'Amount must be positive'})

        result = ledger.request_withdrawal(laborer_id, amount)
        if isinstance(result, Rejected):
            return rejection_response(result)
        return format_response(201, result)

    except Exception as e:
        logger.error(f"Error processing withdrawal: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
