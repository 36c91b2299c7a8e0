from shared.logging import logger, log_event
from shared.auth import resolve_actor
from shared.ledger import DynamoLedgerStore, SettlementLedger
from shared.stores import DynamoProfileStore
from shared.utils import format_response, get_query_param
from shared.config import config

ledger = SettlementLedger(DynamoLedgerStore(), DynamoProfileStore())


def handler(event, context):
    """
    Handler to get a laborer's wallet balance.
    GET /wallet?laborerId=...
    """
    log_event(event)

    try:
        laborer_id = resolve_actor(event, {'laborerId': get_query_param(event, 'laborerId')}, 'laborerId')
        if not laborer_id:
            return format_response(400, {'error': 'Missing laborerId'})

        wallet = ledger.get_wallet(laborer_id)
        wallet['minimumWithdrawal'] = config.MINIMUM_WITHDRAWAL
        return format_response(200, wallet)

    except Exception as e:
        logger.error(f"Error getting wallet: {e}")
        return format_response(500, {'error': 'Internal Server Error'})
