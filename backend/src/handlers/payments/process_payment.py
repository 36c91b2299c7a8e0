"""
Payment Processing Handler.
Triggered by DynamoDB Stream on the Jobs table. Settles a job once, when
its status changes to completed: the laborer is credited the job amount
minus the worker convenience fee and the platform keeps both fees.
"""
from boto3.dynamodb.types import TypeDeserializer
from shared.logging import logger
from shared.ledger import DynamoLedgerStore, SettlementLedger
from shared.models import JobStatus
from shared.stores import DynamoProfileStore

ledger = SettlementLedger(DynamoLedgerStore(), DynamoProfileStore())
_deserializer = TypeDeserializer()


def handler(event, context):
    """
    Listens for MODIFY events where status changes to 'completed'.
    Failed records are reported back so the stream retries only those.
    """
    if 'Records' not in event:
        return {'processed': 0, 'batchItemFailures': []}

    processed = 0
    failures = []
    for record in event['Records']:
        if record.get('eventName') != 'MODIFY':
            continue
        try:
            if process_record(record):
                processed += 1
        except Exception as e:
            logger.error(f"Error processing record {record.get('eventID')}: {e}")
            failures.append({'itemIdentifier': record.get('dynamodb', {}).get('SequenceNumber')})

    return {'processed': processed, 'batchItemFailures': failures}


def process_record(record) -> bool:
    """Process a single stream record. Returns True if a payment was created."""
    images = record.get('dynamodb', {})
    new_job = _deserialize(images.get('NewImage'))
    old_job = _deserialize(images.get('OldImage'))

    # Only the transition into completed settles; later edits to the job do not
    if new_job.get('status') != JobStatus.COMPLETED or old_job.get('status') == JobStatus.COMPLETED:
        return False

    return ledger.record_completion(new_job) is not None


def _deserialize(image):
    return {k: _deserializer.deserialize(v) for k, v in (image or {}).items()}
