"""
DynamoDB-backed stores for laborer profiles, jobs and sobriety checks.

Each store takes an optional table resource so tests can hand in a mock.
"""
from typing import List, Dict, Any, Optional, Iterable
from boto3.dynamodb.conditions import Key, Attr
from botocore.exceptions import ClientError
from .config import config
from .dynamo import dynamodb, scan_all, query, conditional_update, is_condition_failure
from .logging import logger


class DynamoProfileStore:
    """Laborer profiles, keyed by userId."""

    def __init__(self, table=None):
        self.table = table or dynamodb.Table(config.LABORERS_TABLE)

    def get(self, laborer_id: str) -> Optional[Dict[str, Any]]:
        response = self.table.get_item(Key={'userId': laborer_id})
        return response.get('Item')

    def get_by_skill(self, skill: str) -> List[Dict[str, Any]]:
        """
        Profiles whose skill list contains `skill`.
        Skills are a list attribute, so this is a filtered scan rather than a GSI query.
        """
        return scan_all(
            self.table,
            FilterExpression=Attr('skills').contains(skill),
            ProjectionExpression='userId, skills, availabilityStatus'
        )

    def set_availability(self, laborer_id: str, status: str) -> bool:
        """Returns False when no profile exists for the laborer."""
        updated = conditional_update(
            self.table,
            key={'userId': laborer_id},
            fields={'availabilityStatus': status},
            expected={},
            require_exists='userId'
        )
        return updated is not None

    def add_earnings(self, laborer_id: str, amount) -> bool:
        """Atomically bump totalEarnings and completedJobs."""
        try:
            self.table.update_item(
                Key={'userId': laborer_id},
                UpdateExpression='ADD totalEarnings :amount, completedJobs :one',
                ConditionExpression='attribute_exists(userId)',
                ExpressionAttributeValues={':amount': amount, ':one': 1}
            )
            return True
        except ClientError as e:
            if is_condition_failure(e):
                return False
            raise


class DynamoJobStore:
    """Jobs, keyed by jobId. Status changes only go through try_transition."""

    def __init__(self, table=None):
        self.table = table or dynamodb.Table(config.JOBS_TABLE)

    def get(self, job_id: str) -> Optional[Dict[str, Any]]:
        response = self.table.get_item(Key={'jobId': job_id})
        return response.get('Item')

    def put(self, job: Dict[str, Any]) -> Dict[str, Any]:
        self.table.put_item(
            Item=job,
            ConditionExpression='attribute_not_exists(jobId)'
        )
        return job

    def try_transition(
        self,
        job_id: str,
        from_status: str,
        to_status: str,
        fields: Optional[Dict[str, Any]] = None,
        expected: Optional[Dict[str, Any]] = None,
        remove: Iterable[str] = ()
    ) -> Optional[Dict[str, Any]]:
        """
        Move a job from `from_status` to `to_status` in one conditional write.

        The UpdateItem carries `#status = :from` (plus any `expected`
        attribute equalities) as its ConditionExpression, so concurrent
        callers racing on the same job are serialized by DynamoDB and at
        most one of them sees the new item.

        Returns:
            The updated job, or None if the job was missing or not in `from_status`
        """
        updates = dict(fields or {})
        updates['status'] = to_status
        conditions = {'status': from_status}
        conditions.update(expected or {})
        return conditional_update(
            self.table,
            key={'jobId': job_id},
            fields=updates,
            expected=conditions,
            remove=remove
        )


class DynamoSobrietyStore:
    """
    Sobriety check records, keyed by checkId.
    Requires a GSI on (laborerId, checkedAt) and one on (status, checkedAt).
    """

    def __init__(self, table=None):
        self.table = table or dynamodb.Table(config.SOBRIETY_CHECKS_TABLE)

    def get(self, check_id: str) -> Optional[Dict[str, Any]]:
        response = self.table.get_item(Key={'checkId': check_id})
        return response.get('Item')

    def latest(self, laborer_id: str) -> Optional[Dict[str, Any]]:
        """Most recent record by checkedAt."""
        items = query(
            self.table,
            key_condition=Key('laborerId').eq(laborer_id),
            index_name=config.LABORER_CHECKS_INDEX,
            limit=1,
            scan_forward=False
        )
        if not items:
            return None
        # The index projects keys only on some deployments; re-read the full record
        return self.get(items[0]['checkId']) or items[0]

    def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        self.table.put_item(
            Item=record,
            ConditionExpression='attribute_not_exists(checkId)'
        )
        return record

    def update(
        self,
        check_id: str,
        fields: Dict[str, Any],
        remove: Iterable[str] = (),
        expected_status: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Returns None when the record is missing or no longer in `expected_status`."""
        expected = {'status': expected_status} if expected_status else {}
        return conditional_update(
            self.table,
            key={'checkId': check_id},
            fields=fields,
            expected=expected,
            remove=remove,
            require_exists='checkId'
        )

    def list_by_status(self, status: str) -> List[Dict[str, Any]]:
        """Records in a given status, oldest first."""
        items = query(
            self.table,
            key_condition=Key('status').eq(status),
            index_name=config.CHECK_STATUS_INDEX,
            scan_forward=True
        )
        logger.info(f"Found {len(items)} sobriety checks with status {status}")
        return items
