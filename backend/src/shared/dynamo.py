"""
DynamoDB utility functions shared by the stores.
"""
import boto3
from typing import List, Dict, Any, Optional, Iterable
from botocore.exceptions import ClientError
from .config import config
from .logging import logger

dynamodb = boto3.resource('dynamodb', region_name=config.AWS_REGION)

CONDITION_FAILED_CODES = ('ConditionalCheckFailedException', 'TransactionCanceledException')


def is_condition_failure(error: ClientError) -> bool:
    """True when a write was refused by its ConditionExpression."""
    return error.response.get('Error', {}).get('Code') in CONDITION_FAILED_CODES


def scan_all(table, **scan_params) -> List[Dict[str, Any]]:
    """
    Scan a table following LastEvaluatedKey until exhausted.

    Errors propagate: callers decide whether a failed read is fatal.
    """
    items = []
    params = dict(scan_params)
    while True:
        response = table.scan(**params)
        items.extend(response.get('Items', []))
        last_key = response.get('LastEvaluatedKey')
        if not last_key:
            return items
        params['ExclusiveStartKey'] = last_key


def query(
    table,
    key_condition: Any,
    index_name: Optional[str] = None,
    filter_expression: Optional[Any] = None,
    limit: Optional[int] = None,
    scan_forward: bool = True
) -> List[Dict[str, Any]]:
    """
    Query a DynamoDB table or index.

    Args:
        table: boto3 Table resource
        key_condition: Key condition expression
        index_name: Optional GSI name
        filter_expression: Optional filter expression
        limit: Max items to return
        scan_forward: True for ascending, False for descending

    Returns:
        List of items matching the query
    """
    query_params = {
        'KeyConditionExpression': key_condition,
        'ScanIndexForward': scan_forward
    }

    if index_name:
        query_params['IndexName'] = index_name
    if filter_expression is not None:
        query_params['FilterExpression'] = filter_expression
    if limit:
        query_params['Limit'] = limit

    response = table.query(**query_params)
    return response.get('Items', [])


def build_update(
    fields: Dict[str, Any],
    remove: Iterable[str] = ()
) -> Dict[str, Any]:
    """
    Build UpdateExpression parameters that SET `fields` and REMOVE `remove`.
    Every attribute goes through a name placeholder so
    reserved words like `status` and `location` are safe.
    """
    names = {}
    values = {}
    clauses = []

    set_parts = []
    for idx, (name, value) in enumerate(fields.items()):
        names[f'#f{idx}'] = name
        values[f':f{idx}'] = value
        set_parts.append(f'#f{idx} = :f{idx}')
    if set_parts:
        clauses.append('SET ' + ', '.join(set_parts))

    remove_parts = []
    for idx, name in enumerate(remove):
        names[f'#r{idx}'] = name
        remove_parts.append(f'#r{idx}')
    if remove_parts:
        clauses.append('REMOVE ' + ', '.join(remove_parts))

    params = {
        'UpdateExpression': ' '.join(clauses),
        'ExpressionAttributeNames': names
    }
    if values:
        params['ExpressionAttributeValues'] = values
    return params


def conditional_update(
    table,
    key: Dict[str, Any],
    fields: Dict[str, Any],
    expected: Dict[str, Any],
    remove: Iterable[str] = (),
    require_exists: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """
    Compare-and-swap update: apply `fields` only if every attribute in
    `expected` currently holds the given value.

    Returns:
        The updated item (ALL_NEW), or None when the condition did not hold
    """
    params = build_update(fields, remove=remove)
    conditions = []
    for idx, (name, value) in enumerate(expected.items()):
        params['ExpressionAttributeNames'][f'#c{idx}'] = name
        params.setdefault('ExpressionAttributeValues', {})[f':c{idx}'] = value
        conditions.append(f'#c{idx} = :c{idx}')
    if require_exists:
        params['ExpressionAttributeNames']['#pk'] = require_exists
        conditions.append('attribute_exists(#pk)')
    if conditions:
        params['ConditionExpression'] = ' AND '.join(conditions)

    try:
        response = table.update_item(Key=key, ReturnValues='ALL_NEW', **params)
    except ClientError as e:
        if is_condition_failure(e):
            logger.info(f"Conditional update on {table.name} {key} did not apply")
            return None
        raise
    return response.get('Attributes')
