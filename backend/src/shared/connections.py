"""
Connection registry: which live push channel (if any) each laborer is reachable on.

Two implementations share one contract:

- ConnectionRegistry keeps identity -> channel in process memory behind a lock.
  Nothing is persisted; clients re-register after a reconnect or a restart.
- DynamoConnectionRegistry keeps identity -> API Gateway connectionId in a
  table, for Lambda deployments where the invocation that registers a socket
  and the one that posts a job are not the same process.

register() is last-registered-wins and does not close the superseded
channel; closing it is the caller's job. unregister() finds the entry by
channel with a linear scan. send() is best-effort and at-most-once: no
buffering, no retry.
"""
import json
import threading
from typing import Any, Dict, Optional
import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError
from .config import config
from .dynamo import dynamodb, scan_all, is_condition_failure
from .logging import logger
from .models import DeliveryStatus
from .utils import DecimalEncoder, utc_now, to_iso

_management_clients: Dict[str, Any] = {}


class ChannelClosedError(Exception):
    """Raised by a channel whose peer has gone away."""


def get_management_client(endpoint_url: str = None):
    """Get or create the API Gateway Management API client for a WebSocket stage."""
    endpoint = endpoint_url or config.WEBSOCKET_ENDPOINT
    if endpoint not in _management_clients:
        _management_clients[endpoint] = boto3.client(
            'apigatewaymanagementapi',
            endpoint_url=endpoint,
            region_name=config.AWS_REGION
        )
    return _management_clients[endpoint]


class ApiGatewayChannel:
    """A WebSocket connection held open by API Gateway, addressed by connectionId."""

    def __init__(self, connection_id: str, client=None):
        self.connection_id = connection_id
        self._client = client
        self._open = True

    @property
    def client(self):
        if self._client is None:
            self._client = get_management_client()
        return self._client

    def is_open(self) -> bool:
        return self._open

    def send(self, message: Dict[str, Any]) -> None:
        try:
            self.client.post_to_connection(
                ConnectionId=self.connection_id,
                Data=json.dumps(message, cls=DecimalEncoder).encode('utf-8')
            )
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'GoneException':
                self._open = False
                raise ChannelClosedError(self.connection_id) from e
            raise

    def close(self) -> None:
        """Ask API Gateway to drop the connection."""
        try:
            self.client.delete_connection(ConnectionId=self.connection_id)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') != 'GoneException':
                raise
        self._open = False

    def __eq__(self, other):
        return isinstance(other, ApiGatewayChannel) and other.connection_id == self.connection_id

    def __hash__(self):
        return hash(self.connection_id)

    def __repr__(self):
        return f"ApiGatewayChannel({self.connection_id!r})"


class ConnectionRegistry:
    """Process-scoped identity -> channel map."""

    def __init__(self):
        self._lock = threading.Lock()
        self._channels: Dict[str, Any] = {}

    def register(self, identity: str, channel) -> Optional[Any]:
        """
        Bind identity to channel, replacing any earlier binding.

        Returns:
            The superseded channel, if any. It is left open.
        """
        with self._lock:
            previous = self._channels.get(identity)
            self._channels[identity] = channel
        if previous is not None and previous is not channel:
            logger.info(f"Laborer {identity} re-registered; previous channel superseded")
        else:
            logger.info(f"Laborer {identity} registered for job notifications")
        return previous

    def unregister(self, channel) -> Optional[str]:
        """
        Remove whichever identity is bound to `channel`.

        Returns:
            The identity that was unbound, or None if the channel was not registered
        """
        with self._lock:
            for identity, bound in list(self._channels.items()):
                if bound is channel or bound == channel:
                    del self._channels[identity]
                    logger.info(f"Laborer {identity} unregistered")
                    return identity
        return None

    def channel_for(self, identity: str) -> Optional[Any]:
        with self._lock:
            return self._channels.get(identity)

    def __len__(self):
        with self._lock:
            return len(self._channels)

    def send(self, identity: str, message: Dict[str, Any]) -> str:
        """Push one message; returns a DeliveryStatus."""
        channel = self.channel_for(identity)
        if channel is None:
            return DeliveryStatus.NOT_CONNECTED
        if not channel.is_open():
            return DeliveryStatus.CLOSED
        try:
            channel.send(message)
        except ChannelClosedError:
            return DeliveryStatus.CLOSED
        return DeliveryStatus.DELIVERED


class DynamoConnectionRegistry:
    """identity -> connectionId in CONNECTIONS_TABLE, keyed by userId."""

    def __init__(self, table=None, client=None):
        self.table = table or dynamodb.Table(config.CONNECTIONS_TABLE)
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_management_client()
        return self._client

    def register(self, identity: str, channel: ApiGatewayChannel) -> Optional[ApiGatewayChannel]:
        """
        Bind identity to channel, replacing any earlier binding.

        Returns:
            The superseded channel on a different connection, if any. It is left open.
        """
        # A plain put overwrites any earlier connection for this laborer
        response = self.table.put_item(
            Item={
                'userId': identity,
                'connectionId': channel.connection_id,
                'registeredAt': to_iso(utc_now())
            },
            ReturnValues='ALL_OLD'
        )
        logger.info(f"Laborer {identity} registered on connection {channel.connection_id}")

        old_connection = (response.get('Attributes') or {}).get('connectionId')
        if old_connection and old_connection != channel.connection_id:
            return ApiGatewayChannel(old_connection, client=self.client)
        return None

    def unregister(self, channel: ApiGatewayChannel) -> Optional[str]:
        items = scan_all(
            self.table,
            FilterExpression=Attr('connectionId').eq(channel.connection_id)
        )
        for item in items:
            if self._delete_binding(item['userId'], channel.connection_id):
                logger.info(f"Laborer {item['userId']} unregistered")
                return item['userId']
        return None

    def send(self, identity: str, message: Dict[str, Any]) -> str:
        response = self.table.get_item(Key={'userId': identity})
        item = response.get('Item')
        if not item:
            return DeliveryStatus.NOT_CONNECTED

        channel = ApiGatewayChannel(item['connectionId'], client=self.client)
        try:
            channel.send(message)
        except ChannelClosedError:
            # The socket went away without a $disconnect reaching us
            self._delete_binding(identity, item['connectionId'])
            return DeliveryStatus.CLOSED
        return DeliveryStatus.DELIVERED

    def _delete_binding(self, identity: str, connection_id: str) -> bool:
        """Delete identity's row only if it still points at connection_id."""
        try:
            self.table.delete_item(
                Key={'userId': identity},
                ConditionExpression='connectionId = :cid',
                ExpressionAttributeValues={':cid': connection_id}
            )
            return True
        except ClientError as e:
            if is_condition_failure(e):
                return False
            raise
