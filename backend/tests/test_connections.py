"""
Tests for the connection registries and the API Gateway channel.
"""
import json
import threading
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from conftest import FakeChannel
from shared.connections import (
    ApiGatewayChannel, ChannelClosedError, ConnectionRegistry, DynamoConnectionRegistry
)
from shared.models import DeliveryStatus


def client_error(code, operation='PostToConnection'):
    return ClientError({'Error': {'Code': code, 'Message': code}}, operation)


class TestConnectionRegistry:
    """Tests for the in-process ConnectionRegistry."""

    def test_reregistration_replaces_binding(self):
        """The latest registration wins and the old channel gets nothing."""
        registry = ConnectionRegistry()
        first, second = FakeChannel('c1'), FakeChannel('c2')

        assert registry.register('A', first) is None
        previous = registry.register('A', second)

        assert previous is first
        assert first.open  # superseded channel is not closed by the registry
        assert registry.channel_for('A') is second
        assert registry.send('A', {'type': 'ping'}) == DeliveryStatus.DELIVERED
        assert first.sent == []
        assert second.sent == [{'type': 'ping'}]

    def test_unregister_by_channel(self):
        """Unregistering a channel removes its laborer."""
        registry = ConnectionRegistry()
        channel = FakeChannel('c1')
        registry.register('A', channel)

        assert registry.unregister(channel) == 'A'
        assert registry.channel_for('A') is None
        assert registry.send('A', {}) == DeliveryStatus.NOT_CONNECTED

    def test_unregister_of_superseded_channel_keeps_new_binding(self):
        """A late disconnect of the old channel keeps the new binding."""
        registry = ConnectionRegistry()
        old, new = FakeChannel('old'), FakeChannel('new')
        registry.register('A', old)
        registry.register('A', new)

        assert registry.unregister(old) is None
        assert registry.channel_for('A') is new

    def test_concurrent_register_and_unregister(self):
        """Concurrent connect and disconnect churn leaves a consistent map."""
        registry = ConnectionRegistry()
        channels = {f'L{i}': FakeChannel(f'c{i}') for i in range(200)}

        def churn(identity, channel):
            registry.register(identity, channel)
            if int(identity[1:]) % 2:
                registry.unregister(channel)

        threads = [threading.Thread(target=churn, args=item) for item in channels.items()]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry) == 100
        assert registry.channel_for('L0') is channels['L0']
        assert registry.channel_for('L1') is None


class TestApiGatewayChannel:
    """Tests for ApiGatewayChannel."""

    def test_send_encodes_json(self):
        """Messages are posted to the connection as JSON."""
        client = MagicMock()
        channel = ApiGatewayChannel('conn-1', client=client)

        channel.send({'type': 'new_job', 'job': {'totalAmount': 800}})

        kwargs = client.post_to_connection.call_args.kwargs
        assert kwargs['ConnectionId'] == 'conn-1'
        assert json.loads(kwargs['Data']) == {'type': 'new_job', 'job': {'totalAmount': 800}}

    def test_gone_connection_closes_channel(self):
        """GoneException marks the channel closed."""
        client = MagicMock()
        client.post_to_connection.side_effect = client_error('GoneException')
        channel = ApiGatewayChannel('conn-1', client=client)

        with pytest.raises(ChannelClosedError):
            channel.send({'type': 'ping'})
        assert not channel.is_open()

    def test_other_errors_propagate(self):
        """Errors other than GoneException are raised to the caller."""
        client = MagicMock()
        client.post_to_connection.side_effect = client_error('LimitExceededException')
        channel = ApiGatewayChannel('conn-1', client=client)

        with pytest.raises(ClientError):
            channel.send({'type': 'ping'})
        assert channel.is_open()

    def test_close_of_gone_connection(self):
        """Closing a connection API Gateway already dropped is not an error."""
        client = MagicMock()
        client.delete_connection.side_effect = client_error('GoneException', 'DeleteConnection')
        channel = ApiGatewayChannel('conn-1', client=client)

        channel.close()

        assert not channel.is_open()


class TestDynamoConnectionRegistry:
    """Tests for DynamoConnectionRegistry against a mocked table."""

    def test_register_overwrites_binding(self):
        """Registration writes the laborer's connection row."""
        table = MagicMock()
        table.put_item.return_value = {}
        registry = DynamoConnectionRegistry(table=table, client=MagicMock())

        assert registry.register('A', ApiGatewayChannel('conn-9')) is None

        item = table.put_item.call_args.kwargs['Item']
        assert item['userId'] == 'A'
        assert item['connectionId'] == 'conn-9'

    def test_register_returns_superseded_connection(self):
        """The laborer's previous connection comes back so the caller can close it."""
        table = MagicMock()
        table.put_item.return_value = {'Attributes': {'userId': 'A', 'connectionId': 'conn-1'}}
        client = MagicMock()
        registry = DynamoConnectionRegistry(table=table, client=client)

        previous = registry.register('A', ApiGatewayChannel('conn-2'))

        assert previous == ApiGatewayChannel('conn-1')
        assert table.put_item.call_args.kwargs['ReturnValues'] == 'ALL_OLD'
        previous.close()
        client.delete_connection.assert_called_once_with(ConnectionId='conn-1')
        assert not previous.is_open()

    def test_same_connection_registering_twice(self):
        """Re-registering on the same socket supersedes nothing."""
        table = MagicMock()
        table.put_item.return_value = {'Attributes': {'userId': 'A', 'connectionId': 'conn-1'}}
        registry = DynamoConnectionRegistry(table=table, client=MagicMock())

        assert registry.register('A', ApiGatewayChannel('conn-1')) is None

    def test_send_without_binding(self):
        """A laborer with no row is not connected."""
        table = MagicMock()
        table.get_item.return_value = {}
        registry = DynamoConnectionRegistry(table=table, client=MagicMock())

        assert registry.send('A', {'type': 'new_job'}) == DeliveryStatus.NOT_CONNECTED

    def test_send_to_gone_connection_drops_binding(self):
        """A gone connection is reported closed and its row deleted."""
        table = MagicMock()
        table.get_item.return_value = {'Item': {'userId': 'A', 'connectionId': 'conn-1'}}
        client = MagicMock()
        client.post_to_connection.side_effect = client_error('GoneException')
        registry = DynamoConnectionRegistry(table=table, client=client)

        assert registry.send('A', {'type': 'new_job'}) == DeliveryStatus.CLOSED
        delete_kwargs = table.delete_item.call_args.kwargs
        assert delete_kwargs['Key'] == {'userId': 'A'}
        assert delete_kwargs['ExpressionAttributeValues'] == {':cid': 'conn-1'}

    def test_unregister_finds_identity_by_connection(self):
        """Disconnect finds the laborer by connection id."""
        table = MagicMock()
        table.scan.return_value = {'Items': [{'userId': 'A', 'connectionId': 'conn-1'}]}
        registry = DynamoConnectionRegistry(table=table, client=MagicMock())

        assert registry.unregister(ApiGatewayChannel('conn-1')) == 'A'

    def test_unregister_after_rebind_leaves_new_connection(self):
        """Disconnect of a replaced connection deletes nothing."""
        table = MagicMock()
        table.scan.return_value = {'Items': [{'userId': 'A', 'connectionId': 'conn-1'}]}
        table.delete_item.side_effect = client_error('ConditionalCheckFailedException', 'DeleteItem')
        registry = DynamoConnectionRegistry(table=table, client=MagicMock())

        assert registry.unregister(ApiGatewayChannel('conn-1')) is None
