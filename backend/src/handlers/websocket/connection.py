"""
WebSocket Connection Handler.
Routes for the laborer notification socket:

    $connect      accept the socket; nothing is bound until register
    $default      {"type": "register", "userId": "..."}
    register      {"action": "register", "laborerId": "..."} (route-selected alias)
    $disconnect   drop whatever laborer was bound to this connection
"""
from shared.logging import logger, log_event
from shared.connections import ApiGatewayChannel, DynamoConnectionRegistry
from shared.models import MessageType
from shared.utils import format_response, parse_body

registry = DynamoConnectionRegistry()


def handler(event, context):
    log_event(event)

    request_context = event.get('requestContext') or {}
    route = request_context.get('routeKey')
    connection_id = request_context.get('connectionId')

    if not connection_id:
        return format_response(400, {'error': 'Missing connectionId'})

    try:
        if route == '$connect':
            return format_response(200, {'connected': True})

        channel = ApiGatewayChannel(connection_id)

        if route == '$disconnect':
            laborer_id = registry.unregister(channel)
            return format_response(200, {'unregistered': laborer_id})

        body = parse_body(event)
        if is_register_message(route, body):
            laborer_id = body.get('userId') or body.get('laborerId')
            if not laborer_id:
                return format_response(400, {'error': 'Missing userId'})
            superseded = registry.register(laborer_id, channel)
            if superseded is not None:
                close_superseded(laborer_id, superseded)
            return format_response(200, {'registered': laborer_id})

        logger.warning(f"Unhandled WebSocket message on route {route} from {connection_id}")
        return format_response(400, {'error': f'Unsupported message on route: {route}'})

    except Exception as e:
        logger.error(f"Error handling WebSocket route {route}: {e}")
        return format_response(500, {'error': 'Internal Server Error'})


def is_register_message(route, body):
    return MessageType.REGISTER in (route, body.get('type'), body.get('action'))


def close_superseded(laborer_id, channel):
    # The new binding already stands; a failed close only leaves a stale socket open
    try:
        channel.close()
        logger.info(f"Closed superseded connection {channel.connection_id} for laborer {laborer_id}")
    except Exception as e:
        logger.warning(f"Could not close superseded connection {channel.connection_id}: {e}")
