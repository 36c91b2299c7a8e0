"""
Logging utilities for Lambda handlers.
"""
import logging
import json

# Body fields that are too large or too sensitive to log
REDACTED_FIELDS = ('image',)

logger = logging.getLogger('labormarket')
logger.setLevel(logging.INFO)

if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)


def redact_body(body):
    """
    Parsed request body with image payloads replaced by their size.
    Unparseable bodies are summarized rather than logged.
    """
    if not body:
        return None
    try:
        data = json.loads(body) if isinstance(body, str) else body
    except (json.JSONDecodeError, TypeError):
        return f'<unparsed body, {len(str(body))} chars>'
    if not isinstance(data, dict):
        return data
    return {
        k: f'<{len(str(v))} chars redacted>' if k in REDACTED_FIELDS and v else v
        for k, v in data.items()
    }


def log_event(event: dict) -> None:
    """Log incoming Lambda event without headers or image payloads."""
    try:
        safe_event = {k: v for k, v in event.items() if k not in ('body', 'headers', 'multiValueHeaders')}
        safe_event['body'] = redact_body(event.get('body'))
        logger.info(f"Lambda event: {json.dumps(safe_event, default=str)}")
    except Exception as e:
        logger.warning(f"Could not log event: {e}")
