"""
Configuration module for Lambda handlers.
Loads all environment variables needed by the platform.
"""
import os
from decimal import Decimal


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'ap-south-1')

    # DynamoDB Tables
    JOBS_TABLE = os.environ.get('JOBS_TABLE', '')
    LABORERS_TABLE = os.environ.get('LABORERS_TABLE', '')
    SOBRIETY_CHECKS_TABLE = os.environ.get('SOBRIETY_CHECKS_TABLE', '')
    PAYMENTS_TABLE = os.environ.get('PAYMENTS_TABLE', '')
    WALLETS_TABLE = os.environ.get('WALLETS_TABLE', '')
    WITHDRAWALS_TABLE = os.environ.get('WITHDRAWALS_TABLE', '')
    CONNECTIONS_TABLE = os.environ.get('CONNECTIONS_TABLE', '')

    # GSI names
    LABORER_CHECKS_INDEX = os.environ.get('LABORER_CHECKS_INDEX', 'LaborerCheckedAtIndex')
    CHECK_STATUS_INDEX = os.environ.get('CHECK_STATUS_INDEX', 'StatusIndex')

    # S3 Buckets
    MEDIA_BUCKET = os.environ.get('MEDIA_BUCKET', '')

    # WebSocket API management endpoint (https://{api-id}.execute-api.{region}.amazonaws.com/{stage})
    WEBSOCKET_ENDPOINT = os.environ.get('WEBSOCKET_ENDPOINT', '')

    # AI Services Configuration
    VISION_MODEL_ID = os.environ.get('VISION_MODEL_ID', 'anthropic.claude-3-haiku-20240307-v1:0')
    ANALYSIS_TIMEOUT_SECONDS = float(os.environ.get('ANALYSIS_TIMEOUT_SECONDS', '30'))

    # Sobriety gate
    SOBRIETY_COOLDOWN_HOURS = float(os.environ.get('SOBRIETY_COOLDOWN_HOURS', '5.5'))
    SOBRIETY_PASS_VALID_HOURS = float(os.environ.get('SOBRIETY_PASS_VALID_HOURS', '12'))

    # Dispatch
    OFFER_TTL_SECONDS = int(os.environ.get('OFFER_TTL_SECONDS', '60'))  # Enforced client-side
    NOTIFY_JOB_TAKEN = os.environ.get('NOTIFY_JOB_TAKEN', 'false').lower() == 'true'

    # Fees and wallet limits (rupees)
    CUSTOMER_CONVENIENCE_FEE = Decimal(os.environ.get('CUSTOMER_CONVENIENCE_FEE', '10'))
    WORKER_CONVENIENCE_FEE = Decimal(os.environ.get('WORKER_CONVENIENCE_FEE', '10'))
    MINIMUM_WITHDRAWAL = Decimal(os.environ.get('MINIMUM_WITHDRAWAL', '100'))


config = Config()
