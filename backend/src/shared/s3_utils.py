"""
S3 utility functions for sobriety check images.
Stores captured images and generates presigned URLs for admin review.
"""
import base64
import binascii
import hashlib
import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError
from .config import config
from .logging import logger

# S3 client with custom signature version for presigned URLs
s3_client = boto3.client(
    's3',
    region_name=config.AWS_REGION,
    config=BotoConfig(signature_version='s3v4')
)

CHECK_IMAGE_PREFIX = 'sobriety-checks/'


class InvalidImageError(ValueError):
    """The submitted image could not be decoded."""


def decode_image(image: str) -> bytes:
    """
    Decode an image sent as a data URL (data:image/jpeg;base64,...) or bare base64.

    Raises:
        InvalidImageError: if the payload is empty or not base64
    """
    if not image:
        raise InvalidImageError('Missing image')
    payload = image.split(',', 1)[1] if image.startswith('data:') else image
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError(f'Image is not valid base64: {e}') from e
    if not data:
        raise InvalidImageError('Image is empty')
    return data


def store_check_image(laborer_id: str, check_id: str, image_bytes: bytes, bucket_name: str = None) -> str:
    """
    Upload a sobriety check image.

    Returns:
        The S3 key, or a sha256 digest reference when no MEDIA_BUCKET is configured
    """
    bucket = bucket_name or config.MEDIA_BUCKET
    if not bucket:
        logger.warning("No MEDIA_BUCKET configured, keeping digest reference only")
        return 'sha256:' + hashlib.sha256(image_bytes).hexdigest()

    key = f"{CHECK_IMAGE_PREFIX}{laborer_id}/{check_id}.jpg"
    s3_client.put_object(
        Bucket=bucket,
        Key=key,
        Body=image_bytes,
        ContentType='image/jpeg',
        ServerSideEncryption='AES256'
    )
    logger.info(f"Stored check image at s3://{bucket}/{key}")
    return key


def generate_presigned_url(
    s3_key: str,
    expiration: int = 900,
    bucket_name: str = None
) -> str:
    """
    Generate a presigned URL for a stored check image.

    Args:
        s3_key: The S3 object key (e.g., 'sobriety-checks/{laborerId}/{checkId}.jpg')
        expiration: URL expiration time in seconds (default 15 minutes)
        bucket_name: Optional bucket name, defaults to config.MEDIA_BUCKET

    Returns:
        Presigned URL string or original reference if it is not an S3 key
    """
    if not is_check_image_key(s3_key):
        return s3_key

    bucket = bucket_name or config.MEDIA_BUCKET
    if not bucket:
        logger.warning("No MEDIA_BUCKET configured, returning original key")
        return s3_key

    try:
        return s3_client.generate_presigned_url(
            'get_object',
            Params={
                'Bucket': bucket,
                'Key': s3_key
            },
            ExpiresIn=expiration
        )
    except ClientError as e:
        logger.error(f"Error generating presigned URL for {s3_key}: {e}")
        return s3_key


def is_check_image_key(reference: str) -> bool:
    """True if the reference points at an uploaded image rather than a digest."""
    return bool(reference) and reference.startswith(CHECK_IMAGE_PREFIX)
