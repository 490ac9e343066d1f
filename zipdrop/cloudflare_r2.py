"""
Cloudflare R2 object store implementation.

R2 is S3-compatible, so this uses the boto3 S3 client against the account's
R2 endpoint with the synthetic "auto" region and path-style addressing.
"""

import asyncio
import logging
from functools import partial
from typing import Any, Callable

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    ConnectTimeoutError,
    HTTPClientError,
    ReadTimeoutError
)

from shared.constants import CLOUDFLARE_R2_REGION
from shared.models import ObjectResponse, StorageConfig
from .errors import StoreError
from .storage_provider import ObjectStore

logger = logging.getLogger(__name__)


def _status_from_client_error(e: ClientError) -> ObjectResponse:
    """Turn an HTTP error reply into a response instead of an exception."""
    response = e.response or {}
    status = response.get('ResponseMetadata', {}).get('HTTPStatusCode')
    error = response.get('Error', {})
    if status is None:
        # HEAD replies carry the status only as the error code
        code = str(error.get('Code', ''))
        status = int(code) if code.isdigit() else 0
    message = error.get('Message') or error.get('Code') or str(e)
    return ObjectResponse(status_code=status, message=str(message))


def _transport_error(e: BotoCoreError) -> StoreError:
    """Describe a failure that never reached the service."""
    if isinstance(e, (ConnectTimeoutError, ReadTimeoutError)):
        return StoreError(f"timeout: {e}")
    # Covers endpoint, proxy and SSL failures and dropped connections
    if isinstance(e, (BotoConnectionError, HTTPClientError)):
        return StoreError(f"network error: {e}")
    return StoreError(str(e))


class CloudflareR2Store(ObjectStore):
    """
    Cloudflare R2 bucket accessed through boto3.

    boto3 is blocking, so every call runs in the default executor. botocore's
    own retries are disabled; retrying is the uploader's decision.
    """

    def __init__(self, bucket_name: str, endpoint_url: str, access_key: str, secret_key: str):
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url
        self.s3_client = boto3.client(
            's3',
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=CLOUDFLARE_R2_REGION,
            config=Config(
                signature_version='s3v4',
                s3={'addressing_style': 'path'},
                retries={'max_attempts': 1, 'mode': 'standard'}
            )
        )

    @classmethod
    def from_config(cls, config: StorageConfig) -> 'CloudflareR2Store':
        """Build a store bound to the bucket and endpoint of ``config``."""
        return cls(
            bucket_name=config.bucket_name,
            endpoint_url=config.endpoint,
            access_key=config.access_key,
            secret_key=config.secret_key
        )

    async def _call(self, method: Callable[..., Any], **kwargs: Any) -> ObjectResponse:
        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(None, partial(method, **kwargs))
        except ClientError as e:
            return _status_from_client_error(e)
        except BotoCoreError as e:
            raise _transport_error(e) from e

        status = response.get('ResponseMetadata', {}).get('HTTPStatusCode', 0)
        return ObjectResponse(status_code=status)

    async def put(self, key: str, data: bytes, content_type: str) -> ObjectResponse:
        logger.debug("PUT %s/%s (%d bytes, %s)", self.bucket_name, key, len(data), content_type)
        return await self._call(
            self.s3_client.put_object,
            Bucket=self.bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type
        )

    async def delete(self, key: str) -> ObjectResponse:
        logger.debug("DELETE %s/%s", self.bucket_name, key)
        return await self._call(self.s3_client.delete_object, Bucket=self.bucket_name, Key=key)

    async def head(self, key: str) -> ObjectResponse:
        return await self._call(self.s3_client.head_object, Bucket=self.bucket_name, Key=key)
