"""
Upload client for publishing artifacts to the remote bucket.

Every operation receives the StorageConfig explicitly and builds its own
object store from it; the uploader itself keeps no per-call state, so
independent uploads may run concurrently.
"""

import asyncio
import logging
import re
import uuid
from pathlib import Path
from typing import Awaitable, Callable, Optional

from shared.constants import (
    BACKOFF_MULTIPLIER,
    CONNECTION_TEST_BODY,
    CONNECTION_TEST_KEY,
    CONTENT_TYPES,
    DEFAULT_CONTENT_TYPE,
    DEFAULT_EXTENSION,
    INITIAL_RETRY_DELAY_MS,
    MAX_UPLOAD_ATTEMPTS,
    RETRYABLE_STATUS_CODES,
    SHORT_ID_LENGTH,
    TRANSIENT_ERROR_MARKERS,
    UPLOAD_KEY_PREFIX
)
from shared.models import StorageConfig, UploadResult
from .cloudflare_r2 import CloudflareR2Store
from .errors import CredentialsError, OperationError, StoreError
from .storage_provider import ObjectStore

logger = logging.getLogger(__name__)

StoreFactory = Callable[[StorageConfig], ObjectStore]
SleepFunc = Callable[[float], Awaitable[None]]

INVALID_CREDENTIALS_MESSAGE = "Invalid R2 credentials"
TIMEOUT_MESSAGE = "Connection timed out - please try again"
CONNECTION_FAILED_MESSAGE = "Connection failed - check your network"

_UNSAFE_NAME_CHARS = re.compile(r"[^\w-]")


def is_transient_error(error: str) -> bool:
    """Check if an error message describes a failure worth retrying."""
    error_lower = error.lower()
    return any(marker in error_lower for marker in TRANSIENT_ERROR_MARKERS)


def friendly_error(error: str) -> str:
    """
    Collapse a raw provider error into one of three user-facing messages.

    Network failures are reported as such so the user knows the credentials
    are not at fault; everything else reads as invalid credentials.
    """
    error_lower = error.lower()

    if "timeout" in error_lower or "timed out" in error_lower:
        return TIMEOUT_MESSAGE
    if "connection refused" in error_lower or "network" in error_lower:
        return CONNECTION_FAILED_MESSAGE

    return INVALID_CREDENTIALS_MESSAGE


def sanitize_name(name: str) -> str:
    """Replace every character that is not alphanumeric, '-' or '_' with '_'."""
    return _UNSAFE_NAME_CHARS.sub("_", name)


def content_type_for(ext: str) -> str:
    """MIME type for an extension, falling back to application/octet-stream."""
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


def build_object_key(file_path: Path, unique_id: Optional[str] = None) -> str:
    """
    Object key for an artifact: ``u/<id>_<sanitized stem>.<ext>``.

    Args:
        file_path: Artifact path
        unique_id: 8-character id (random if omitted)
    """
    if unique_id is None:
        unique_id = str(uuid.uuid4())[:SHORT_ID_LENGTH]
    ext = file_path.suffix[1:] if len(file_path.suffix) > 1 else DEFAULT_EXTENSION
    stem = file_path.stem or "file"
    return f"{UPLOAD_KEY_PREFIX}{unique_id}_{sanitize_name(stem)}.{ext}"


def build_public_url(public_url_base: str, key: str) -> str:
    """Join the public base URL and the key with exactly one '/'."""
    return f"{public_url_base.rstrip('/')}/{key}"


class StorageUploader:
    """
    Uploads, deletes and checks objects in the configured bucket.

    Args:
        store_factory: Builds the object store for a config
        sleep: Coroutine used to wait between retries
    """

    def __init__(self, store_factory: Optional[StoreFactory] = None,
                 sleep: Optional[SleepFunc] = None):
        self.store_factory = store_factory or CloudflareR2Store.from_config
        self.sleep = sleep or asyncio.sleep

    def _store(self, config: StorageConfig) -> ObjectStore:
        try:
            return self.store_factory(config)
        except OperationError:
            raise
        except Exception as e:
            raise OperationError(f"Failed to create storage client: {e}") from e

    async def validate_credentials(self, config: StorageConfig) -> None:
        """
        Check credentials by writing and removing a tiny test object.

        The write proves that the account endpoint resolves, the request is
        signed correctly and the bucket accepts writes.

        Raises:
            CredentialsError: With a timeout, connectivity or invalid
                credentials message
        """
        try:
            store = self._store(config)
        except OperationError as e:
            raise CredentialsError(friendly_error(e.message)) from e

        error: Optional[CredentialsError] = None
        try:
            response = await store.put(CONNECTION_TEST_KEY, CONNECTION_TEST_BODY, "text/plain")
            if response.status_code != 200:
                logger.debug("Credential check write returned %s: %s",
                             response.status_code, response.message)
                error = CredentialsError(INVALID_CREDENTIALS_MESSAGE)
        except OperationError as e:
            logger.debug("Credential check write failed: %s", e.message)
            error = CredentialsError(friendly_error(e.message))

        try:
            await store.delete(CONNECTION_TEST_KEY)
        except OperationError as e:
            logger.debug("Ignoring cleanup failure for %s: %s", CONNECTION_TEST_KEY, e.message)

        if error is not None:
            raise error

    async def upload(self, file_path: Path, config: StorageConfig) -> UploadResult:
        """
        Upload an artifact, retrying transient failures with backoff.

        Up to MAX_UPLOAD_ATTEMPTS attempts are made. A 502/503/504 reply or a
        transport error whose text looks transient triggers a retry after
        1s, then 2s; any other failure is returned at once.

        Args:
            file_path: Artifact to upload
            config: Bucket and credentials

        Returns:
            UploadResult with the public URL, key and uploaded byte size

        Raises:
            OperationError: If the file cannot be read or the upload fails
        """
        file_path = Path(file_path)
        try:
            file_data = file_path.read_bytes()
        except OSError as e:
            raise OperationError(f"Failed to read file for upload: {e}") from e

        key = build_object_key(file_path)
        content_type = content_type_for(file_path.suffix[1:])
        store = self._store(config)

        attempts = 0
        delay = INITIAL_RETRY_DELAY_MS / 1000.0

        while True:
            attempts += 1

            try:
                response = await store.put(key, file_data, content_type)
            except StoreError as e:
                last_error = f"Failed to upload to R2: {e.message}"
                retryable = is_transient_error(last_error)
            else:
                if response.status_code == 200:
                    url = build_public_url(config.public_url_base, key)
                    logger.info("Uploaded %s (%d bytes) to %s", file_path.name, len(file_data), key)
                    return UploadResult(url=url, key=key, size=len(file_data))

                last_error = f"R2 upload failed with status: {response.status_code}"
                retryable = response.status_code in RETRYABLE_STATUS_CODES

            if not retryable or attempts >= MAX_UPLOAD_ATTEMPTS:
                raise OperationError(last_error)

            logger.warning(
                "Upload attempt %d failed (%s), retrying in %.1fs...",
                attempts, last_error, delay
            )
            await self.sleep(delay)
            delay *= BACKOFF_MULTIPLIER

    async def delete(self, key: str, config: StorageConfig) -> None:
        """
        Delete an object. Single attempt; failures are raised to the caller.

        Raises:
            OperationError: If the request fails or the service rejects it
        """
        store = self._store(config)
        try:
            response = await store.delete(key)
        except StoreError as e:
            raise OperationError(f"Failed to delete from R2: {e.message}") from e

        if not response.ok:
            raise OperationError(
                f"Failed to delete from R2: status {response.status_code}"
                + (f" ({response.message})" if response.message else "")
            )
        logger.info("Deleted %s", key)

    async def exists(self, key: str, config: StorageConfig) -> bool:
        """
        Check whether ``key`` is present in the bucket.

        Raises:
            OperationError: For anything other than a 200 or 404 reply
        """
        store = self._store(config)
        try:
            response = await store.head(key)
        except StoreError as e:
            raise OperationError(f"Failed to check object: {e.message}") from e

        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise OperationError(f"Failed to check object: status {response.status_code}")
