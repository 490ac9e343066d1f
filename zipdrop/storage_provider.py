"""
Abstract base class for S3-compatible object stores.

The uploader only talks to this interface, so Cloudflare R2, AWS S3, MinIO
or any other S3-compatible service can be substituted without touching the
retry or credential-check logic.
"""

from abc import ABC, abstractmethod

from shared.models import ObjectResponse


class ObjectStore(ABC):
    """
    Minimal object-store capability bound to one bucket.

    Each method returns the HTTP status the service answered with. A failure
    that never produced a status (DNS, refused connection, timeout) raises
    StoreError instead.
    """

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> ObjectResponse:
        """
        Store ``data`` under ``key``.

        Args:
            key: Object key in the bucket
            data: Full payload
            content_type: MIME type sent with the object

        Returns:
            ObjectResponse with the service's status code
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> ObjectResponse:
        """
        Delete the object stored under ``key``.

        Args:
            key: Object key in the bucket

        Returns:
            ObjectResponse with the service's status code
        """
        pass

    @abstractmethod
    async def head(self, key: str) -> ObjectResponse:
        """
        Fetch the metadata of ``key`` without its body.

        Args:
            key: Object key in the bucket

        Returns:
            ObjectResponse (200 if present, 404 if absent)
        """
        pass
