"""Storage Provider Interface

Abstract base class defining the contract for durable media storage.
Supports both local filesystem (development/self-hosted) and S3 (enterprise/K8s).
"""

from abc import ABC, abstractmethod
from typing import BinaryIO


class StorageError(Exception):
    """Raised when a storage backend rejects or fails an operation"""


class StorageProvider(ABC):
    """Abstract storage provider for media bytes that must outlive the process."""

    @abstractmethod
    async def upload(
        self,
        file_stream: BinaryIO,
        key: str,
        content_type: str,
        case_id: str = None
    ) -> str:
        """Upload a file and return its storage key.

        Args:
            file_stream: Binary file stream
            key: Unique path (e.g., "evidence-media/CASE-2024-0001/m1/photo.jpg")
            content_type: MIME type (e.g., "image/jpeg")
            case_id: Optional case ID (for logging/auditing)

        Returns:
            Storage key that can be passed to public_url()

        Raises:
            StorageError: If upload fails
        """
        pass

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Return a durable URL for an uploaded key.

        Unlike a presigned URL this does not expire; it stays valid across
        process restarts for as long as the object exists.
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if storage backend is healthy and accessible.

        Returns:
            True if storage is healthy, False otherwise
        """
        pass
