"""Storage infrastructure module.

Provides deployment-neutral durable media storage via the StorageProvider interface.
"""

from evidence_sync.infrastructure.storage.factory import get_storage_provider, reset_storage_provider
from evidence_sync.infrastructure.storage.provider import StorageError, StorageProvider
from evidence_sync.infrastructure.storage.local_storage import LocalStorage
from evidence_sync.infrastructure.storage.s3_storage import S3Storage

__all__ = [
    "get_storage_provider",
    "reset_storage_provider",
    "StorageError",
    "StorageProvider",
    "LocalStorage",
    "S3Storage",
]
