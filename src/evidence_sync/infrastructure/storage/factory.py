"""Storage provider selection

STORAGE_PROVIDER chooses where media behind transient URLs is uploaded:

- "local" (default): LocalStorage under STORAGE_LOCAL_PATH
- "s3": S3Storage (S3_BUCKET_NAME, S3_REGION, S3_ENDPOINT_URL, AWS credentials)
- "none": no durable storage; transient media URLs are persisted as null
"""

import logging
import os
from typing import Optional

from evidence_sync.infrastructure.storage.local_storage import LocalStorage
from evidence_sync.infrastructure.storage.provider import StorageProvider
from evidence_sync.infrastructure.storage.s3_storage import S3Storage

logger = logging.getLogger(__name__)

_storage_instance: Optional[StorageProvider] = None


def get_storage_provider() -> Optional[StorageProvider]:
    """Process-wide storage provider, or None when uploads are disabled"""
    global _storage_instance

    if _storage_instance is not None:
        return _storage_instance

    provider_type = os.getenv("STORAGE_PROVIDER", "local").lower()
    if provider_type == "none":
        logger.warning("Media storage disabled; transient media will be saved without a URL")
        return None

    if provider_type == "s3":
        _storage_instance = S3Storage()
    else:
        if provider_type != "local":
            logger.warning(f"Unknown STORAGE_PROVIDER '{provider_type}', using local storage")
        _storage_instance = LocalStorage()

    logger.info(f"Media storage provider: {type(_storage_instance).__name__}")
    return _storage_instance


def reset_storage_provider():
    """Forget the cached provider so the next call re-reads the environment"""
    global _storage_instance
    _storage_instance = None
