"""Filesystem media storage

Media bytes written under a local directory with aiofiles. Suited to a single
workstation or to a shared volume that a web server exposes under
STORAGE_PUBLIC_BASE_URL.
"""

import logging
import os
from pathlib import Path
from typing import BinaryIO, Optional

import aiofiles

from evidence_sync.infrastructure.storage.provider import StorageError, StorageProvider

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class LocalStorage(StorageProvider):
    """Media files in a directory tree keyed by storage key"""

    def __init__(self, base_path: Optional[str] = None, public_base_url: Optional[str] = None):
        self.base_path = Path(base_path or os.getenv("STORAGE_LOCAL_PATH", "./data/media")).resolve()
        self.public_base_url = public_base_url or os.getenv("STORAGE_PUBLIC_BASE_URL")
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Local media storage at {self.base_path}")

    def _resolve(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        # Keys come from file names inside extractions; never leave the root
        if not path.is_relative_to(self.base_path):
            logger.error(f"Rejected media key outside storage root: {key}")
            raise StorageError(f"Invalid media key: {key}")
        return path

    async def upload(
        self,
        file_stream: BinaryIO,
        key: str,
        content_type: str,
        case_id: Optional[str] = None,
    ) -> str:
        path = self._resolve(key)
        file_stream.seek(0)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as out:
                while chunk := file_stream.read(CHUNK_SIZE):
                    await out.write(chunk)
        except OSError as e:
            logger.error(f"Writing media {key} failed: {e}")
            raise StorageError(f"Local media write failed: {e}") from e

        logger.info(f"Stored {content_type} media {key} for case {case_id}")
        return key

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        return self._resolve(key).as_uri()

    async def health_check(self) -> bool:
        marker = self.base_path / ".health_check"
        try:
            marker.touch()
            marker.unlink()
        except OSError as e:
            logger.error(f"Local media storage not writable: {e}")
            return False
        return True
