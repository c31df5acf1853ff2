"""S3-compatible media storage

Media bytes go to an S3 (or MinIO) bucket through aioboto3. Objects are
tagged with the owning case so a bucket can be audited or purged per case
without consulting the case store.
"""

import logging
import os
from typing import BinaryIO, Dict, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from evidence_sync.infrastructure.storage.provider import StorageError, StorageProvider

logger = logging.getLogger(__name__)


class S3Storage(StorageProvider):
    """Media in an S3 bucket, addressed by plain (non-expiring) object URLs.

    The media prefix must be publicly readable, directly or behind a
    gateway.
    """

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
    ):
        self.bucket_name = bucket_name or os.getenv("S3_BUCKET_NAME")
        if not self.bucket_name:
            raise ValueError("S3 media storage needs S3_BUCKET_NAME or an explicit bucket_name")

        self.region = region or os.getenv("S3_REGION", "us-east-1")
        self.endpoint_url = endpoint_url or os.getenv("S3_ENDPOINT_URL")

        # None falls through to the default boto credential chain
        self.session = aioboto3.Session(
            aws_access_key_id=access_key or os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=secret_key or os.getenv("AWS_SECRET_ACCESS_KEY"),
            region_name=self.region,
        )
        logger.info(f"S3 media storage: bucket={self.bucket_name} endpoint={self.endpoint_url or 'aws'}")

    def _client(self):
        return self.session.client("s3", region_name=self.region, endpoint_url=self.endpoint_url)

    @staticmethod
    def _object_args(content_type: str, case_id: Optional[str]) -> Dict[str, object]:
        args: Dict[str, object] = {"ContentType": content_type}
        if case_id:
            args["Metadata"] = {"case-id": case_id}
        return args

    async def upload(
        self,
        file_stream: BinaryIO,
        key: str,
        content_type: str,
        case_id: Optional[str] = None,
    ) -> str:
        file_stream.seek(0)
        try:
            async with self._client() as s3:
                await s3.upload_fileobj(
                    file_stream,
                    self.bucket_name,
                    key,
                    ExtraArgs=self._object_args(content_type, case_id),
                )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(f"Media upload to s3://{self.bucket_name}/{key} rejected ({code})")
            raise StorageError(f"S3 rejected media upload: {code}") from e
        except BotoCoreError as e:
            logger.error(f"Media upload to s3://{self.bucket_name}/{key} failed: {e}")
            raise StorageError(f"S3 media upload failed: {e}") from e

        logger.info(f"Stored media s3://{self.bucket_name}/{key} for case {case_id}")
        return key

    def public_url(self, key: str) -> str:
        if self.endpoint_url:
            # Path-style addressing for MinIO and other self-hosted endpoints
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"

    async def health_check(self) -> bool:
        try:
            async with self._client() as s3:
                await s3.head_bucket(Bucket=self.bucket_name)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Media bucket {self.bucket_name} unreachable: {e}")
            return False
        return True
