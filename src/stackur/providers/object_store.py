"""S3 access for container resources that must be emptied before deletion."""

import asyncio
from typing import List

from botocore.exceptions import ClientError

from stackur.utils.logging import get_logger

logger = get_logger(__name__)


class ObjectStore:
    """Async facade over a boto3 S3 client."""

    def __init__(self, client):
        """Initialize object store.

        Args:
            client: boto3 S3 client
        """
        self.client = client

    async def list_objects(self, bucket: str) -> List[str]:
        """List every object key in a bucket; a missing bucket has none."""
        paginator = self.client.get_paginator('list_objects_v2')

        def collect():
            keys = []
            for page in paginator.paginate(Bucket=bucket):
                keys.extend(obj['Key'] for obj in page.get('Contents', []))
            return keys

        try:
            return await asyncio.to_thread(collect)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') != 'NoSuchBucket':
                raise
            return []

    async def delete_object(self, bucket: str, key: str) -> None:
        """Delete one object."""
        await asyncio.to_thread(self.client.delete_object, Bucket=bucket, Key=key)

    async def delete_bucket(self, bucket: str) -> None:
        """Delete an empty bucket; a bucket that is already gone is ignored."""
        try:
            await asyncio.to_thread(self.client.delete_bucket, Bucket=bucket)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') != 'NoSuchBucket':
                raise
            logger.debug(f"Bucket {bucket} was already deleted")
