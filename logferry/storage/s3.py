"""
S3 object store.

Reads source objects and their attributes from S3 buckets through a
boto3 client. Listing follows list_objects_v2 pagination.
"""

from typing import Any, BinaryIO, Iterator

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from logferry.core.errors import SourceDecodeError
from logferry.core.models import ObjectAttrs, ObjectRef
from logferry.observability.logger import get_logger

logger = get_logger(__name__)


def create_s3_client(profile: str | None = None, region: str | None = None) -> Any:
    """
    Create a boto3 S3 client.

    Args:
        profile: AWS profile name (default credential chain if None)
        region: AWS region (profile or environment default if None)

    Returns:
        boto3 S3 client
    """
    session_kwargs: dict[str, str] = {}
    if profile:
        session_kwargs["profile_name"] = profile
    if region:
        session_kwargs["region_name"] = region
    session = boto3.session.Session(**session_kwargs)
    return session.client("s3")


def _etag(value: str | None) -> str | None:
    # S3 returns the ETag wrapped in double quotes
    return (value or "").strip('"') or None


class S3ObjectStore:
    """
    Object store backed by S3.

    Object names map to keys; single-part uploads expose their ETag as
    the content MD5.
    """

    def __init__(self, client: Any):
        """
        Initialize S3 object store.

        Args:
            client: boto3 S3 client (see create_s3_client)
        """
        self.client = client

    def open(self, obj: ObjectRef) -> BinaryIO:
        try:
            response = self.client.get_object(Bucket=obj.bucket, Key=obj.name)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to open object: {e}", extra={"object": str(obj)})
            raise SourceDecodeError(f"failed to open object: {e}", object=str(obj)) from e
        return response["Body"]

    def attrs(self, obj: ObjectRef) -> ObjectAttrs:
        try:
            head = self.client.head_object(Bucket=obj.bucket, Key=obj.name)
        except (ClientError, BotoCoreError) as e:
            raise SourceDecodeError(f"failed to get object attributes: {e}", object=str(obj)) from e

        etag = _etag(head.get("ETag"))
        return ObjectAttrs(
            bucket=obj.bucket,
            name=obj.name,
            size=head.get("ContentLength", 0),
            content_type=head.get("ContentType"),
            # Multipart ETags ("<hash>-<parts>") are not an MD5
            md5=etag if etag and "-" not in etag else None,
            etag=etag,
            generation=head.get("VersionId"),
            updated=head.get("LastModified"),
        )

    def list(self, bucket: str, prefix: str = "") -> Iterator[ObjectAttrs]:
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            for item in page.get("Contents", []):
                yield ObjectAttrs(
                    bucket=bucket,
                    name=item["Key"],
                    size=item.get("Size", 0),
                    etag=_etag(item.get("ETag")),
                    updated=item.get("LastModified"),
                )
