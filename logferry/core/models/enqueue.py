"""
Models for enqueueing object load requests.
"""

from datetime import timedelta

from pydantic import BaseModel, Field


class EnqueueRequest(BaseModel):
    """
    Object URL prefixes to enqueue.

    Attributes:
        urls: Prefix URLs such as s3://bucket/logs/2024/ (a bare
            s3://bucket enqueues the whole bucket)
    """

    urls: list[str] = Field(..., min_length=1)


class EnqueueResponse(BaseModel):
    """
    Summary of one enqueue call.

    Attributes:
        count: Number of objects enqueued
        size: Total bytes of the enqueued objects
        messages: Number of messages published
        elapsed: Wall-clock time of the call
    """

    count: int = 0
    size: int = 0
    messages: int = 0
    elapsed: timedelta = timedelta(0)
