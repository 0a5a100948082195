"""
Enqueue: lists objects under URL prefixes and publishes load messages.

Objects are grouped into messages bounded by an object count and a total
object size, so one loader invocation handles a predictable amount of data.
"""

import time
from datetime import timedelta

from logferry.core.errors import ConfigurationError
from logferry.core.models import EnqueueRequest, EnqueueResponse, LoadMessage, ObjectAttrs
from logferry.messaging import MessageQueue
from logferry.observability.logger import get_logger
from logferry.storage import ObjectStore

logger = get_logger(__name__)

DEFAULT_COUNT_LIMIT = 128
DEFAULT_SIZE_LIMIT = 4 * 1024 * 1024


def parse_prefix_url(url: str) -> tuple[str, str, str]:
    """
    Split a prefix URL into (scheme, bucket, prefix).

    Raises:
        ConfigurationError: If the URL has no scheme or bucket
    """
    scheme, sep, rest = url.partition("://")
    if not sep or not scheme:
        raise ConfigurationError("object URL must have a scheme", url=url)
    bucket, _, prefix = rest.partition("/")
    if not bucket:
        raise ConfigurationError("object URL must contain a bucket", url=url)
    return scheme, bucket, prefix


class Enqueuer:
    """
    Publishes LoadMessages for every object under the requested prefixes.
    """

    def __init__(
        self,
        object_store: ObjectStore,
        queue: MessageQueue,
        count_limit: int = DEFAULT_COUNT_LIMIT,
        size_limit: int = DEFAULT_SIZE_LIMIT,
    ):
        """
        Initialize enqueuer.

        Args:
            object_store: Store listed for objects
            queue: Queue receiving the load messages
            count_limit: Maximum number of objects per message
            size_limit: Maximum total object bytes per message; a single
                larger object is sent alone
        """
        if count_limit < 1:
            raise ConfigurationError("count limit must be at least 1", count_limit=count_limit)
        if size_limit < 1:
            raise ConfigurationError("size limit must be at least 1", size_limit=size_limit)
        self.object_store = object_store
        self.queue = queue
        self.count_limit = count_limit
        self.size_limit = size_limit

    def enqueue(self, request: EnqueueRequest) -> EnqueueResponse:
        """
        List and publish every object under the request's URLs.

        Args:
            request: Prefix URLs

        Returns:
            EnqueueResponse with object count, total size and elapsed time
        """
        started = time.monotonic()
        response = EnqueueResponse()
        pending: list[str] = []
        pending_size = 0

        for url in request.urls:
            scheme, bucket, prefix = parse_prefix_url(url)
            for attrs in self.object_store.list(bucket, prefix):
                if pending and (
                    len(pending) >= self.count_limit or pending_size + attrs.size > self.size_limit
                ):
                    self._publish(pending, response)
                    pending, pending_size = [], 0

                pending.append(self._object_url(scheme, attrs))
                pending_size += attrs.size
                response.count += 1
                response.size += attrs.size

        if pending:
            self._publish(pending, response)

        response.elapsed = timedelta(seconds=time.monotonic() - started)
        logger.info(
            "Enqueue request is completed",
            extra={
                "object_count": response.count,
                "object_size": response.size,
                "message_count": response.messages,
                "elapsed": str(response.elapsed),
            },
        )
        return response

    def _publish(self, urls: list[str], response: EnqueueResponse) -> None:
        payload = LoadMessage(urls=urls).model_dump_json().encode("utf-8")
        message_id = self.queue.publish(payload)
        response.messages += 1
        logger.debug("Published load message", extra={"message_id": message_id, "object_count": len(urls)})

    @staticmethod
    def _object_url(scheme: str, attrs: ObjectAttrs) -> str:
        return f"{scheme}://{attrs.bucket}/{attrs.name}"
