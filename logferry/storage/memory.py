"""
In-memory object store for tests and dry runs.
"""

import hashlib
import io
from datetime import datetime, timezone
from typing import BinaryIO, Iterator

from logferry.core.errors import SourceDecodeError
from logferry.core.models import ObjectAttrs, ObjectRef


class MemoryObjectStore:
    """
    Object store keeping object bytes in a dictionary.

    Attributes:
        objects: Mapping of ObjectRef to (data, attrs)
        opened: Every object opened, in call order
    """

    def __init__(self) -> None:
        self.objects: dict[ObjectRef, tuple[bytes, ObjectAttrs]] = {}
        self.opened: list[ObjectRef] = []

    def put(
        self,
        bucket: str,
        name: str,
        data: bytes,
        content_type: str | None = None,
    ) -> ObjectRef:
        """Store an object and return its reference."""
        ref = ObjectRef(bucket=bucket, name=name)
        now = datetime.now(timezone.utc)
        previous = self.objects.get(ref)
        generation = int(previous[1].generation) + 1 if previous else 1
        attrs = ObjectAttrs(
            bucket=bucket,
            name=name,
            size=len(data),
            content_type=content_type,
            md5=hashlib.md5(data).hexdigest(),
            generation=str(generation),
            created=previous[1].created if previous else now,
            updated=now,
        )
        self.objects[ref] = (data, attrs)
        return ref

    def open(self, obj: ObjectRef) -> BinaryIO:
        self.opened.append(obj)
        if obj not in self.objects:
            raise SourceDecodeError("object not found", object=str(obj))
        return io.BytesIO(self.objects[obj][0])

    def attrs(self, obj: ObjectRef) -> ObjectAttrs:
        if obj not in self.objects:
            raise SourceDecodeError("object not found", object=str(obj))
        return self.objects[obj][1]

    def list(self, bucket: str, prefix: str = "") -> Iterator[ObjectAttrs]:
        for ref in sorted(self.objects, key=lambda r: r.name):
            if ref.bucket == bucket and ref.name.startswith(prefix):
                yield self.objects[ref][1]
