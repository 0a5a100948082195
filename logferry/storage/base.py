"""
Object store capability.
"""

from typing import BinaryIO, Iterator, Protocol

from logferry.core.models import ObjectAttrs, ObjectRef


class ObjectStore(Protocol):
    """
    Read access to object storage.

    Implementations raise SourceDecodeError when an object is missing
    or unreadable.
    """

    def open(self, obj: ObjectRef) -> BinaryIO:
        """Open the object for reading; the caller closes the stream."""
        ...

    def attrs(self, obj: ObjectRef) -> ObjectAttrs:
        """Return size, content type, checksum, timestamps and generation."""
        ...

    def list(self, bucket: str, prefix: str = "") -> Iterator[ObjectAttrs]:
        """Iterate over objects of a bucket whose names start with prefix."""
        ...
