"""
Filesystem backed object store.

Buckets are directories under a root directory and object names are
relative paths inside them.
"""

import hashlib
import mimetypes
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterator

from logferry.core.errors import SourceDecodeError
from logferry.core.models import ObjectAttrs, ObjectRef


class LocalObjectStore:
    """Object store reading files from ``<root>/<bucket>/<name>``."""

    def __init__(self, root: str | Path):
        """
        Initialize local object store.

        Args:
            root: Directory containing one subdirectory per bucket
        """
        self.root = Path(root)

    def _path(self, obj: ObjectRef) -> Path:
        bucket_dir = (self.root / obj.bucket).resolve()
        path = (bucket_dir / obj.name).resolve()
        if bucket_dir not in path.parents:
            raise SourceDecodeError("object name escapes bucket directory", object=str(obj))
        return path

    def open(self, obj: ObjectRef) -> BinaryIO:
        path = self._path(obj)
        try:
            return open(path, "rb")
        except OSError as e:
            raise SourceDecodeError(f"failed to open object: {e}", object=str(obj)) from e

    def attrs(self, obj: ObjectRef) -> ObjectAttrs:
        path = self._path(obj)
        try:
            stat = path.stat()
            digest = hashlib.md5(path.read_bytes()).hexdigest()
        except OSError as e:
            raise SourceDecodeError(f"failed to stat object: {e}", object=str(obj)) from e

        return ObjectAttrs(
            bucket=obj.bucket,
            name=obj.name,
            size=stat.st_size,
            content_type=mimetypes.guess_type(path.name)[0],
            md5=digest,
            generation=str(stat.st_mtime_ns),
            created=datetime.fromtimestamp(stat.st_ctime, tz=timezone.utc),
            updated=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    def list(self, bucket: str, prefix: str = "") -> Iterator[ObjectAttrs]:
        bucket_dir = self.root / bucket
        if not bucket_dir.is_dir():
            return
        for path in sorted(bucket_dir.rglob("*")):
            if not path.is_file():
                continue
            name = path.relative_to(bucket_dir).as_posix()
            if name.startswith(prefix):
                yield self.attrs(ObjectRef(bucket=bucket, name=name))
