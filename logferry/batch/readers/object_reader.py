"""
Object reader: downloads, decompresses and decodes one source object.
"""

import gzip
import json
import re
import zlib
from typing import Any, BinaryIO, Callable

from logferry.core.errors import ConfigurationError, SourceDecodeError
from logferry.core.models import GZIP_COMPRESSION, JSON_PARSER, NO_COMPRESSION, LoadRequest
from logferry.storage import ObjectStore

_WHITESPACE = re.compile(r"\s*")


def decode_json_stream(text: str) -> list[Any]:
    """
    Decode a sequence of concatenated JSON values.

    Values may be separated by any whitespace (JSON lines, pretty printed
    documents one after another, or a single document).

    Args:
        text: Object content

    Returns:
        Decoded values in stream order

    Raises:
        SourceDecodeError: On the first malformed value
    """
    decoder = json.JSONDecoder()
    records = []
    pos = _WHITESPACE.match(text, 0).end()
    while pos < len(text):
        try:
            value, pos = decoder.raw_decode(text, pos)
        except json.JSONDecodeError as e:
            raise SourceDecodeError(
                f"failed to decode JSON: {e.msg}", line=e.lineno, column=e.colno, decoded=len(records)
            ) from e
        records.append(value)
        pos = _WHITESPACE.match(text, pos).end()
    return records


def _gunzip(stream: BinaryIO) -> bytes:
    with gzip.GzipFile(fileobj=stream) as f:
        return f.read()


DECOMPRESSORS: dict[str, Callable[[BinaryIO], bytes]] = {
    NO_COMPRESSION: lambda stream: stream.read(),
    GZIP_COMPRESSION: _gunzip,
}

PARSERS: dict[str, Callable[[str], list[Any]]] = {
    JSON_PARSER: decode_json_stream,
}


class ObjectReader:
    """
    Reader for source objects in multiple compression and parser kinds.
    """

    def __init__(self, object_store: ObjectStore):
        """
        Initialize object reader.

        Args:
            object_store: Store the objects are read from
        """
        self.object_store = object_store

    def read(self, request: LoadRequest) -> list[Any]:
        """
        Read every raw record of the requested object.

        Args:
            request: Load request naming the object and its descriptor

        Returns:
            Raw records in object order

        Raises:
            ConfigurationError: If the compression or parser kind is unsupported
            SourceDecodeError: If the object cannot be read or decoded
        """
        source = request.source
        decompress = DECOMPRESSORS.get(source.compress)
        if decompress is None:
            raise ConfigurationError("unsupported compression", compress=source.compress)
        parse = PARSERS.get(source.parser)
        if parse is None:
            raise ConfigurationError("unsupported parser", parser=source.parser)

        stream = self.object_store.open(request.object)
        try:
            raw = decompress(stream)
        except (OSError, EOFError, zlib.error) as e:
            raise SourceDecodeError(
                f"failed to read object: {e}", object=str(request.object), compress=source.compress
            ) from e
        finally:
            stream.close()

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SourceDecodeError(f"object is not UTF-8: {e}", object=str(request.object)) from e

        return parse(text)
