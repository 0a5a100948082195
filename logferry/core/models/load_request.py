"""
Models describing what to load: object references, source descriptors
and load requests.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from logferry.core.errors import ConfigurationError

JSON_PARSER = "json"

NO_COMPRESSION = "none"
GZIP_COMPRESSION = "gzip"


class ObjectRef(BaseModel):
    """
    Location of one object in object storage.

    Attributes:
        bucket: Bucket (or top-level container) name
        name: Object name within the bucket
    """

    bucket: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)

    class Config:
        frozen = True

    @classmethod
    def from_url(cls, url: str) -> "ObjectRef":
        """
        Parse an object URL of the form <scheme>://<bucket>/<name>.

        Args:
            url: Object URL such as s3://bucket/path/to/object.json.gz

        Returns:
            ObjectRef for the URL

        Raises:
            ConfigurationError: If the URL is not an object URL
        """
        scheme, sep, rest = url.partition("://")
        if not sep or not scheme:
            raise ConfigurationError("object URL must have a scheme", url=url)

        bucket, _, name = rest.partition("/")
        if not bucket or not name:
            raise ConfigurationError("object URL must contain bucket and object name", url=url)

        return cls(bucket=bucket, name=name)

    def __str__(self) -> str:
        return f"{self.bucket}/{self.name}"


class SourceDescriptor(BaseModel):
    """
    How to interpret one raw object.

    Attributes:
        parser: Parser kind (only "json" is understood by the importer)
        schema_name: Policy schema used to transform raw records
        compress: Compression kind ("none" or "gzip")
    """

    parser: str = JSON_PARSER
    schema_name: str = Field(..., min_length=1, alias="schema")
    compress: str = NO_COMPRESSION

    class Config:
        frozen = True
        populate_by_name = True

    def schema_query(self) -> str:
        """Policy query path evaluated for every raw record of this source."""
        return f"data.schema.{self.schema_name}"


class LoadRequest(BaseModel):
    """One object to import, together with how to read it."""

    object: ObjectRef
    source: SourceDescriptor


class ObjectAttrs(BaseModel):
    """
    Attributes of a stored object as reported by the object store.

    Attributes:
        bucket: Bucket name
        name: Object name
        size: Object size in bytes
        content_type: MIME content type, if known
        md5: Hex encoded MD5 checksum, if known
        etag: Storage etag, if known
        generation: Object generation/version, if known
        created: Creation time, if known
        updated: Last update time, if known
    """

    bucket: str
    name: str
    size: int = Field(0, ge=0)
    content_type: str | None = None
    md5: str | None = None
    etag: str | None = None
    generation: str | None = None
    created: datetime | None = None
    updated: datetime | None = None

    def ref(self) -> ObjectRef:
        return ObjectRef(bucket=self.bucket, name=self.name)

    def to_event(self) -> dict:
        """Object event mapping handed to the source selection policy."""
        event = self.model_dump(mode="json")
        event["kind"] = "storage#object"
        return event


class LoadMessage(BaseModel):
    """Queue message asking a loader to import a group of objects."""

    urls: list[str] = Field(..., min_length=1)
