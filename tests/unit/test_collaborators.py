"""
Unit tests for object store, policy and message queue variants.
"""

import io
import json

import pytest
from botocore.exceptions import ClientError

from logferry.core.errors import PolicyError, SourceDecodeError
from logferry.core.models import ObjectRef
from logferry.messaging import DumpQueue, MemoryQueue
from logferry.policy import CallablePolicy, StaticPolicy
from logferry.storage import LocalObjectStore, MemoryObjectStore, S3ObjectStore, create_s3_client


def not_found(operation: str) -> ClientError:
    return ClientError({"Error": {"Code": "NoSuchKey", "Message": "Not Found"}}, operation)


class FakeS3Client:
    """Minimal stand-in for the boto3 S3 client calls the store makes."""

    def __init__(self, objects: dict[str, bytes]):
        self.objects = objects

    def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise not_found("GetObject")
        return {"Body": io.BytesIO(self.objects[Key])}

    def head_object(self, Bucket, Key):
        if Key not in self.objects:
            raise not_found("HeadObject")
        return {"ContentLength": len(self.objects[Key]), "ETag": '"abc123"', "ContentType": "application/json"}

    def get_paginator(self, operation):
        objects = self.objects

        class Paginator:
            def paginate(self, Bucket, Prefix):
                keys = sorted(k for k in objects if k.startswith(Prefix))
                yield {"Contents": [{"Key": k, "Size": len(objects[k]), "ETag": '"e"'} for k in keys[:1]]}
                yield {"Contents": [{"Key": k, "Size": len(objects[k]), "ETag": '"e"'} for k in keys[1:]]}

        return Paginator()


@pytest.mark.unit
class TestMemoryObjectStore:
    """Tests for MemoryObjectStore"""

    def test_put_open_attrs(self):
        store = MemoryObjectStore()
        ref = store.put("b", "logs/a.json", b"{}", "application/json")

        assert store.open(ref).read() == b"{}"
        attrs = store.attrs(ref)
        assert attrs.size == 2
        assert attrs.generation == "1"

        store.put("b", "logs/a.json", b"{} ")
        assert store.attrs(ref).generation == "2"
        assert store.attrs(ref).created == attrs.created

    def test_list_prefix(self):
        store = MemoryObjectStore()
        store.put("b", "logs/2.json", b"2")
        store.put("b", "logs/1.json", b"1")
        store.put("b", "other/3.json", b"3")
        store.put("c", "logs/4.json", b"4")

        assert [a.name for a in store.list("b", "logs/")] == ["logs/1.json", "logs/2.json"]

    def test_missing(self):
        with pytest.raises(SourceDecodeError):
            MemoryObjectStore().attrs(ObjectRef(bucket="b", name="missing"))


@pytest.mark.unit
class TestLocalObjectStore:
    """Tests for LocalObjectStore"""

    def test_read_and_list(self, tmp_path):
        (tmp_path / "bucket" / "logs").mkdir(parents=True)
        (tmp_path / "bucket" / "logs" / "a.json").write_bytes(b'{"n": 1}')
        (tmp_path / "bucket" / "readme.txt").write_text("x")
        store = LocalObjectStore(tmp_path)

        ref = ObjectRef(bucket="bucket", name="logs/a.json")
        with store.open(ref) as f:
            assert f.read() == b'{"n": 1}'
        assert store.attrs(ref).size == 8
        assert store.attrs(ref).content_type == "application/json"
        assert [a.name for a in store.list("bucket", "logs/")] == ["logs/a.json"]
        assert list(store.list("missing-bucket")) == []

    def test_path_escape(self, tmp_path):
        (tmp_path / "bucket").mkdir()
        store = LocalObjectStore(tmp_path)
        with pytest.raises(SourceDecodeError):
            store.open(ObjectRef(bucket="bucket", name="../secret"))


@pytest.mark.unit
class TestS3ObjectStore:
    """Tests for S3ObjectStore with a fake client"""

    def test_open_attrs_list(self):
        store = S3ObjectStore(FakeS3Client({"logs/a.json": b"{}", "logs/b.json": b"[]", "x.json": b"1"}))

        ref = ObjectRef(bucket="b", name="logs/a.json")
        assert store.open(ref).read() == b"{}"
        attrs = store.attrs(ref)
        assert attrs.etag == "abc123"
        assert attrs.md5 == "abc123"
        assert [a.name for a in store.list("b", "logs/")] == ["logs/a.json", "logs/b.json"]

    def test_missing_object(self):
        store = S3ObjectStore(FakeS3Client({}))
        with pytest.raises(SourceDecodeError):
            store.open(ObjectRef(bucket="b", name="missing"))
        with pytest.raises(SourceDecodeError):
            store.attrs(ObjectRef(bucket="b", name="missing"))

    def test_create_client_with_region(self):
        client = create_s3_client(region="eu-west-1")
        assert client.meta.region_name == "eu-west-1"


@pytest.mark.unit
class TestPolicies:
    """Tests for CallablePolicy and StaticPolicy"""

    def test_dispatch_by_path(self):
        policy = CallablePolicy()
        policy.register("data.schema.example", lambda raw: {"logs": [raw]})
        assert policy.query("data.schema.example", {"n": 1}) == {"logs": [{"n": 1}]}
        assert policy.query("data.schema.unknown", {"n": 1}) == {}

    def test_none_result_is_empty(self):
        assert CallablePolicy({"p": lambda raw: None}).query("p", 1) == {}

    def test_non_mapping_result(self):
        with pytest.raises(PolicyError):
            CallablePolicy({"p": lambda raw: ["x"]}).query("p", 1)

    def test_static_policy_records_calls(self):
        policy = StaticPolicy({"p": {"logs": []}})
        assert policy.query("p", {"n": 1}) == {"logs": []}
        assert policy.query("q", None) == {}
        assert policy.calls == [("p", {"n": 1}), ("q", None)]


@pytest.mark.unit
class TestQueues:
    """Tests for MemoryQueue and DumpQueue"""

    def test_memory_queue(self):
        queue = MemoryQueue()
        first = queue.publish(b"a")
        second = queue.publish(b"b")
        assert first != second
        assert queue.payloads() == [b"a", b"b"]

    def test_dump_queue(self, tmp_path):
        queue = DumpQueue(tmp_path / "out")
        message_id = queue.publish(json.dumps({"urls": ["s3://b/o"]}).encode())
        path = tmp_path / "out" / f"{message_id}.json"
        assert json.loads(path.read_text()) == {"urls": ["s3://b/o"]}
