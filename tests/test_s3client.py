import io
from unittest import mock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws
from zope.interface.verify import verifyObject

from s3dirfs.interfaces import IObjectStore
from s3dirfs.s3client import S3Client, S3OperationError


@pytest.fixture
def s3_env():
    with mock_aws():
        boto3.client("s3", region_name="us-east-1").create_bucket(Bucket="test-bucket")
        yield


@pytest.fixture
def client(s3_env):
    return S3Client(bucket_name="test-bucket", region_name="us-east-1")


@pytest.fixture
def v1_client(s3_env):
    return S3Client(bucket_name="test-bucket", region_name="us-east-1", list_version=1)


@pytest.fixture
def prefixed_client(s3_env):
    return S3Client(
        bucket_name="test-bucket", prefix="myprefix", region_name="us-east-1"
    )


class TestS3ClientInterface:
    def test_interface_provided(self, client):
        assert IObjectStore.providedBy(client)

    def test_interface_verified(self, client):
        assert verifyObject(IObjectStore, client)
        assert client.bucket_name == "test-bucket"


class TestValidation:
    def test_invalid_prefix_characters(self, s3_env):
        with pytest.raises(ValueError, match="invalid characters"):
            S3Client(bucket_name="test-bucket", prefix="bad prefix!")

    def test_prefix_with_dotdot(self, s3_env):
        with pytest.raises(ValueError, match=r"\.\."):
            S3Client(bucket_name="test-bucket", prefix="a/../b")

    def test_invalid_list_version(self, s3_env):
        with pytest.raises(ValueError, match="list-version"):
            S3Client(bucket_name="test-bucket", list_version=3)

    def test_sse_c_requires_ssl(self, s3_env):
        with pytest.raises(ValueError, match="SSL"):
            S3Client(
                bucket_name="test-bucket",
                use_ssl=False,
                sse_customer_key="AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA=",
            )

    def test_sse_c_key_length(self, s3_env):
        with pytest.raises(ValueError, match="32 bytes"):
            S3Client(bucket_name="test-bucket", sse_customer_key="AAAA")


class TestHeadObject:
    def test_head_object_exists(self, client):
        client.put_object("head/key.txt", b"head test")

        result = client.head_object("head/key.txt")
        assert result is not None
        assert result["ContentLength"] == 9
        assert "LastModified" in result

    def test_head_object_missing(self, client):
        assert client.head_object("missing/key.txt") is None

    def test_head_does_not_see_marker_as_file(self, client):
        client.store_empty_file("dir/")
        assert client.head_object("dir") is None
        assert client.head_object("dir/")["ContentLength"] == 0


class TestListObjects:
    def test_list_with_delimiter(self, client):
        client.put_object("list/a.txt", b"a")
        client.put_object("list/sub/b.txt", b"b")
        client.store_empty_file("list/")

        result = client.list_objects("list/", delimiter="/")
        assert sorted(s.key for s in result.object_summaries) == [
            "list/",
            "list/a.txt",
        ]
        assert result.common_prefixes == ["list/sub/"]
        assert not result.is_truncated

    def test_list_without_delimiter(self, client):
        client.put_object("list/a.txt", b"a")
        client.put_object("list/sub/b.txt", b"bb")

        result = client.list_objects("list/")
        sizes = {s.key: s.size for s in result.object_summaries}
        assert sizes == {"list/a.txt": 1, "list/sub/b.txt": 2}
        assert result.common_prefixes == []

    def test_list_empty(self, client):
        result = client.list_objects("nonexistent/", delimiter="/")
        assert len(result) == 0
        assert not result.is_truncated

    def test_pagination_v2(self, client):
        for i in range(5):
            client.put_object(f"page/{i}.txt", b"x")

        first = client.list_objects("page/", max_keys=2)
        assert len(first) == 2
        assert first.is_truncated
        assert first.continuation_token

        keys = [s.key for s in first.object_summaries]
        token = first.continuation_token
        while token:
            page = client.list_objects("page/", max_keys=2, continuation_token=token)
            keys.extend(s.key for s in page.object_summaries)
            token = page.continuation_token if page.is_truncated else None
        assert keys == [f"page/{i}.txt" for i in range(5)]

    def test_pagination_v1(self, v1_client):
        for i in range(5):
            v1_client.put_object(f"page/{i}.txt", b"x")

        keys = []
        token = None
        while True:
            page = v1_client.list_objects("page/", max_keys=2, continuation_token=token)
            keys.extend(s.key for s in page.object_summaries)
            if not page.is_truncated:
                break
            token = page.continuation_token
        assert keys == [f"page/{i}.txt" for i in range(5)]


class TestPutAndCopy:
    def test_store_empty_file(self, client):
        client.store_empty_file("empty/")
        assert client.head_object("empty/")["ContentLength"] == 0

    def test_upload_fileobj_and_ranged_get(self, client):
        client.upload_fileobj(io.BytesIO(b"0123456789"), "up/file.bin")

        assert client.head_object("up/file.bin")["ContentLength"] == 10
        assert client.get_object_range("up/file.bin", 2, 5) == b"2345"

    def test_copy_object(self, client):
        client.put_object("copy/src.txt", b"copy me")

        client.copy_object("copy/src.txt", "copy/dst.txt", size=7)

        assert client.get_object_range("copy/dst.txt", 0, 6) == b"copy me"
        assert client.head_object("copy/src.txt") is not None

    def test_copy_missing_source_raises(self, client):
        with pytest.raises(S3OperationError):
            client.copy_object("copy/missing.txt", "copy/dst.txt")

    def test_store_empty_file_if_absent_handles_precondition_failure(self, client):
        error = ClientError(
            {"Error": {"Code": "PreconditionFailed", "Message": "exists"}},
            "PutObject",
        )
        with mock.patch.object(client._client, "put_object", side_effect=error):
            assert client.store_empty_file_if_absent("dir/") is False

    def test_store_empty_file_if_absent_writes(self, client):
        with mock.patch.object(client._client, "put_object") as put:
            assert client.store_empty_file_if_absent("dir/") is True
        assert put.call_args.kwargs["IfNoneMatch"] == "*"
        assert put.call_args.kwargs["Key"] == "dir/"


class TestDeleteObject:
    def test_delete_object(self, client):
        client.put_object("del/key.txt", b"delete me")

        client.delete_object("del/key.txt")
        assert client.head_object("del/key.txt") is None

    def test_delete_nonexistent_does_not_raise(self, client):
        client.delete_object("nonexistent/key.txt")

    def test_delete_objects_batch(self, client):
        for i in range(3):
            client.put_object(f"batch/{i}.txt", b"x")

        deleted = client.delete_objects([f"batch/{i}.txt" for i in range(3)])

        assert sorted(deleted) == [f"batch/{i}.txt" for i in range(3)]
        assert len(client.list_objects("batch/")) == 0

    def test_delete_objects_empty(self, client):
        assert client.delete_objects([]) == []

    def test_delete_objects_reports_errors(self, client):
        response = {"Errors": [{"Key": "a", "Code": "AccessDenied"}]}
        with mock.patch.object(client._client, "delete_objects", return_value=response):
            with pytest.raises(S3OperationError, match="AccessDenied"):
                client.delete_objects(["a", "b"])


class TestPrefix:
    def test_prefix_applied_to_put(self, prefixed_client):
        prefixed_client.put_object("dir/file.txt", b"prefixed data")

        s3 = boto3.client("s3", region_name="us-east-1")
        resp = s3.list_objects_v2(Bucket="test-bucket", Prefix="myprefix/")
        keys = [obj["Key"] for obj in resp.get("Contents", [])]
        assert keys == ["myprefix/dir/file.txt"]

    def test_prefix_stripped_from_list(self, prefixed_client):
        prefixed_client.put_object("dir/a.txt", b"a")
        prefixed_client.put_object("dir/sub/b.txt", b"b")

        result = prefixed_client.list_objects("dir/", delimiter="/")
        assert [s.key for s in result.object_summaries] == ["dir/a.txt"]
        assert result.common_prefixes == ["dir/sub/"]

    def test_root_listing_stays_inside_prefix(self, s3_env, prefixed_client):
        s3 = boto3.client("s3", region_name="us-east-1")
        s3.put_object(Bucket="test-bucket", Key="myprefixother/x.txt", Body=b"x")
        prefixed_client.put_object("x.txt", b"x")

        result = prefixed_client.list_objects("", delimiter="/")
        assert [s.key for s in result.object_summaries] == ["x.txt"]
        assert result.common_prefixes == []

    def test_prefix_isolation(self, s3_env):
        """Two clients with different prefixes don't see each other's data."""
        client_a = S3Client(
            bucket_name="test-bucket", prefix="ns_a", region_name="us-east-1"
        )
        client_b = S3Client(
            bucket_name="test-bucket", prefix="ns_b", region_name="us-east-1"
        )

        client_a.put_object("key.txt", b"isolation test")

        assert client_a.head_object("key.txt") is not None
        assert client_b.head_object("key.txt") is None
