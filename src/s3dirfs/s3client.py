from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import ClientError
from s3dirfs.interfaces import IObjectStore
from s3dirfs.status import ListResult
from s3dirfs.status import ObjectSummary
from zope.interface import implementer

import base64
import boto3
import logging
import re


logger = logging.getLogger(__name__)

# S3 rejects single-request copies of objects above 5 GiB.
MULTIPART_COPY_THRESHOLD = 5 * 1024 * 1024 * 1024
MAX_DELETE_BATCH = 1000

_NOT_FOUND_CODES = frozenset(("404", "NoSuchKey", "NotFound"))
_PRECONDITION_CODES = frozenset(
    ("412", "PreconditionFailed", "ConditionalRequestConflict")
)


class S3OperationError(Exception):
    """Wraps boto3 ClientError to avoid leaking AWS infrastructure details."""


def _error_code(e):
    return e.response.get("Error", {}).get("Code", "Unknown")


@implementer(IObjectStore)
class S3Client:
    """Thin boto3 wrapper exposing the object store operations the
    filesystem layer needs: HEAD, paged LIST, PUT, ranged GET, COPY and
    single or batch DELETE.
    """

    def __init__(
        self,
        bucket_name,
        prefix="",
        endpoint_url=None,
        region_name=None,
        aws_access_key_id=None,
        aws_secret_access_key=None,
        use_ssl=True,
        addressing_style="auto",
        connect_timeout=60,
        read_timeout=60,
        sse_customer_key=None,
        list_version=2,
        upload_part_size=8 * 1024 * 1024,
        upload_threads=10,
    ):
        self.bucket_name = bucket_name
        self._prefix = prefix.rstrip("/") if prefix else ""

        if self._prefix:
            if not re.fullmatch(r"[a-zA-Z0-9._/-]*", self._prefix):
                raise ValueError(
                    f"s3-prefix contains invalid characters: {self._prefix!r}. "
                    "Only alphanumeric characters, dots, hyphens, underscores, "
                    "and slashes are allowed."
                )
            if ".." in self._prefix:
                raise ValueError(f"s3-prefix must not contain '..': {self._prefix!r}")

        if list_version not in (1, 2):
            raise ValueError(f"list-version must be 1 or 2, got {list_version!r}")
        self.list_version = list_version

        # SSE-C setup
        if sse_customer_key:
            if not use_ssl:
                raise ValueError("SSE-C requires SSL — set s3-use-ssl to true")
            raw_key = base64.b64decode(sse_customer_key)
            if len(raw_key) != 32:
                raise ValueError(
                    f"SSE-C key must be 32 bytes (256-bit), got {len(raw_key)}"
                )
            self._sse_extra_args = {
                "SSECustomerAlgorithm": "AES256",
                "SSECustomerKey": raw_key,
            }
            self._sse_copy_source_args = {
                "CopySourceSSECustomerAlgorithm": "AES256",
                "CopySourceSSECustomerKey": raw_key,
            }
        else:
            self._sse_extra_args = {}
            self._sse_copy_source_args = {}

        config = Config(
            s3={"addressing_style": addressing_style},
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
        )

        kwargs = {"config": config}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        if region_name:
            kwargs["region_name"] = region_name
        if aws_access_key_id:
            kwargs["aws_access_key_id"] = aws_access_key_id
        if aws_secret_access_key:
            kwargs["aws_secret_access_key"] = aws_secret_access_key
        kwargs["use_ssl"] = use_ssl
        if not use_ssl:
            logger.warning(
                "S3 SSL is disabled — data and credentials are transmitted in cleartext"
            )

        self._client = boto3.client("s3", **kwargs)
        self._transfer_config = TransferConfig(
            multipart_threshold=upload_part_size,
            multipart_chunksize=upload_part_size,
            max_concurrency=upload_threads,
        )

    def _full_key(self, s3_key):
        if self._prefix:
            return f"{self._prefix}/{s3_key}"
        return s3_key

    def _logical_key(self, full_key):
        if self._prefix:
            return full_key[len(self._prefix) + 1 :]
        return full_key

    def _wrap_client_error(self, e, operation, s3_key):
        """Wrap ClientError in a generic error, logging the original at DEBUG."""
        logger.debug("S3 %s failed for key=%s: %s", operation, s3_key, e)
        raise S3OperationError(
            f"S3 {operation} failed for key={s3_key}: {_error_code(e)}"
        ) from e

    def head_object(self, s3_key):
        full_key = self._full_key(s3_key)
        try:
            return self._client.head_object(
                Bucket=self.bucket_name, Key=full_key, **self._sse_extra_args
            )
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return None
            self._wrap_client_error(e, "head", s3_key)

    def list_objects(
        self, prefix="", delimiter=None, max_keys=1000, continuation_token=None
    ):
        """Fetch one LIST page under ``prefix``.

        ``continuation_token`` is whatever the previous page returned; its
        meaning depends on the list API version and callers treat it as
        opaque.
        """
        kwargs = {
            "Bucket": self.bucket_name,
            "Prefix": self._full_key(prefix),
            "MaxKeys": max_keys,
        }
        if delimiter:
            kwargs["Delimiter"] = delimiter
        try:
            if self.list_version == 2:
                if continuation_token:
                    kwargs["ContinuationToken"] = continuation_token
                response = self._client.list_objects_v2(**kwargs)
            else:
                if continuation_token:
                    kwargs["Marker"] = continuation_token
                response = self._client.list_objects(**kwargs)
        except ClientError as e:
            self._wrap_client_error(e, "list", prefix)

        summaries = [
            ObjectSummary(
                self._logical_key(obj["Key"]),
                obj.get("Size", 0),
                obj.get("LastModified"),
            )
            for obj in response.get("Contents", [])
        ]
        prefixes = [
            self._logical_key(cp["Prefix"])
            for cp in response.get("CommonPrefixes", [])
        ]
        is_truncated = response.get("IsTruncated", False)
        if self.list_version == 2:
            token = response.get("NextContinuationToken")
        else:
            # NextMarker is only sent when a delimiter was given.
            token = response.get("NextMarker")
            if token is None and is_truncated:
                raw = [obj["Key"] for obj in response.get("Contents", [])]
                raw.extend(cp["Prefix"] for cp in response.get("CommonPrefixes", []))
                token = max(raw) if raw else None
        return ListResult(summaries, prefixes, is_truncated, token)

    def put_object(self, s3_key, body=b""):
        full_key = self._full_key(s3_key)
        try:
            self._client.put_object(
                Bucket=self.bucket_name, Key=full_key, Body=body, **self._sse_extra_args
            )
        except ClientError as e:
            self._wrap_client_error(e, "put", s3_key)

    def store_empty_file(self, s3_key):
        self.put_object(s3_key, b"")

    def store_empty_file_if_absent(self, s3_key):
        """Write a zero-byte object unless the key exists already.

        The existence check is done by the server (``If-None-Match: *``).
        Returns True if the object was written.
        """
        full_key = self._full_key(s3_key)
        try:
            self._client.put_object(
                Bucket=self.bucket_name,
                Key=full_key,
                Body=b"",
                IfNoneMatch="*",
                **self._sse_extra_args,
            )
        except ClientError as e:
            if _error_code(e) in _PRECONDITION_CODES:
                logger.debug("Object %s already exists, not overwritten", s3_key)
                return False
            self._wrap_client_error(e, "conditional put", s3_key)
        return True

    def upload_fileobj(self, fileobj, s3_key):
        full_key = self._full_key(s3_key)
        try:
            self._client.upload_fileobj(
                fileobj,
                self.bucket_name,
                full_key,
                ExtraArgs=self._sse_extra_args or None,
                Config=self._transfer_config,
            )
        except ClientError as e:
            self._wrap_client_error(e, "upload", s3_key)

    def get_object_range(self, s3_key, start, end):
        """Return bytes ``start`` to ``end`` (both inclusive) of an object."""
        full_key = self._full_key(s3_key)
        try:
            response = self._client.get_object(
                Bucket=self.bucket_name,
                Key=full_key,
                Range=f"bytes={start}-{end}",
                **self._sse_extra_args,
            )
        except ClientError as e:
            if _error_code(e) == "InvalidRange":
                return b""
            self._wrap_client_error(e, "get", s3_key)
        body = response["Body"]
        try:
            return body.read()
        finally:
            body.close()

    def copy_object(self, src_key, dst_key, size=None):
        """Server-side copy; objects above 5 GiB use a multipart copy."""
        copy_source = {"Bucket": self.bucket_name, "Key": self._full_key(src_key)}
        full_dst = self._full_key(dst_key)
        try:
            if size is not None and size > MULTIPART_COPY_THRESHOLD:
                extra = dict(self._sse_extra_args)
                extra.update(self._sse_copy_source_args)
                self._client.copy(
                    copy_source,
                    self.bucket_name,
                    full_dst,
                    ExtraArgs=extra or None,
                    Config=self._transfer_config,
                )
            else:
                self._client.copy_object(
                    Bucket=self.bucket_name,
                    Key=full_dst,
                    CopySource=copy_source,
                    **self._sse_extra_args,
                    **self._sse_copy_source_args,
                )
        except ClientError as e:
            self._wrap_client_error(e, "copy", f"{src_key} -> {dst_key}")

    def delete_object(self, s3_key):
        full_key = self._full_key(s3_key)
        try:
            self._client.delete_object(Bucket=self.bucket_name, Key=full_key)
        except ClientError as e:
            self._wrap_client_error(e, "delete", s3_key)

    def delete_objects(self, s3_keys):
        """Batch delete; returns the keys that were removed."""
        s3_keys = list(s3_keys)
        deleted = []
        for i in range(0, len(s3_keys), MAX_DELETE_BATCH):
            batch = s3_keys[i : i + MAX_DELETE_BATCH]
            try:
                response = self._client.delete_objects(
                    Bucket=self.bucket_name,
                    Delete={
                        "Objects": [{"Key": self._full_key(k)} for k in batch],
                        "Quiet": True,
                    },
                )
            except ClientError as e:
                self._wrap_client_error(e, "batch delete", batch[0])
            errors = response.get("Errors", [])
            if errors:
                for error in errors:
                    logger.debug(
                        "S3 batch delete failed for key=%s: %s",
                        error.get("Key"),
                        error.get("Code"),
                    )
                raise S3OperationError(
                    f"S3 batch delete failed for {len(errors)} of {len(batch)} "
                    f"keys: {errors[0].get('Code', 'Unknown')}"
                )
            deleted.extend(batch)
        return deleted
