"""S3ObjectStore: flat key store on an S3-compatible bucket via boto3."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, BinaryIO

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import ConflictError, StorageError
from ..types import DeleteFailure, FileKind, ObjectStat
from ..utils import PATH_SEPARATOR

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

MIN_PART_SIZE = 5 * 1024 * 1024  # 5MiB, the S3 multipart minimum
MAX_DELETE_BATCH = 1000

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
_PRECONDITION_CODES = frozenset({"412", "PreconditionFailed", "ConditionalRequestConflict"})


# =============================================================================
# Helpers
# =============================================================================


def error_code(error: ClientError) -> str:
    """The service error code of a ``ClientError`` (``""`` if absent)."""
    return str(error.response.get("Error", {}).get("Code", ""))


def is_not_found(error: ClientError) -> bool:
    return error_code(error) in _NOT_FOUND_CODES


def is_precondition_failed(error: ClientError) -> bool:
    return error_code(error) in _PRECONDITION_CODES


def stats_from_page(page: dict[str, Any]) -> list[ObjectStat]:
    """Convert one ``list_objects_v2`` page into driver stat records.

    ``Contents`` become ``SIMPLE_FILE`` entries and ``CommonPrefixes``
    become ``DIRECTORY`` entries (their keys keep the trailing ``/``).
    """
    stats = [
        ObjectStat(obj["Key"], FileKind.SIMPLE_FILE, int(obj.get("Size", 0)))
        for obj in page.get("Contents", [])
    ]
    stats.extend(
        ObjectStat(cp["Prefix"], FileKind.DIRECTORY, 0) for cp in page.get("CommonPrefixes", [])
    )
    return stats


def batched(keys: Iterable[str], size: int = MAX_DELETE_BATCH) -> Iterator[list[str]]:
    """Split *keys* into lists of at most *size* items."""
    batch: list[str] = []
    for key in keys:
        batch.append(key)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


def read_full(stream: BinaryIO, size: int) -> bytes:
    """Read up to *size* bytes, looping over short reads."""
    buf = bytearray()
    while len(buf) < size:
        chunk = stream.read(size - len(buf))
        if not chunk:
            break
        buf.extend(chunk)
    return bytes(buf)


# =============================================================================
# Driver
# =============================================================================


class S3ObjectStore:
    """Objects in one bucket.  boto3 clients are thread-safe, so is this store.

    Creation is conditional (``IfNoneMatch="*"``): the store refuses to
    overwrite an existing key even when two writers race.  Payloads
    larger than one part are uploaded with multipart upload.
    """

    def __init__(
        self,
        bucket: str,
        *,
        client: Any = None,
        endpoint_url: str | None = None,
        region_name: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        part_size: int = MIN_PART_SIZE,
    ) -> None:
        self.bucket = bucket
        self.min_chunk_size = max(part_size, MIN_PART_SIZE)
        if client is None:
            client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                region_name=region_name,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
            )
        self._client = client
        self._client.head_bucket(Bucket=bucket)
        logger.debug("Connected to bucket %s", bucket)

    def _fail(self, action: str, key: str, error: Exception) -> StorageError:
        return StorageError(f"Cannot {action} s3://{self.bucket}/{key}: {error}")

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def stat(self, key: str) -> ObjectStat | None:
        try:
            head = self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if is_not_found(e):
                return None
            raise self._fail("stat", key, e) from e
        except BotoCoreError as e:
            raise self._fail("stat", key, e) from e
        return ObjectStat(key, FileKind.SIMPLE_FILE, int(head.get("ContentLength", 0)))

    def list_children(self, prefix: str) -> list[ObjectStat]:
        paginator = self._client.get_paginator("list_objects_v2")
        stats: list[ObjectStat] = []
        try:
            for page in paginator.paginate(
                Bucket=self.bucket, Prefix=prefix, Delimiter=PATH_SEPARATOR
            ):
                stats.extend(stats_from_page(page))
        except (ClientError, BotoCoreError) as e:
            raise self._fail("list", prefix, e) from e
        return sorted(stats, key=lambda s: s.key)

    def iter_keys(self, prefix: str) -> Iterator[str]:
        paginator = self._client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    yield obj["Key"]
        except (ClientError, BotoCoreError) as e:
            raise self._fail("list", prefix, e) from e

    def open_read(self, key: str) -> BinaryIO:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._fail("read", key, e) from e
        return response["Body"]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create_and_write(self, key: str, stream: BinaryIO, chunk_size: int) -> int:
        part_size = max(chunk_size, self.min_chunk_size)
        first = read_full(stream, part_size)
        if len(first) < part_size:
            try:
                self._client.put_object(Bucket=self.bucket, Key=key, Body=first, IfNoneMatch="*")
            except ClientError as e:
                if is_precondition_failed(e):
                    raise ConflictError(f"Object already exists: {key}") from e
                raise self._fail("write", key, e) from e
            except BotoCoreError as e:
                raise self._fail("write", key, e) from e
            return len(first)
        return self._multipart_upload(key, first, stream, part_size)

    def _multipart_upload(self, key: str, first: bytes, stream: BinaryIO, part_size: int) -> int:
        try:
            upload_id = self._client.create_multipart_upload(Bucket=self.bucket, Key=key)["UploadId"]
        except (ClientError, BotoCoreError) as e:
            raise self._fail("write", key, e) from e
        parts = []
        total = 0
        chunk = first
        try:
            while chunk:
                number = len(parts) + 1
                response = self._client.upload_part(
                    Bucket=self.bucket,
                    Key=key,
                    UploadId=upload_id,
                    PartNumber=number,
                    Body=chunk,
                )
                parts.append({"ETag": response["ETag"], "PartNumber": number})
                total += len(chunk)
                chunk = read_full(stream, part_size)
            self._client.complete_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
                IfNoneMatch="*",
            )
        except Exception as e:
            try:
                self._client.abort_multipart_upload(Bucket=self.bucket, Key=key, UploadId=upload_id)
            except (ClientError, BotoCoreError):
                logger.warning("Failed to abort multipart upload of %s", key, exc_info=True)
            if isinstance(e, ClientError) and is_precondition_failed(e):
                raise ConflictError(f"Object already exists: {key}") from e
            if isinstance(e, (ClientError, BotoCoreError)):
                raise self._fail("write", key, e) from e
            raise
        logger.debug("Uploaded %s in %d part(s)", key, len(parts))
        return total

    def delete_one(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._fail("delete", key, e) from e

    def delete_many(self, keys: Iterable[str]) -> list[DeleteFailure]:
        failures: list[DeleteFailure] = []
        for batch in batched(keys):
            try:
                response = self._client.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                )
            except (ClientError, BotoCoreError) as e:
                failures.extend(DeleteFailure(k, str(e)) for k in batch)
                continue
            failures.extend(
                DeleteFailure(err.get("Key", ""), err.get("Message", err.get("Code", "")))
                for err in response.get("Errors", [])
            )
        return failures

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._client.close()
