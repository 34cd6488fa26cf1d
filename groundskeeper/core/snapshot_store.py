"""Remote snapshot store — one gzip tarball per snapshot key.

Publishing overwrites whatever object already sits at the key (last
writer wins).  A missing object is reported as ``SnapshotNotFoundError`` so
callers can tell "no baseline yet" apart from a broken transport.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import IO, Any, Protocol, runtime_checkable

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from groundskeeper.models.policy import StorageOptions

logger = logging.getLogger(__name__)

S3_API_VERSION = "2006-03-01"
_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})


class SnapshotStoreError(RuntimeError):
    """Base error for snapshot store operations."""


class SnapshotNotFoundError(SnapshotStoreError):
    """Raised when no snapshot exists at the requested key."""


class SnapshotTransportError(SnapshotStoreError):
    """Raised when the object store cannot be read from or written to."""


@runtime_checkable
class SnapshotStore(Protocol):
    """Protocol every snapshot backend satisfies."""

    def open_read(self, key: str) -> IO[bytes]:
        """Open a readable stream over the snapshot at *key*."""
        ...

    def write(self, key: str, stream: IO[bytes], content_type: str) -> str:
        """Replace the object at *key* with *stream* and return its URI."""
        ...


# ---------------------------------------------------------------------------
# S3
# ---------------------------------------------------------------------------


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class _GuardedBody:
    """Wraps a botocore streaming body so read failures surface as transport errors."""

    def __init__(self, body: Any, uri: str) -> None:
        self._body = body
        self._uri = uri

    def read(self, size: int = -1) -> bytes:
        try:
            return self._body.read(None if size < 0 else size)
        except BotoCoreError as exc:
            raise SnapshotTransportError(
                f"failed reading snapshot {self._uri}: {exc}"
            ) from exc

    def close(self) -> None:
        self._body.close()


class S3SnapshotStore:
    """Snapshot store backed by an S3 bucket.

    Parameters
    ----------
    bucket:
        Name of the bucket holding snapshots.
    region:
        AWS region of the bucket.  ``None`` defers to the boto3 defaults.
    client:
        Pre-built S3 client, mainly for tests.
    """

    def __init__(
        self, bucket: str, region: str | None = None, *, client: Any = None
    ) -> None:
        self._bucket = bucket
        self._client = client or boto3.client(
            "s3", region_name=region, api_version=S3_API_VERSION
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    def uri(self, key: str) -> str:
        return f"s3://{self._bucket}/{key}"

    def open_read(self, key: str) -> IO[bytes]:
        uri = self.uri(key)
        logger.info("Fetching snapshot %s", uri)
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                raise SnapshotNotFoundError(f"no snapshot at {uri}") from exc
            raise SnapshotTransportError(
                f"failed to fetch snapshot {uri}: {exc}"
            ) from exc
        except BotoCoreError as exc:
            raise SnapshotTransportError(
                f"failed to fetch snapshot {uri}: {exc}"
            ) from exc
        return _GuardedBody(response["Body"], uri)  # type: ignore[return-value]

    def write(self, key: str, stream: IO[bytes], content_type: str) -> str:
        uri = self.uri(key)
        logger.info("Uploading snapshot %s", uri)
        try:
            self._client.upload_fileobj(
                stream,
                self._bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (ClientError, BotoCoreError, S3UploadFailedError) as exc:
            raise SnapshotTransportError(
                f"failed to upload snapshot {uri}: {exc}"
            ) from exc
        return uri


# ---------------------------------------------------------------------------
# Local directory
# ---------------------------------------------------------------------------


class LocalSnapshotStore:
    """Snapshot store backed by a local directory.

    Layout: {base_path}/{key}.  Writes go to a temporary sibling file that
    atomically replaces the previous snapshot.
    """

    def __init__(self, base_path: Path | str) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    def _object_path(self, key: str) -> Path:
        return self._base / key

    def uri(self, key: str) -> str:
        return self._object_path(key).resolve().as_uri()

    def exists(self, key: str) -> bool:
        return self._object_path(key).is_file()

    def open_read(self, key: str) -> IO[bytes]:
        path = self._object_path(key)
        if not path.is_file():
            raise SnapshotNotFoundError(f"no snapshot at {self.uri(key)}")
        logger.info("Reading snapshot %s", path)
        return path.open("rb")

    def write(self, key: str, stream: IO[bytes], content_type: str) -> str:
        path = self._object_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "wb") as handle:
                shutil.copyfileobj(stream, handle)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info("Wrote snapshot %s (%s)", path, content_type)
        return self.uri(key)


def store_for(storage: StorageOptions) -> S3SnapshotStore:
    """Build the S3 store described by *storage*."""
    return S3SnapshotStore(storage.bucket, storage.region)
