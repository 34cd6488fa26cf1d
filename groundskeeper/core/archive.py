"""Archive codec — gzip-compressed tar snapshots of artifact files.

Every member lives under the ``artifacts/`` namespace so that extraction
never collides with anything else in the destination directory.  Owner
metadata is normalised away when archiving.

Both directions stream: archiving produces bytes through an OS pipe fed by
a producer thread, and extraction consumes the source incrementally.
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import threading
import zlib
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import IO, Any

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "artifacts"
CONTENT_TYPE = "application/gzip"


class ArchiveError(RuntimeError):
    """Raised when a snapshot archive cannot be produced or consumed."""


class ArchiveDecodeError(ArchiveError):
    """Raised when the archive stream is not a readable gzip tarball."""


class UnsafeArchiveEntryError(ArchiveError):
    """Raised for entries that would land outside the destination directory."""


# ---------------------------------------------------------------------------
# Archiving
# ---------------------------------------------------------------------------


def _normalize_owner(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.uid = 0
    info.gid = 0
    info.uname = ""
    info.gname = ""
    return info


def write_archive(
    files: Iterable[str], fileobj: IO[bytes], *, root: Path | str = "."
) -> int:
    """Write a gzip tarball of *files* (relative to *root*) into *fileobj*.

    Links are followed, so every member is a regular file.  Returns the
    number of members written.
    """
    base = Path(root)
    count = 0
    with tarfile.open(fileobj=fileobj, mode="w|gz", dereference=True) as tar:
        for path in files:
            tar.add(
                base / path,
                arcname=f"{ARCHIVE_PREFIX}/{path}",
                recursive=False,
                filter=_normalize_owner,
            )
            count += 1
    return count


class ArchiveStream:
    """Readable end of an archive pipe.

    Reaching end-of-stream re-raises any failure of the producer, so a
    consumer can never mistake a truncated archive for a complete one.
    """

    def __init__(
        self,
        reader: IO[bytes],
        producer: threading.Thread,
        errors: list[BaseException],
    ) -> None:
        self._reader = reader
        self._producer = producer
        self._errors = errors

    def read(self, size: int = -1) -> bytes:
        data = self._reader.read(size)
        if not data and size != 0:
            self._producer.join()
            self._raise_producer_error()
        return data

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def close(self) -> None:
        self._reader.close()

    @property
    def closed(self) -> bool:
        return self._reader.closed

    def _raise_producer_error(self) -> None:
        if self._errors:
            raise ArchiveError(
                f"failed to build artifact archive: {self._errors[0]}"
            ) from self._errors[0]


@contextmanager
def open_archive_stream(
    files: Iterable[str], *, root: Path | str = "."
) -> Iterator[ArchiveStream]:
    """Yield a readable stream of the gzip tarball for *files*.

    The archive is produced incrementally, so the whole snapshot is never
    held in memory.  Leaving the context early stops the producer.
    """
    paths = list(files)
    read_fd, write_fd = os.pipe()
    reader = os.fdopen(read_fd, "rb")
    writer = os.fdopen(write_fd, "wb")
    errors: list[BaseException] = []

    def _produce() -> None:
        try:
            with writer:
                count = write_archive(paths, writer, root=root)
            logger.debug("Archived %d file(s)", count)
        except BrokenPipeError:
            logger.debug("Archive consumer closed the stream early")
        except Exception as exc:
            errors.append(exc)

    producer = threading.Thread(
        target=_produce, name="groundskeeper-archive", daemon=True
    )
    producer.start()
    stream = ArchiveStream(reader, producer, errors)
    try:
        yield stream
    finally:
        stream.close()
        producer.join()
    stream._raise_producer_error()


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


class ExtractionState(str, Enum):
    """Lifecycle of one extraction."""

    RUNNING = "running"
    INTERRUPTED = "interrupted"


class ExtractionController:
    """Two-state interrupt guard for one extraction.

    The first ``interrupt`` records its error and closes the source stream.
    Any interrupt after that is ignored, whatever its origin.
    """

    def __init__(self, source: Any) -> None:
        self._source = source
        self.state = ExtractionState.RUNNING
        self.error: BaseException | None = None

    def interrupt(self, error: BaseException) -> bool:
        """Interrupt the extraction.  Returns False if already interrupted."""
        if self.state is ExtractionState.INTERRUPTED:
            logger.debug("Ignoring error after interruption: %s", error)
            return False
        self.state = ExtractionState.INTERRUPTED
        self.error = error
        close = getattr(self._source, "close", None)
        if close is not None:
            try:
                close()
            except Exception as exc:
                self.interrupt(exc)
        return True

    def raise_if_interrupted(self) -> None:
        if self.error is not None:
            raise self.error


def strip_prefix(name: str, prefix: str = ARCHIVE_PREFIX) -> str:
    """Remove the namespace *prefix* directory from an archive member name."""
    marker = f"{prefix}/"
    return name[len(marker):] if name.startswith(marker) else name


def _validated_parts(member: tarfile.TarInfo) -> tuple[str, ...]:
    posix = PurePosixPath(member.name)
    if posix.is_absolute() or ".." in posix.parts:
        raise UnsafeArchiveEntryError(f"refusing archive entry {member.name!r}")
    if not (member.isfile() or member.isdir()):
        raise UnsafeArchiveEntryError(
            f"refusing non-regular archive entry {member.name!r}"
        )
    return tuple(part for part in posix.parts if part != ".")


def _target_path(destination: Path, parts: tuple[str, ...]) -> Path:
    target = destination.joinpath(*parts).resolve()
    if not target.is_relative_to(destination):
        raise UnsafeArchiveEntryError(
            f"archive entry {'/'.join(parts)!r} escapes {destination}"
        )
    return target


def _as_archive_error(error: Exception) -> Exception:
    if isinstance(error, (tarfile.TarError, zlib.error, EOFError)):
        decoded = ArchiveDecodeError(f"could not decode snapshot archive: {error}")
        decoded.__cause__ = error
        return decoded
    return error


def extract_archive(stream: IO[bytes], destination: Path | str) -> list[str]:
    """Extract the tarball in *stream* beneath *destination*.

    Returns the relative path (namespace prefix stripped) of every file
    entry, in encounter order.  Entries outside the namespace are skipped.
    Absolute or parent-relative names, links and device entries abort the
    extraction with ``UnsafeArchiveEntryError``.

    Whatever was written before a failure stays on disk; callers extract
    into a scratch directory they discard afterwards.
    """
    root = Path(destination).resolve()
    controller = ExtractionController(stream)
    found: list[str] = []
    try:
        with tarfile.open(fileobj=stream, mode="r|gz") as tar:
            for member in tar:
                parts = _validated_parts(member)
                if not parts or parts[0] != ARCHIVE_PREFIX:
                    logger.warning(
                        "Skipping archive entry outside %s/: %s",
                        ARCHIVE_PREFIX,
                        member.name,
                    )
                    continue
                target = _target_path(root, parts)
                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                source = tar.extractfile(member)
                if source is None:
                    raise UnsafeArchiveEntryError(
                        f"archive entry {member.name!r} has no content"
                    )
                target.parent.mkdir(parents=True, exist_ok=True)
                with target.open("wb") as handle:
                    shutil.copyfileobj(source, handle)
                found.append(strip_prefix("/".join(parts)))
    except Exception as exc:
        controller.interrupt(_as_archive_error(exc))

    controller.raise_if_interrupted()
    logger.debug("Extracted %d file(s) into %s", len(found), root)
    return found
