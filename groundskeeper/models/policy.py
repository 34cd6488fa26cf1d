"""Policy and revision context models — constructed once per invocation."""

from __future__ import annotations

import posixpath

from pydantic import BaseModel, ConfigDict, Field

SNAPSHOT_KEY_TEMPLATE = "groundskeeper-artifacts-{commit}.tar.gz"


class StorageOptions(BaseModel):
    """Where snapshots live: an object-store bucket plus an optional key prefix."""

    model_config = ConfigDict(frozen=True)

    bucket: str = Field(min_length=1)
    region: str | None = None
    prefix: str | None = None


class ArtifactPolicy(BaseModel):
    """The (glob patterns, diff flag, storage) tuple governing one operation.

    Patterns are evaluated relative to the working directory.  A pattern
    starting with ``!`` removes previously matched paths.
    """

    model_config = ConfigDict(frozen=True)

    files: list[str]
    diff: bool = True
    storage: StorageOptions
    allow_missing_snapshot: bool = False


class RevisionContext(BaseModel):
    """Per-invocation revision facts.

    For verification ``base_commit`` names the baseline snapshot and
    ``base_branch`` labels it in diffs.  For publishing ``base_commit`` is
    the *current* commit, which names the new snapshot.
    """

    model_config = ConfigDict(frozen=True)

    base_commit: str = Field(min_length=1)
    base_branch: str | None = None

    @property
    def label(self) -> str:
        """Human-readable name of the base revision."""
        return self.base_branch or self.base_commit


def snapshot_key(storage: StorageOptions, commit: str) -> str:
    """Derive the object key of the snapshot for *commit*.

    >>> snapshot_key(StorageOptions(bucket="b", prefix="web/"), "abc123")
    'web/groundskeeper-artifacts-abc123.tar.gz'
    """
    name = SNAPSHOT_KEY_TEMPLATE.format(commit=commit)
    if not storage.prefix:
        return name
    return posixpath.normpath(posixpath.join(storage.prefix, name))
