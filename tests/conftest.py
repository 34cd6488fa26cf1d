"""Shared test fixtures for Groundskeeper."""

from __future__ import annotations

import io
from collections.abc import Callable
from pathlib import Path

import pytest

from groundskeeper.core.archive import CONTENT_TYPE, write_archive
from groundskeeper.core.reconciler import Reconciler
from groundskeeper.core.snapshot_store import LocalSnapshotStore
from groundskeeper.models.policy import (
    ArtifactPolicy,
    RevisionContext,
    StorageOptions,
    snapshot_key,
)

from tests.helpers import write_tree


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Provide an empty working tree."""
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def storage() -> StorageOptions:
    """Provide storage options with a deterministic bucket and prefix."""
    return StorageOptions(bucket="test-bucket", region="us-east-1", prefix="builds")


@pytest.fixture
def snapshot_store(tmp_path: Path) -> LocalSnapshotStore:
    """Provide a fresh LocalSnapshotStore in a temp directory."""
    return LocalSnapshotStore(tmp_path / "snapshots")


@pytest.fixture
def base_context() -> RevisionContext:
    """Provide the revision context of the baseline snapshot."""
    return RevisionContext(base_commit="base123", base_branch="main")


@pytest.fixture
def make_policy(storage: StorageOptions) -> Callable[..., ArtifactPolicy]:
    """Factory fixture: build an ArtifactPolicy with sensible defaults."""

    def _factory(files: list[str] | None = None, **overrides) -> ArtifactPolicy:
        return ArtifactPolicy(
            files=files if files is not None else ["**/*.js"],
            storage=overrides.pop("storage", storage),
            **overrides,
        )

    return _factory


@pytest.fixture
def make_snapshot(
    tmp_path: Path,
    snapshot_store: LocalSnapshotStore,
    storage: StorageOptions,
) -> Callable[..., str]:
    """Factory fixture: publish *files* as the snapshot of *commit*.

    Unlike ``put_artifacts`` this also accepts an empty file set.
    Returns the snapshot key.
    """

    def _factory(files: dict[str, str | bytes], commit: str = "base123") -> str:
        tree = write_tree(tmp_path / f"snapshot-{commit}", files)
        buffer = io.BytesIO()
        write_archive(sorted(files), buffer, root=tree)
        buffer.seek(0)
        key = snapshot_key(storage, commit)
        snapshot_store.write(key, buffer, CONTENT_TYPE)
        return key

    return _factory


@pytest.fixture
def reconciler(
    snapshot_store: LocalSnapshotStore, workspace: Path
) -> Reconciler:
    """Provide a Reconciler wired to the test store and working tree."""
    return Reconciler(snapshot_store, root=workspace)
