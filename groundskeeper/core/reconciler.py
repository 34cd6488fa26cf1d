"""Reconciliation engine — verifies and publishes artifact snapshots.

Verification lifecycle:
1. Discover local files matching the policy
2. Fetch the base snapshot and extract it into a scratch directory
3. Compare every path in the union of local and remote files
4. Aggregate the changed paths into a sorted ``Verdict``
5. Remove the scratch directory, whatever happened

Publishing matches the same files, streams them into an archive and
uploads it under the key of the current commit.
"""

from __future__ import annotations

import logging
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path

from groundskeeper.core.archive import (
    ARCHIVE_PREFIX,
    CONTENT_TYPE,
    extract_archive,
    open_archive_stream,
)
from groundskeeper.core.differ import unified_patch
from groundskeeper.core.executor import COMPARISON_CONCURRENCY, BoundedExecutor
from groundskeeper.core.matcher import match_files
from groundskeeper.core.snapshot_store import (
    SnapshotNotFoundError,
    SnapshotStore,
    store_for,
)
from groundskeeper.models.policy import ArtifactPolicy, RevisionContext, snapshot_key
from groundskeeper.models.verdict import ComparisonRecord, PublishReceipt, Verdict

logger = logging.getLogger(__name__)


class NoArtifactsError(RuntimeError):
    """Raised when a publish policy matches no files."""


def read_optional(path: Path) -> bytes | None:
    """Read *path*, returning ``None`` when the file does not exist.

    Other filesystem errors (permission denied and the like) propagate.
    """
    try:
        return path.read_bytes()
    except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
        return None


class Reconciler:
    """Compares working-tree artifacts against published snapshots.

    Parameters
    ----------
    store:
        Snapshot backend to read from and publish to.
    root:
        Working directory the policy patterns are evaluated in.
    concurrency:
        Ceiling on simultaneous comparison tasks.
    """

    def __init__(
        self,
        store: SnapshotStore,
        *,
        root: Path | str = ".",
        concurrency: int = COMPARISON_CONCURRENCY,
    ) -> None:
        self.store = store
        self.root = Path(root)
        self.executor = BoundedExecutor(concurrency)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def check_artifacts(
        self, policy: ArtifactPolicy, context: RevisionContext
    ) -> Verdict:
        """Compare the working tree against the snapshot of ``context.base_commit``."""
        all_files = dict.fromkeys(match_files(policy.files, root=self.root))
        key = snapshot_key(policy.storage, context.base_commit)

        with tempfile.TemporaryDirectory(prefix="groundskeeper-") as scratch:
            for path in self._fetch(key, Path(scratch), policy):
                all_files.setdefault(path, None)
            snapshot_root = Path(scratch) / ARCHIVE_PREFIX

            logger.info("Comparing %d artifact file(s)", len(all_files))
            changes: dict[str, str | bool] = {}
            lock = threading.Lock()
            tasks = [
                self._comparison_task(path, snapshot_root, policy, context, changes, lock)
                for path in all_files
            ]
            errors = self.executor.run(tasks)

        if errors:
            for error in errors:
                logger.error("Artifact comparison failed: %s", error)
            raise errors[0]

        if not changes:
            logger.info("No artifacts have changed")
            return Verdict.unchanged()

        logger.warning("%d artifact file(s) changed", len(changes))
        patches = (
            {path: str(patch) for path, patch in changes.items()}
            if policy.diff
            else None
        )
        return Verdict.changed(list(changes), patches)

    def _fetch(
        self, key: str, scratch: Path, policy: ArtifactPolicy
    ) -> list[str]:
        try:
            source = self.store.open_read(key)
        except SnapshotNotFoundError:
            if not policy.allow_missing_snapshot:
                raise
            logger.warning("No snapshot at %s; treating every artifact as new", key)
            return []
        try:
            return extract_archive(source, scratch)
        finally:
            source.close()

    def _comparison_task(
        self,
        path: str,
        snapshot_root: Path,
        policy: ArtifactPolicy,
        context: RevisionContext,
        changes: dict[str, str | bool],
        lock: threading.Lock,
    ) -> Callable[[], None]:
        def _compare() -> None:
            record = ComparisonRecord(
                path=path,
                base_content=read_optional(snapshot_root / path),
                new_content=read_optional(self.root / path),
            )
            if not record.changed:
                return
            logger.debug("Artifact changed: %s", path)
            entry: str | bool = True
            if policy.diff:
                entry = unified_patch(
                    path,
                    record.base_content,
                    record.new_content,
                    base_label=context.label,
                )
            with lock:
                changes[path] = entry

        return _compare

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    def put_artifacts(
        self, policy: ArtifactPolicy, context: RevisionContext
    ) -> PublishReceipt:
        """Publish the matched files as the snapshot of ``context.base_commit``."""
        files = match_files(policy.files, root=self.root)
        if not files:
            raise NoArtifactsError("cannot evaluate artifact policy: no files to check")

        key = snapshot_key(policy.storage, context.base_commit)
        with open_archive_stream(files, root=self.root) as stream:
            uri = self.store.write(key, stream, CONTENT_TYPE)

        logger.info("Published %d artifact file(s) to %s", len(files), uri)
        return PublishReceipt(uri=uri, key=key, file_count=len(files))


def check_artifacts(
    policy: ArtifactPolicy,
    context: RevisionContext,
    *,
    root: Path | str = ".",
    store: SnapshotStore | None = None,
) -> Verdict:
    """Verify the working tree, using the S3 store described by the policy by default."""
    reconciler = Reconciler(store or store_for(policy.storage), root=root)
    return reconciler.check_artifacts(policy, context)


def put_artifacts(
    policy: ArtifactPolicy,
    context: RevisionContext,
    *,
    root: Path | str = ".",
    store: SnapshotStore | None = None,
) -> PublishReceipt:
    """Publish a snapshot, using the S3 store described by the policy by default."""
    reconciler = Reconciler(store or store_for(policy.storage), root=root)
    return reconciler.put_artifacts(policy, context)
