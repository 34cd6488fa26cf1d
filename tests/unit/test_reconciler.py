"""Tests for the Reconciler — verdicts, union of paths, failure handling."""

from __future__ import annotations

import io
import tempfile
from pathlib import Path

import pytest

import groundskeeper.core.reconciler as reconciler_module
from groundskeeper.core.archive import ArchiveDecodeError
from groundskeeper.core.differ import unified_patch
from groundskeeper.core.reconciler import NoArtifactsError, Reconciler, read_optional
from groundskeeper.core.snapshot_store import SnapshotNotFoundError
from groundskeeper.models.policy import RevisionContext, snapshot_key

from tests.helpers import write_tree


class RecordingStore:
    """Wraps a store and records write calls."""

    def __init__(self, inner):
        self.inner = inner
        self.writes: list[str] = []

    def open_read(self, key):
        return self.inner.open_read(key)

    def write(self, key, stream, content_type):
        self.writes.append(key)
        return self.inner.write(key, stream, content_type)


@pytest.fixture
def spy_reads(monkeypatch: pytest.MonkeyPatch) -> list[Path]:
    """Record every path the reconciler reads."""
    calls: list[Path] = []

    def _spy(path: Path):
        calls.append(path)
        return read_optional(path)

    monkeypatch.setattr(reconciler_module, "read_optional", _spy)
    return calls


class TestReadOptional:
    def test_missing_is_none(self, tmp_path: Path):
        assert read_optional(tmp_path / "missing") is None

    def test_missing_parent_is_none(self, tmp_path: Path):
        (tmp_path / "file").write_text("x")
        assert read_optional(tmp_path / "file" / "child") is None

    def test_reads_bytes(self, tmp_path: Path):
        (tmp_path / "a").write_bytes(b"\x00abc")
        assert read_optional(tmp_path / "a") == b"\x00abc"


class TestCheckArtifacts:
    def test_changed_file_with_patch(
        self, reconciler, workspace, make_snapshot, make_policy, base_context
    ):
        make_snapshot({"out/bundle.js": "v1"})
        write_tree(workspace, {"out/bundle.js": "v2"})

        verdict = reconciler.check_artifacts(make_policy(["out/*.js"]), base_context)

        assert verdict.as_output() == {
            "result": False,
            "files": ["out/bundle.js"],
            "patches": {
                "out/bundle.js": unified_patch(
                    "out/bundle.js", b"v1", b"v2", base_label="main"
                )
            },
        }

    def test_empty_local_and_remote(
        self, reconciler, make_snapshot, make_policy, base_context
    ):
        make_snapshot({})
        verdict = reconciler.check_artifacts(make_policy(["out/*.js"]), base_context)
        assert verdict.as_output() == {"result": True}

    def test_identical_trees_unchanged(
        self, reconciler, workspace, make_snapshot, make_policy, base_context
    ):
        files = {"out/a.js": "a", "out/b.js": "b\n"}
        make_snapshot(files)
        write_tree(workspace, files)
        assert reconciler.check_artifacts(make_policy(), base_context).result is True

    def test_union_of_local_and_remote(
        self, reconciler, workspace, make_snapshot, make_policy, base_context, spy_reads
    ):
        make_snapshot({"a.js": "a", "b.js": "b"})
        write_tree(workspace, {"b.js": "b", "c.js": "c"})

        verdict = reconciler.check_artifacts(make_policy(["*.js"]), base_context)

        compared = {path.name for path in spy_reads if path.parent == workspace}
        assert compared == {"a.js", "b.js", "c.js"}
        assert verdict.files == ["a.js", "c.js"]
        assert verdict.patches["a.js"].startswith("--- a.js\t")
        assert "+++ /dev/null" in verdict.patches["a.js"]
        assert verdict.patches["c.js"].startswith("--- /dev/null\t")

    def test_remote_files_compared_even_if_unmatched_locally(
        self, reconciler, workspace, make_snapshot, make_policy, base_context
    ):
        make_snapshot({"old/removed.js": "gone"})
        verdict = reconciler.check_artifacts(make_policy(["out/*.js"]), base_context)
        assert verdict.files == ["old/removed.js"]

    def test_files_sorted(
        self, reconciler, workspace, make_snapshot, make_policy, base_context
    ):
        names = [f"out/{c}.js" for c in "zyxwvutsrqponmlkjihgfedcba"]
        make_snapshot({name: "old" for name in names})
        write_tree(workspace, {name: "new" for name in names})

        verdict = reconciler.check_artifacts(make_policy(), base_context)

        assert verdict.files == sorted(names)
        assert list(verdict.patches) == verdict.files

    def test_without_diff_no_patches(
        self, reconciler, workspace, make_snapshot, make_policy, base_context
    ):
        make_snapshot({"a.js": "1"})
        write_tree(workspace, {"a.js": "2"})
        verdict = reconciler.check_artifacts(make_policy(diff=False), base_context)
        assert verdict.as_output() == {"result": False, "files": ["a.js"]}

    def test_absent_and_empty_differ(
        self, reconciler, workspace, make_snapshot, make_policy, base_context
    ):
        make_snapshot({"empty.js": ""})
        verdict = reconciler.check_artifacts(make_policy(), base_context)
        assert verdict.files == ["empty.js"]

    def test_missing_snapshot_fails_by_default(
        self, reconciler, workspace, make_policy, base_context
    ):
        write_tree(workspace, {"a.js": "a"})
        with pytest.raises(SnapshotNotFoundError):
            reconciler.check_artifacts(make_policy(), base_context)

    def test_missing_snapshot_allowed(
        self, reconciler, workspace, make_policy, base_context
    ):
        write_tree(workspace, {"a.js": "a"})
        verdict = reconciler.check_artifacts(
            make_policy(allow_missing_snapshot=True), base_context
        )
        assert verdict.files == ["a.js"]
        assert verdict.patches["a.js"].startswith("--- /dev/null")

    def test_comparison_failure_raised_after_all_tasks(
        self,
        reconciler,
        workspace,
        make_snapshot,
        make_policy,
        base_context,
        monkeypatch: pytest.MonkeyPatch,
    ):
        files = {f"out/{i}.js": str(i) for i in range(12)}
        files["out/locked.js"] = "secret"
        make_snapshot(files)
        write_tree(workspace, files)
        calls: list[Path] = []

        def _flaky(path: Path):
            calls.append(path)
            if path == workspace / "out/locked.js":
                raise PermissionError(13, "Permission denied", str(path))
            return read_optional(path)

        monkeypatch.setattr(reconciler_module, "read_optional", _flaky)

        with pytest.raises(PermissionError):
            reconciler.check_artifacts(make_policy(), base_context)
        # Two reads (snapshot + working tree) for every file, including the failed one.
        assert len(calls) == 2 * len(files)

    def test_scratch_directory_removed(
        self,
        reconciler,
        workspace,
        make_snapshot,
        make_policy,
        base_context,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ):
        scratch_root = tmp_path / "scratch"
        scratch_root.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(scratch_root))

        make_snapshot({"a.js": "a"})
        write_tree(workspace, {"a.js": "b"})
        reconciler.check_artifacts(make_policy(), base_context)
        assert list(scratch_root.iterdir()) == []

    def test_scratch_removed_on_decode_failure(
        self,
        reconciler,
        snapshot_store,
        storage,
        make_policy,
        base_context,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ):
        scratch_root = tmp_path / "scratch"
        scratch_root.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(scratch_root))
        snapshot_store.write(
            snapshot_key(storage, base_context.base_commit),
            io.BytesIO(b"corrupt"),
            "application/gzip",
        )

        with pytest.raises(ArchiveDecodeError):
            reconciler.check_artifacts(make_policy(), base_context)
        assert list(scratch_root.iterdir()) == []

    def test_branch_label_falls_back_to_commit(
        self, reconciler, workspace, make_snapshot, make_policy
    ):
        make_snapshot({"a.js": "1"})
        write_tree(workspace, {"a.js": "2"})
        verdict = reconciler.check_artifacts(
            make_policy(), RevisionContext(base_commit="base123")
        )
        assert "(base123 version)" in verdict.patches["a.js"]


class TestPutArtifacts:
    def test_no_files_is_precondition_error(
        self, snapshot_store, workspace, make_policy, base_context
    ):
        store = RecordingStore(snapshot_store)
        reconciler = Reconciler(store, root=workspace)
        with pytest.raises(NoArtifactsError, match="no files to check"):
            reconciler.put_artifacts(make_policy(["out/*.js"]), base_context)
        assert store.writes == []

    def test_publishes_under_commit_key(
        self, reconciler, snapshot_store, workspace, storage, make_policy
    ):
        write_tree(workspace, {"out/a.js": "a", "out/b.js": "b"})
        receipt = reconciler.put_artifacts(
            make_policy(["out/*.js"]), RevisionContext(base_commit="head456")
        )
        assert receipt.key == snapshot_key(storage, "head456")
        assert receipt.key == "builds/groundskeeper-artifacts-head456.tar.gz"
        assert receipt.file_count == 2
        assert snapshot_store.exists(receipt.key)
        assert receipt.uri == snapshot_store.uri(receipt.key)
