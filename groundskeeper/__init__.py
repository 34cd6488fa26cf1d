"""Groundskeeper: catch drift in generated build artifacts.

Publishes a snapshot of policy-matched files for each pushed commit and
verifies pull requests against the snapshot of their base commit:
  - Streaming gzip tar snapshots under a fixed ``artifacts/`` namespace
  - S3 (boto3) or local-directory snapshot stores
  - Bounded-concurrency comparison with deterministic, sorted verdicts
  - Unified diffs for changed files, optionally posted to GitHub
"""

__version__ = "0.1.0"
__description__ = "Verify build artifacts against published snapshots"

from groundskeeper.core.reconciler import Reconciler, check_artifacts, put_artifacts
from groundskeeper.models import ArtifactPolicy, RevisionContext, StorageOptions, Verdict

__all__ = [
    "Reconciler",
    "check_artifacts",
    "put_artifacts",
    "ArtifactPolicy",
    "RevisionContext",
    "StorageOptions",
    "Verdict",
    "__version__",
]
