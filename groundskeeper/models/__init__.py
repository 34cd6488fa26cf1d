"""Groundskeeper data models — all Pydantic v2, all frozen (immutable)."""

from groundskeeper.models.policy import (
    ArtifactPolicy,
    RevisionContext,
    StorageOptions,
    snapshot_key,
)
from groundskeeper.models.verdict import ComparisonRecord, PublishReceipt, Verdict

__all__ = [
    # policy
    "StorageOptions",
    "ArtifactPolicy",
    "RevisionContext",
    "snapshot_key",
    # verdict
    "ComparisonRecord",
    "Verdict",
    "PublishReceipt",
]
