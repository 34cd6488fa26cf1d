"""CI actions — pull (verify), push (publish), and the context-sensitive default.

Pull requests verify their artifacts against the snapshot of the base
commit; pushes publish a snapshot for the pushed commit.  Review comments
are posted only when the ``post`` setting covers the observed outcome.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from groundskeeper.ci.context import (
    TravisEnvironment,
    resolve_pull_context,
    resolve_push_context,
)
from groundskeeper.core.reconciler import check_artifacts, put_artifacts
from groundskeeper.core.snapshot_store import SnapshotStore
from groundskeeper.models.policy import ArtifactPolicy, StorageOptions
from groundskeeper.models.verdict import PublishReceipt, Verdict
from groundskeeper.reporting import (
    REPORT_PURPOSE,
    UNCHANGED_MESSAGE,
    CommentSink,
    format_comment,
)

logger = logging.getLogger(__name__)

ALWAYS_VALUES = frozenset({"any", "all", "always", "every", "yes"})
POSITIVE_VALUES = frozenset(
    {"positive", "match", "matched", "matching", "equal", "same"}
) | ALWAYS_VALUES
NEGATIVE_VALUES = frozenset(
    {"fail", "failing", "mismatched", "differ", "differing", "negative"}
) | ALWAYS_VALUES
NEVER_VALUES = frozenset({"never", "no"})
POST_CHOICES = sorted(POSITIVE_VALUES | NEGATIVE_VALUES | NEVER_VALUES)


class ActionOptions(BaseModel):
    """Inputs shared by the pull and push actions.

    ``diff``, ``post`` and ``allow_missing_snapshot`` only affect pulls.
    """

    model_config = ConfigDict(frozen=True)

    files: list[str]
    storage: StorageOptions
    diff: bool = True
    post: str = "always"
    allow_missing_snapshot: bool = False

    @field_validator("post")
    @classmethod
    def _known_post_value(cls, value: str) -> str:
        if value not in POST_CHOICES:
            raise ValueError(f"unknown post value {value!r}")
        return value

    @property
    def post_positive(self) -> bool:
        return self.post in POSITIVE_VALUES

    @property
    def post_negative(self) -> bool:
        return self.post in NEGATIVE_VALUES

    def policy(self) -> ArtifactPolicy:
        return ArtifactPolicy(
            files=self.files,
            diff=self.diff,
            storage=self.storage,
            allow_missing_snapshot=self.allow_missing_snapshot,
        )


class ActionOutcome(BaseModel):
    """What a CI action did."""

    model_config = ConfigDict(frozen=True)

    action: Literal["pull", "push"]
    result: bool
    verdict: Verdict | None = None
    receipt: PublishReceipt | None = None

    @model_validator(mode="after")
    def _matches_action(self) -> ActionOutcome:
        if self.action == "pull" and self.verdict is None:
            raise ValueError("a pull outcome needs a verdict")
        if self.action == "push" and self.receipt is None:
            raise ValueError("a push outcome needs a receipt")
        return self


def _report(sink: CommentSink | None, body: str) -> None:
    if sink is None:
        logger.warning("No comment sink configured; skipping report")
        return
    sink.post(body, purpose=REPORT_PURPOSE)


def pull(
    options: ActionOptions,
    env: TravisEnvironment,
    *,
    sink: CommentSink | None = None,
    root: Path | str = ".",
    store: SnapshotStore | None = None,
) -> ActionOutcome:
    """Verify the pull request's artifacts against its base commit."""
    context = resolve_pull_context(env)
    verdict = check_artifacts(options.policy(), context, root=root, store=store)

    if verdict.result:
        if options.post_positive:
            _report(sink, UNCHANGED_MESSAGE)
    elif options.post_negative:
        _report(sink, format_comment(verdict))
    return ActionOutcome(action="pull", result=verdict.result, verdict=verdict)


def push(
    options: ActionOptions,
    env: TravisEnvironment,
    *,
    root: Path | str = ".",
    store: SnapshotStore | None = None,
) -> ActionOutcome:
    """Publish the pushed commit's artifacts."""
    context = resolve_push_context(env)
    policy = ArtifactPolicy(files=options.files, storage=options.storage)
    receipt = put_artifacts(policy, context, root=root, store=store)
    return ActionOutcome(action="push", result=True, receipt=receipt)


def default_command(
    options: ActionOptions,
    env: TravisEnvironment,
    *,
    sink: CommentSink | None = None,
    root: Path | str = ".",
    store: SnapshotStore | None = None,
) -> ActionOutcome | None:
    """Pull for pull request builds, push for push builds, otherwise nothing."""
    if env.event_type == "pull_request":
        return pull(options, env, sink=sink, root=root, store=store)
    if env.event_type == "push":
        return push(options, env, root=root, store=store)
    logger.info("No action for Travis event type %r", env.event_type)
    return None
