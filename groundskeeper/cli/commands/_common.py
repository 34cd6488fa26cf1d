"""Shared plumbing for the CLI commands: options, store and sink wiring,
and the mapping from action outcomes to exit codes.

Exit codes: 0 when artifacts match (or a snapshot was published), 1 when
artifacts differ and ``--fail`` is set, 2 when the check itself broke.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console

from groundskeeper.ci.actions import POST_CHOICES, ActionOptions, ActionOutcome
from groundskeeper.ci.context import TravisEnvironment
from groundskeeper.config import settings
from groundskeeper.core.snapshot_store import LocalSnapshotStore, SnapshotStore
from groundskeeper.models.policy import StorageOptions
from groundskeeper.reporting import CommentSink
from groundskeeper.reporting.formatting import UNCHANGED_MESSAGE, format_console_listing
from groundskeeper.reporting.github import GitHubCommentSink

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

EXIT_OK = 0
EXIT_CHANGED = 1
EXIT_ERROR = 2

FILES_ARGUMENT = typer.Argument(..., help="Glob patterns of the artifact files.")
FAIL_OPTION = typer.Option(
    True,
    "--fail/--no-fail",
    help="Exit with a failing code when build artifacts differ.",
)
BUCKET_OPTION = typer.Option(
    None, "--bucket", help="The S3 bucket for build artifact storage."
)
REGION_OPTION = typer.Option(
    None, "--region", help="The AWS region for build artifact storage."
)
PREFIX_OPTION = typer.Option(
    None, "--prefix", help="The S3 key prefix to use for build artifact storage."
)
LOCAL_STORE_OPTION = typer.Option(
    None,
    "--local-store",
    help="Use a local directory instead of S3 for snapshot storage.",
)
DIFF_OPTION = typer.Option(
    True,
    "--diff/--no-diff",
    help="Compute the diff between current and prior build artifacts.",
)
POST_OPTION = typer.Option(
    "always",
    "--post",
    help=f"When to post a comment describing the outcome: {', '.join(POST_CHOICES)}.",
)
ALLOW_MISSING_OPTION = typer.Option(
    False,
    "--allow-missing/--require-snapshot",
    help="Treat a missing base snapshot as empty instead of failing.",
)


def say(target: Console, message: str) -> None:
    target.print(message, markup=False, highlight=False)


def storage_options(
    bucket: str | None, region: str | None, prefix: str | None, local_store: Path | None
) -> StorageOptions:
    """Build storage options, bailing out with exit code 1 without a bucket."""
    bucket = bucket or settings.bucket
    if not bucket and local_store is not None:
        bucket = local_store.name or "local"
    if not bucket:
        say(err_console, "groundskeeper: no S3 bucket specified")
        raise typer.Exit(code=EXIT_CHANGED)
    return StorageOptions(
        bucket=bucket,
        region=region or settings.region,
        prefix=prefix if prefix is not None else settings.prefix,
    )


def action_options(
    files: list[str],
    storage: StorageOptions,
    *,
    diff: bool = True,
    post: str = "always",
    allow_missing: bool = False,
) -> ActionOptions:
    if post not in POST_CHOICES:
        say(err_console, f"groundskeeper: unknown --post value {post!r}")
        raise typer.Exit(code=EXIT_CHANGED)
    return ActionOptions(
        files=files,
        storage=storage,
        diff=diff,
        post=post,
        allow_missing_snapshot=allow_missing,
    )


def build_store(local_store: Path | None) -> SnapshotStore | None:
    """A local store when requested; ``None`` lets the policy pick S3."""
    return LocalSnapshotStore(local_store) if local_store is not None else None


def build_sink(env: TravisEnvironment) -> GitHubCommentSink | None:
    """A GitHub sink when the build is a pull request and a token is set."""
    number = env.pull_request_number
    if not (settings.github_token and env.repo_slug and number):
        return None
    return GitHubCommentSink(
        env.repo_slug,
        number,
        settings.github_token,
        api_url=settings.github_api_url,
    )


@contextmanager
def open_sink(env: TravisEnvironment) -> Iterator[CommentSink | None]:
    """Yield the sink from ``build_sink`` and close it afterwards."""
    sink = build_sink(env)
    try:
        yield sink
    finally:
        if sink is not None:
            sink.close()


def handle(action: Callable[[], ActionOutcome | None], *, fail: bool) -> None:
    """Run *action* and translate its outcome into output and an exit code."""
    try:
        outcome = action()
    except Exception as exc:
        logger.debug("Pipeline failure", exc_info=True)
        say(err_console, f"groundskeeper: {exc}")
        raise typer.Exit(code=EXIT_ERROR)

    if outcome is None:
        say(err_console, "groundskeeper: unable to determine travis context")
        raise typer.Exit(code=EXIT_CHANGED if fail else EXIT_OK)

    if outcome.receipt is not None:
        say(console, f"groundskeeper: uploaded {outcome.receipt.uri}")
        return

    verdict = outcome.verdict
    if verdict is None or verdict.result:
        say(console, UNCHANGED_MESSAGE)
        return
    say(err_console, format_console_listing(verdict))
    if fail:
        raise typer.Exit(code=EXIT_CHANGED)
