"""``groundskeeper auto FILES...`` — pull or push depending on the Travis event."""

from __future__ import annotations

from pathlib import Path

from groundskeeper.ci.actions import default_command
from groundskeeper.ci.context import TravisEnvironment
from groundskeeper.cli.commands._common import (
    ALLOW_MISSING_OPTION,
    BUCKET_OPTION,
    DIFF_OPTION,
    FAIL_OPTION,
    FILES_ARGUMENT,
    LOCAL_STORE_OPTION,
    POST_OPTION,
    PREFIX_OPTION,
    REGION_OPTION,
    action_options,
    build_store,
    handle,
    open_sink,
    storage_options,
)


def auto_cmd(
    files: list[str] = FILES_ARGUMENT,
    fail: bool = FAIL_OPTION,
    bucket: str = BUCKET_OPTION,
    region: str = REGION_OPTION,
    prefix: str = PREFIX_OPTION,
    local_store: Path = LOCAL_STORE_OPTION,
    diff: bool = DIFF_OPTION,
    post: str = POST_OPTION,
    allow_missing: bool = ALLOW_MISSING_OPTION,
) -> None:
    """Verify on pull request builds, publish on push builds.

    Other build types (cron, api) do nothing and exit according to --fail.
    """
    storage = storage_options(bucket, region, prefix, local_store)
    options = action_options(
        files, storage, diff=diff, post=post, allow_missing=allow_missing
    )
    env = TravisEnvironment()
    with open_sink(env) as sink:
        handle(
            lambda: default_command(
                options, env, sink=sink, store=build_store(local_store)
            ),
            fail=fail,
        )
