"""``groundskeeper push FILES...`` — publish the artifact snapshot."""

from __future__ import annotations

from pathlib import Path

from groundskeeper.ci.actions import push
from groundskeeper.ci.context import TravisEnvironment
from groundskeeper.cli.commands._common import (
    BUCKET_OPTION,
    FAIL_OPTION,
    FILES_ARGUMENT,
    LOCAL_STORE_OPTION,
    PREFIX_OPTION,
    REGION_OPTION,
    action_options,
    build_store,
    handle,
    storage_options,
)


def push_cmd(
    files: list[str] = FILES_ARGUMENT,
    fail: bool = FAIL_OPTION,
    bucket: str = BUCKET_OPTION,
    region: str = REGION_OPTION,
    prefix: str = PREFIX_OPTION,
    local_store: Path = LOCAL_STORE_OPTION,
) -> None:
    """Archive the artifact files and upload them for TRAVIS_COMMIT."""
    storage = storage_options(bucket, region, prefix, local_store)
    options = action_options(files, storage)
    env = TravisEnvironment()
    handle(lambda: push(options, env, store=build_store(local_store)), fail=fail)
