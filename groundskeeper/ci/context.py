"""Travis CI context resolution.

This is the only module that reads ambient CI environment variables.  It
turns them into an explicit ``RevisionContext`` or fails with
``ContextResolutionError`` before any I/O starts.
"""

from __future__ import annotations

import re

from pydantic_settings import BaseSettings, SettingsConfigDict

from groundskeeper.models.policy import RevisionContext

# "<base>...<head>" with neither side containing "..."
_RANGE_PATTERN = re.compile(r"^((?:(?!\.\.\.).)+?)\.\.\.((?:(?!\.\.\.).)+)$")


class ContextResolutionError(RuntimeError):
    """Raised when the CI environment does not identify the needed revision."""


class TravisEnvironment(BaseSettings):
    """The TRAVIS_* variables describing the current build."""

    model_config = SettingsConfigDict(env_prefix="TRAVIS_", extra="ignore")

    event_type: str = ""
    branch: str = ""
    commit: str = ""
    commit_range: str = ""
    pull_request: str = ""
    repo_slug: str = ""

    @property
    def pull_request_number(self) -> int | None:
        """The pull request number, or ``None`` outside pull request builds."""
        return int(self.pull_request) if self.pull_request.isdigit() else None


def parse_range(commit_range: str) -> tuple[str, str] | None:
    """Split a ``base...head`` commit range.

    >>> parse_range("abc...def")
    ('abc', 'def')
    >>> parse_range("abc..def") is None
    True
    """
    match = _RANGE_PATTERN.match(commit_range or "")
    if match is None:
        return None
    return match.group(1), match.group(2)


def resolve_pull_context(env: TravisEnvironment) -> RevisionContext:
    """Context for verifying a pull request against its base revision."""
    parsed = parse_range(env.commit_range)
    if parsed is None:
        raise ContextResolutionError(
            "could not identify the base commit for pull request"
        )
    if not env.branch:
        raise ContextResolutionError(
            "could not identify the base branch for the pull request"
        )
    return RevisionContext(base_commit=parsed[0], base_branch=env.branch)


def resolve_push_context(env: TravisEnvironment) -> RevisionContext:
    """Context for publishing the snapshot of the pushed commit."""
    if not env.commit:
        raise ContextResolutionError("could not identify base commit for push build")
    return RevisionContext(base_commit=env.commit, base_branch=env.branch or None)
