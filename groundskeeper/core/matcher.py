"""File matcher — expands glob patterns into relative file paths."""

from __future__ import annotations

import glob
import logging
import os
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


class PatternOutsideRootError(ValueError):
    """Raised when a pattern matches a file outside the working directory."""


def _relative_to_root(match: str, root: Path) -> str:
    # Normalised without resolving links so a symlinked artifact keeps its name.
    candidate = Path(os.path.normpath(root / match))
    if not candidate.is_relative_to(root):
        raise PatternOutsideRootError(
            f"artifact {match!r} lies outside the working directory {root}"
        )
    return candidate.relative_to(root).as_posix()


def _expand(pattern: str, root: Path) -> list[str]:
    matches = glob.glob(pattern, root_dir=root, recursive=True)
    return [
        _relative_to_root(match, root)
        for match in matches
        if (root / match).is_file()
    ]


def match_files(patterns: Iterable[str], *, root: Path | str = ".") -> list[str]:
    """Expand *patterns* against *root* into deduplicated relative paths.

    Only regular files are returned.  Wildcards do not match dotfiles and
    ``**`` crosses directory boundaries.  Patterns prefixed with ``!``
    drop paths matched so far.  Absolute patterns are accepted when they
    point inside *root*; any match outside it raises
    ``PatternOutsideRootError``.  Result order follows discovery.
    """
    base = Path(os.path.abspath(root))
    found: dict[str, None] = {}
    for pattern in patterns:
        if pattern.startswith("!"):
            for path in _expand(pattern[1:], base):
                found.pop(path, None)
            continue
        for path in _expand(pattern, base):
            found.setdefault(path, None)

    logger.debug("Matched %d file(s) under %s", len(found), base)
    return list(found)
