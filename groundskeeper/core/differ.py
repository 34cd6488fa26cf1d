"""Diff engine — renders a two-file unified patch for one artifact.

The output starts at the ``---`` header line.  Each header carries a
revision label (``(main version)`` / ``(new version)``) padded to the same
width.  A side that does not exist is named ``/dev/null`` and diffed as
empty, in which case no "No newline at end of file" markers are emitted.
"""

from __future__ import annotations

from collections.abc import Iterator
from difflib import SequenceMatcher

DEV_NULL = "/dev/null"
NO_NEWLINE_MARKER = "\\ No newline at end of file"
CONTEXT_LINES = 3


def pad_labels(*labels: str) -> list[str]:
    """Left-pad *labels* with spaces to the width of the longest one."""
    width = max(len(label) for label in labels)
    return [label.rjust(width) for label in labels]


def _format_range(start: int, stop: int) -> str:
    length = stop - start
    beginning = start + 1 if length else start
    return f"{beginning},{length}"


def _decode(content: bytes | None) -> list[str]:
    if content is None:
        return []
    return content.decode("utf-8", errors="replace").splitlines(keepends=True)


def _emit(prefix: str, line: str, mark_missing_newline: bool) -> Iterator[str]:
    if line.endswith("\n"):
        yield f"{prefix}{line[:-1]}"
        return
    yield f"{prefix}{line}"
    if mark_missing_newline:
        yield NO_NEWLINE_MARKER


def _hunks(
    base: list[str], new: list[str], mark_missing_newline: bool
) -> Iterator[str]:
    matcher = SequenceMatcher(None, base, new, autojunk=False)
    for group in matcher.get_grouped_opcodes(CONTEXT_LINES):
        first, last = group[0], group[-1]
        yield (
            f"@@ -{_format_range(first[1], last[2])}"
            f" +{_format_range(first[3], last[4])} @@"
        )
        for tag, i1, i2, j1, j2 in group:
            if tag == "equal":
                for line in base[i1:i2]:
                    yield from _emit(" ", line, mark_missing_newline)
                continue
            if tag in ("replace", "delete"):
                for line in base[i1:i2]:
                    yield from _emit("-", line, mark_missing_newline)
            if tag in ("replace", "insert"):
                for line in new[j1:j2]:
                    yield from _emit("+", line, mark_missing_newline)


def unified_patch(
    path: str,
    base: bytes | None,
    new: bytes | None,
    *,
    base_label: str,
) -> str:
    """Render the patch turning *base* into *new* for the file at *path*.

    ``None`` on either side means the file does not exist at that revision.
    Same inputs always produce the same text.
    """
    old_label, new_label = pad_labels(f"({base_label} version)", "(new version)")
    old_name = DEV_NULL if base is None else path
    new_name = DEV_NULL if new is None else path
    mark_missing_newline = base is not None and new is not None

    lines = [
        f"--- {old_name}\t{old_label}",
        f"+++ {new_name}\t{new_label}",
    ]
    lines.extend(_hunks(_decode(base), _decode(new), mark_missing_newline))
    return "\n".join(lines) + "\n"
