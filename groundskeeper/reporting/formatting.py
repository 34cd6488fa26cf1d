"""Review comment formatting for verification verdicts."""

from __future__ import annotations

from groundskeeper.models.verdict import Verdict

REPORT_PURPOSE = "groundskeeper:report/artifacts"
UNCHANGED_MESSAGE = "groundskeeper: no artifacts have changed"
CHANGED_HEADER = "groundskeeper: the following artifacts have changed:\n"


def format_comment(verdict: Verdict) -> str:
    """Render a changed verdict as a Markdown comment.

    With patches, emits one fenced ``patch`` block holding every diff in
    file order; otherwise a fenced list of the changed paths.
    """
    if verdict.result:
        return UNCHANGED_MESSAGE

    lines = [CHANGED_HEADER]
    if verdict.patches is not None:
        lines.append("```patch")
        # Patch text cannot start a line with three backticks, no escaping needed.
        lines.extend(verdict.patches[path].rstrip("\n") for path in verdict.files)
        lines.append("```")
    else:
        lines.extend(["```", *verdict.files, "```"])
    return "\n".join(lines)


def format_console_listing(verdict: Verdict) -> str:
    """Plain-text listing of changed files for terminal output."""
    if verdict.result:
        return UNCHANGED_MESSAGE
    listing = "\n".join(f"- {path}" for path in verdict.files)
    return f"{CHANGED_HEADER}{listing}"
