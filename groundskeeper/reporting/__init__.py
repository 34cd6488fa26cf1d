"""Comment sinks for reporting verification outcomes.

All sinks implement the ``CommentSink`` protocol: a ``sink_name`` property
and a ``post(body, purpose=...)`` method.  The purpose string identifies
the kind of report so a sink can replace its previous comment instead of
piling up new ones.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from groundskeeper.reporting.formatting import (
    REPORT_PURPOSE,
    UNCHANGED_MESSAGE,
    format_comment,
)


@runtime_checkable
class CommentSink(Protocol):
    """Protocol that every comment sink must implement."""

    @property
    def sink_name(self) -> str:
        """Return the unique name of this sink."""
        ...

    def post(self, body: str, *, purpose: str) -> str | None:
        """Publish *body*; returns a URL for the comment when one exists."""
        ...


class BufferedCommentSink:
    """Collects comments in memory instead of sending them.

    Useful for dry runs and tests.  Call ``flush()`` to retrieve and clear
    the pending comments.
    """

    def __init__(self) -> None:
        self._pending: list[tuple[str, str]] = []

    @property
    def sink_name(self) -> str:
        return "buffered"

    def post(self, body: str, *, purpose: str) -> str | None:
        self._pending.append((purpose, body))
        return None

    def flush(self) -> list[tuple[str, str]]:
        """Return and clear all pending ``(purpose, body)`` pairs."""
        pending = list(self._pending)
        self._pending.clear()
        return pending

    @property
    def pending_count(self) -> int:
        return len(self._pending)


__all__ = [
    "CommentSink",
    "BufferedCommentSink",
    "REPORT_PURPOSE",
    "UNCHANGED_MESSAGE",
    "format_comment",
]
