"""Comparison and verdict models.

A ``ComparisonRecord`` lives only for the duration of one comparison task.
The ``Verdict`` is the pipeline's sole durable output.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class ComparisonRecord(BaseModel):
    """Local and remote content of one file; ``None`` means absent."""

    model_config = ConfigDict(frozen=True)

    path: str
    base_content: bytes | None = None
    new_content: bytes | None = None

    @property
    def changed(self) -> bool:
        # Presence is compared before content so absent != empty.
        if (self.base_content is None) != (self.new_content is None):
            return True
        return self.base_content != self.new_content


class Verdict(BaseModel):
    """Outcome of a verification.

    ``files`` is always sorted.  When ``patches`` is present its keys are
    exactly ``files``.
    """

    model_config = ConfigDict(frozen=True)

    result: bool
    files: list[str] = []
    patches: dict[str, str] | None = None

    @model_validator(mode="after")
    def _check_consistency(self) -> Verdict:
        if self.files != sorted(self.files):
            raise ValueError("verdict files must be sorted")
        if self.result and self.files:
            raise ValueError("an unchanged verdict cannot list changed files")
        if not self.result and not self.files:
            raise ValueError("a changed verdict must list at least one file")
        if self.patches is not None and set(self.patches) != set(self.files):
            raise ValueError("patch keys must match the changed file list")
        return self

    @classmethod
    def unchanged(cls) -> Verdict:
        return cls(result=True)

    @classmethod
    def changed(
        cls, files: list[str], patches: dict[str, str] | None = None
    ) -> Verdict:
        """Build a changed verdict, sorting files and patches explicitly."""
        ordered = sorted(files)
        if patches is not None:
            patches = {path: patches[path] for path in ordered}
        return cls(result=False, files=ordered, patches=patches)

    def as_output(self) -> dict[str, Any]:
        """Return the wire shape: ``{"result": True}`` or the changed form."""
        if self.result:
            return {"result": True}
        output: dict[str, Any] = {"result": False, "files": list(self.files)}
        if self.patches is not None:
            output["patches"] = dict(self.patches)
        return output


class PublishReceipt(BaseModel):
    """Confirmation of a published snapshot."""

    model_config = ConfigDict(frozen=True)

    uri: str
    key: str
    file_count: int
