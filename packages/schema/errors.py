# Error kinds surfaced by the annotation pipeline.
from __future__ import annotations

from typing import Literal

RetrievalKind = Literal["result", "features", "methods"]

_RETRIEVAL_SUBJECTS = {
    "result": "risk analysis results",
    "features": "risk analysis features",
    "methods": "method-level risk analysis",
}


class DiffRiskError(Exception):
    """Base class for all diffrisk failures."""


class RetrievalError(DiffRiskError):
    """An artifact fetch returned a non-success outcome."""

    def __init__(self, kind: RetrievalKind, diff_id: str, detail: str = "") -> None:
        self.kind = kind
        self.diff_id = diff_id
        self.detail = detail
        message = f"Error fetching {_RETRIEVAL_SUBJECTS[kind]} for diff {diff_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PreconditionError(DiffRiskError):
    """The page lacks the diff id or the anchor box."""


class MalformedRecordError(DiffRiskError):
    """A feature or method record is missing fields or carries non-numeric data."""
