"""Attach risky-function records to the diff lines a reviewer actually sees.

Diffs only show changed lines, so a method rarely appears at its exact start
line. Each record is attached to the first displayed line of its file whose
number is at or past the method's start line.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence

from packages.schema.models import MethodRiskRecord
from packages.schema.numbers import round_half_up

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiffLine:
    number: Optional[int]
    element: Any = None


@dataclass(frozen=True)
class DiffFileBlock:
    file_name: str
    lines: Sequence[DiffLine]


@dataclass(frozen=True)
class MethodAnnotation:
    record: MethodRiskRecord
    anchor_line: int
    element: Any = None

    @property
    def file_name(self) -> str:
        return self.record.file_name

    @property
    def text(self) -> str:
        return method_annotation_text(self.record)


@dataclass
class MatchResult:
    annotations: List[MethodAnnotation] = field(default_factory=list)
    remaining: List[MethodRiskRecord] = field(default_factory=list)


def method_annotation_text(record: MethodRiskRecord) -> str:
    confidence = round_half_up(100 * record.confidence)
    return f"The function '{record.method_name}' is risky ({confidence}% confidence)."


def filter_predicted_risky(records: Iterable[MethodRiskRecord]) -> List[MethodRiskRecord]:
    return [record for record in records if record.predicted_risky]


def match_method_lines(
    pending: Sequence[MethodRiskRecord],
    blocks: Iterable[DiffFileBlock],
) -> MatchResult:
    """Match each pending record at most once; ``pending`` itself is left untouched."""

    result = MatchResult(remaining=list(pending))
    if not result.remaining:
        return result

    for block in blocks:
        for line in block.lines:
            if line.number is None:
                continue

            # Walk back to front and retire every record this line has passed.
            hits: List[MethodRiskRecord] = []
            kept: List[MethodRiskRecord] = []
            for record in reversed(result.remaining):
                if record.file_name == block.file_name and record.start_line <= line.number:
                    hits.append(record)
                else:
                    kept.append(record)

            if hits:
                kept.reverse()
                result.remaining = kept
                for record in reversed(hits):
                    result.annotations.append(
                        MethodAnnotation(record=record, anchor_line=line.number, element=line.element)
                    )
                logger.debug(
                    "Matched %d method(s) at %s:%d", len(hits), block.file_name, line.number
                )

            if not result.remaining:
                return result

    return result


__all__ = [
    "DiffFileBlock",
    "DiffLine",
    "MatchResult",
    "MethodAnnotation",
    "filter_predicted_risky",
    "match_method_lines",
    "method_annotation_text",
]
