# Numeric hygiene for artifact payloads. Applied once, at ingestion.
from __future__ import annotations

import math
from typing import Any


def parse_number(raw: Any) -> float:
    """Normalize a payload number.

    Accepts ints, floats and numeric strings. A string wrapped in parentheses
    denotes a negative number, so ``"(3.5)"`` parses to ``-3.5``.
    """

    if isinstance(raw, bool):
        raise ValueError(f"Expected a number, got boolean {raw!r}")
    if isinstance(raw, (int, float)):
        return float(raw)
    if not isinstance(raw, str):
        raise ValueError(f"Expected a number, got {type(raw).__name__}")

    text = raw.strip()
    negate = False
    if len(text) >= 2 and text.startswith("(") and text.endswith(")"):
        text = text[1:-1].strip()
        negate = True
    if not text:
        raise ValueError(f"Empty numeric value {raw!r}")

    try:
        value = float(text)
    except ValueError as exc:
        raise ValueError(f"Not a numeric value: {raw!r}") from exc
    return -value if negate else value


def round_half_up(value: float) -> int:
    # .5 always rounds up, unlike round()
    return int(math.floor(value + 0.5))


__all__ = ["parse_number", "round_half_up"]
