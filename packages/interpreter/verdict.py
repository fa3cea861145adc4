"""Overall verdict for a classified patch."""
from __future__ import annotations

from packages.schema.models import ClassificationResult, Verdict
from packages.schema.numbers import round_half_up


def interpret_classification(result: ClassificationResult) -> Verdict:
    """Map the probability pair to a label and a confidence percentage.

    The comparison is strict, so an exact tie reads as "Not risky".
    """

    risky = result.risky_probability > result.non_risky_probability
    winning = result.risky_probability if risky else result.non_risky_probability
    return Verdict(
        label="Risky" if risky else "Not risky",
        confidence_percent=round_half_up(100 * winning),
    )


__all__ = ["interpret_classification"]
