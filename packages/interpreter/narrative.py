"""Pick the features worth explaining and phrase them for reviewers.

A feature is narrated only when three signals agree: the direction of its
SHAP contribution, the sign of its historical monotonic trend, and which
population median (bug-introducing or clean) the patch's value sits closer
to. Even then it is dropped unless enough historical patches back it up.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Sequence

from packages.schema.models import FeatureRecord
from packages.schema.numbers import round_half_up

logger = logging.getLogger(__name__)

Branch = Literal["A", "B", "C", "D"]

DEFAULT_MAX_EXPLAINED = 5
DEFAULT_PERCENTILE_THRESHOLD = 0.55

_RISKY_POPULATION = "patches introducing regressions"
_SAFE_POPULATION = "patches not introducing regressions"


@dataclass(frozen=True)
class _BranchRule:
    branch: Branch
    percentile_field: str
    adjective: str
    risk_direction: bool


_RULES: Dict[Branch, _BranchRule] = {
    "A": _BranchRule("A", "percentile_buggy_higher", "too large", True),
    "B": _BranchRule("B", "percentile_buggy_lower", "too small", True),
    "C": _BranchRule("C", "percentile_clean_lower", "small", False),
    "D": _BranchRule("D", "percentile_clean_higher", "large", False),
}


@dataclass(frozen=True)
class ExplainedFeature:
    feature: FeatureRecord
    branch: Branch
    adjective: str
    percent: int
    is_risk_direction: bool

    @property
    def display_value(self) -> int:
        return round_half_up(self.feature.value)

    @property
    def population(self) -> str:
        return _RISKY_POPULATION if self.is_risk_direction else _SAFE_POPULATION

    @property
    def text(self) -> str:
        return (
            f"{self.feature.name} is {self.adjective} ({self.display_value}), "
            f"as in {self.percent}% of {self.population}."
        )


@dataclass
class NarrativeSelection:
    explained: List[ExplainedFeature] = field(default_factory=list)
    chosen: Dict[int, bool] = field(default_factory=dict)

    @property
    def features(self) -> List[FeatureRecord]:
        return [item.feature for item in self.explained]


def classify_branch(feature: FeatureRecord) -> Optional[Branch]:
    """Return the narrative branch for a feature, or None when signals disagree."""

    value = round_half_up(feature.value)
    to_buggy = abs(value - feature.median_bug_introducing)
    to_clean = abs(value - feature.median_clean)
    shap = feature.shap_value
    trend = feature.monotonicity

    if to_buggy < to_clean and shap > 0:
        if trend > 0:
            return "A"
        if trend < 0:
            return "B"
    elif to_clean < to_buggy and shap < 0:
        if trend > 0:
            return "C"
        if trend < 0:
            return "D"
    return None


def select_narratives(
    features: Sequence[FeatureRecord],
    max_explained: int = DEFAULT_MAX_EXPLAINED,
    percentile_threshold: float = DEFAULT_PERCENTILE_THRESHOLD,
) -> NarrativeSelection:
    """Walk features in ranking order and keep at most ``max_explained`` narratives."""

    selection = NarrativeSelection()
    remaining = max_explained
    if remaining <= 0:
        return selection

    minimum_percent = round_half_up(percentile_threshold * 100)
    for feature in features:
        branch = classify_branch(feature)
        if branch is None:
            logger.debug("No narrative for feature %s (%s)", feature.index, feature.name)
            continue

        rule = _RULES[branch]
        percent = round_half_up(100 * getattr(feature, rule.percentile_field))
        if percent < minimum_percent:
            logger.debug(
                "Feature %s below percentile threshold (%s%% < %s%%)",
                feature.index,
                percent,
                minimum_percent,
            )
            continue

        selection.explained.append(
            ExplainedFeature(
                feature=feature,
                branch=branch,
                adjective=rule.adjective,
                percent=percent,
                is_risk_direction=feature.shap_value > 0,
            )
        )
        selection.chosen[feature.index] = feature.shap_value > 0

        remaining -= 1
        if remaining == 0:
            break

    return selection


__all__ = [
    "ExplainedFeature",
    "NarrativeSelection",
    "classify_branch",
    "select_narratives",
]
