"""Divergent cumulative bar layout for explained features."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from packages.schema.models import FeatureRecord

RISKY_COLOR = "rgb(255, 13, 87)"
SAFE_COLOR = "rgb(30, 136, 229)"

INCREASING_LABEL = "increasing risk →"
DECREASING_LABEL = "← decreasing risk"


@dataclass(frozen=True)
class WaterfallSegment:
    feature: FeatureRecord
    start: float
    end: float

    @property
    def index(self) -> int:
        return self.feature.index

    @property
    def increases_risk(self) -> bool:
        return self.feature.shap_value > 0


@dataclass(frozen=True)
class DirectionLabel:
    text: str
    anchor: float
    increases_risk: bool


@dataclass(frozen=True)
class WaterfallLayout:
    segments: List[WaterfallSegment]
    domain: Tuple[float, float]
    increasing_label: Optional[DirectionLabel]
    decreasing_label: Optional[DirectionLabel]


def color_for(shap_value: float, risky_color: str = RISKY_COLOR, safe_color: str = SAFE_COLOR) -> str:
    return risky_color if shap_value > 0 else safe_color


def order_features(features: Iterable[FeatureRecord]) -> List[FeatureRecord]:
    """Positive contributions first, then the rest; each block ascending by SHAP."""
    return sorted(features, key=lambda f: (f.shap_value <= 0, f.shap_value))


def layout_waterfall(features: Iterable[FeatureRecord]) -> WaterfallLayout:
    segments: List[WaterfallSegment] = []
    cursor = 0.0
    for feature in order_features(features):
        end = cursor + abs(feature.shap_value)
        segments.append(WaterfallSegment(feature=feature, start=cursor, end=end))
        cursor = end

    domain_end = max((seg.end for seg in segments), default=0.0)

    # Empty sign groups leave their label out instead of anchoring at +/-inf.
    positive_ends = [seg.end for seg in segments if seg.feature.shap_value > 0]
    negative_starts = [seg.start for seg in segments if seg.feature.shap_value < 0]

    increasing = None
    if positive_ends:
        increasing = DirectionLabel(INCREASING_LABEL, max(positive_ends), True)
    decreasing = None
    if negative_starts:
        decreasing = DirectionLabel(DECREASING_LABEL, min(negative_starts), False)

    return WaterfallLayout(
        segments=segments,
        domain=(0.0, domain_end),
        increasing_label=increasing,
        decreasing_label=decreasing,
    )


__all__ = [
    "DECREASING_LABEL",
    "DirectionLabel",
    "INCREASING_LABEL",
    "RISKY_COLOR",
    "SAFE_COLOR",
    "WaterfallLayout",
    "WaterfallSegment",
    "color_for",
    "layout_waterfall",
    "order_features",
]
