# HTML fragments injected into the review page: verdict heading, legend, waterfall SVG.
from __future__ import annotations

from html import escape
from typing import List

from packages.config.settings import Settings
from packages.interpreter.narrative import ExplainedFeature, NarrativeSelection
from packages.interpreter.waterfall import WaterfallLayout, color_for
from packages.schema.models import Verdict

GRAPH_ID = "riskAnalysisGraph"
_MARGIN = {"top": 30, "right": 20, "bottom": 30, "left": 20}
_BAR_GAP = 3

SHOW_PLOT = "Show feature plot"
HIDE_PLOT = "Hide feature plot"

_STYLE_TEMPLATE = """
.diffrisk-text {{ transition: background-color 200ms cubic-bezier(0.65, 0, 0.35, 1); }}
.diffrisk-text.diffrisk-active.diffrisk-risky {{ background-color: {risky}; }}
.diffrisk-text.diffrisk-active.diffrisk-safe {{ background-color: {safe}; }}
.diffrisk-bar {{ transition: filter 200ms cubic-bezier(0.65, 0, 0.35, 1); }}
.diffrisk-bar.diffrisk-active {{ filter: url(#glow); }}
"""

# Highlight is a class toggle keyed by feature index, so repeated enter/leave
# events never stack.
HIGHLIGHT_SCRIPT = """
(function () {
  function setActive(index, active) {
    ["text", "bar"].forEach(function (part) {
      var el = document.getElementById("feature_" + index + "_" + part);
      if (el) {
        el.classList.toggle("diffrisk-active", active);
      }
    });
  }
  document.querySelectorAll("span.diffrisk-text, rect.diffrisk-bar").forEach(function (el) {
    var index = el.getAttribute("data-feature-index");
    el.addEventListener("mouseenter", function () { setActive(index, true); });
    el.addEventListener("mouseleave", function () { setActive(index, false); });
  });
  document.querySelectorAll("a.diffrisk-plot-toggle").forEach(function (link) {
    link.addEventListener("click", function () {
      var plot = document.getElementById("feature_" + link.getAttribute("data-feature-index") + "_plot");
      if (!plot) {
        return;
      }
      var hidden = link.textContent === "%(show)s";
      plot.style.display = hidden ? "" : "none";
      link.textContent = hidden ? "%(hide)s" : "%(show)s";
    });
  });
})();
""" % {"show": SHOW_PLOT, "hide": HIDE_PLOT}


def verdict_heading_html(verdict: Verdict, settings: Settings) -> str:
    color = settings.risky_color if verdict.is_risky else settings.safe_color
    return (
        f'Diff Risk Analysis - <span style="color:{color};">{verdict.label}</span>'
        f" with {verdict.confidence_percent}% confidence"
    )


def graph_container_html(settings: Settings) -> str:
    return f'<div id="{GRAPH_ID}" style="width:100%;height:{settings.chart_height}px;"></div>'


def _legend_item(item: ExplainedFeature, settings: Settings) -> str:
    feature = item.feature
    index = feature.index
    color = color_for(feature.shap_value, settings.risky_color, settings.safe_color)
    tone = "diffrisk-risky" if item.is_risk_direction else "diffrisk-safe"
    message = (
        f"<b>{escape(feature.name)}</b> is "
        f'<span style="font-weight:bold;color:{color}">{item.adjective}</span> '
        f"({item.display_value}), as in {item.percent}% of {item.population}."
    )
    parts = [
        f'<li style="margin-left:28px" data-index="{index}">',
        f'<span id="feature_{index}_text" class="diffrisk-text {tone}" '
        f'data-feature-index="{index}">{message}</span>',
    ]
    if feature.plot:
        parts.append(
            f' <a class="diffrisk-plot-toggle" data-feature-index="{index}" '
            f'style="font-size:x-small">{SHOW_PLOT}</a>'
        )
        parts.append(
            f'<img id="feature_{index}_plot" src="data:image/png;base64,{escape(feature.plot)}" '
            f'style="max-width:95%;display:none"/>'
        )
    parts.append("</li>")
    return "".join(parts)


def legend_html(selection: NarrativeSelection, settings: Settings) -> str:
    items = "".join(_legend_item(item, settings) for item in selection.explained)
    return (
        '<div class="diffrisk-legend">'
        f'<ul style="list-style-type:upper-roman">{items}</ul>'
        "</div>"
        "<br/>"
        f'<a href="{escape(settings.feature_importance_url)}" target="_blank" '
        'style="font-size:x-small">See the most important features considered by the model</a>'
    )


def waterfall_svg(layout: WaterfallLayout, settings: Settings) -> str:
    width = settings.chart_width - _MARGIN["left"] - _MARGIN["right"]
    height = settings.chart_height - _MARGIN["top"] - _MARGIN["bottom"]
    domain_end = layout.domain[1]

    def x(value: float) -> float:
        if domain_end <= 0:
            return 0.0
        return value / domain_end * width

    bar_height = height * 0.9
    body: List[str] = [
        f'<line x1="0" y1="{height}" x2="{width}" y2="{height}" stroke="currentColor"/>'
    ]

    if layout.increasing_label is not None:
        body.append(
            f'<text x="{x(layout.increasing_label.anchor) - 8:.2f}" y="-5" text-anchor="end" '
            f'fill="{settings.risky_color}" font-size="12">{escape(layout.increasing_label.text)}</text>'
        )
    if layout.decreasing_label is not None:
        body.append(
            f'<text x="{x(layout.decreasing_label.anchor) + 5:.2f}" y="-5" text-anchor="start" '
            f'fill="{settings.safe_color}" font-size="12">{escape(layout.decreasing_label.text)}</text>'
        )

    for segment in layout.segments:
        bar_width = max(x(segment.end) - x(segment.start) - _BAR_GAP, 0.0)
        fill = color_for(segment.feature.shap_value, settings.risky_color, settings.safe_color)
        body.append(
            f'<rect id="feature_{segment.index}_bar" class="bar diffrisk-bar" '
            f'data-feature-index="{segment.index}" fill="{fill}" '
            f'x="{x(segment.start):.2f}" y="0" width="{bar_width:.2f}" height="{bar_height:.2f}"/>'
        )

    return (
        f'<svg width="{settings.chart_width}" height="{settings.chart_height}">'
        "<defs>"
        '<filter id="glow">'
        '<feGaussianBlur stdDeviation="3.5" result="coloredBlur"/>'
        '<feMerge><feMergeNode in="coloredBlur"/><feMergeNode in="SourceGraphic"/></feMerge>'
        "</filter>"
        "</defs>"
        f'<g transform="translate({_MARGIN["left"]},{_MARGIN["top"]})">'
        + "".join(body)
        + "</g></svg>"
    )


def interaction_html(settings: Settings) -> str:
    style = _STYLE_TEMPLATE.format(risky=settings.risky_color, safe=settings.safe_color)
    return f"<style>{style}</style><script>{HIGHLIGHT_SCRIPT}</script>"


__all__ = [
    "GRAPH_ID",
    "graph_container_html",
    "interaction_html",
    "legend_html",
    "verdict_heading_html",
    "waterfall_svg",
]
