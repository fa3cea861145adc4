"""Run the overall-verdict pass and the method pass against a review page."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, List, Optional, Sequence

from packages.config.settings import Settings
from packages.exporters.html import (
    interaction_html,
    legend_html,
    verdict_heading_html,
    waterfall_svg,
)
from packages.interpreter.method_lines import (
    MethodAnnotation,
    filter_predicted_risky,
    match_method_lines,
)
from packages.interpreter.narrative import NarrativeSelection, select_narratives
from packages.interpreter.verdict import interpret_classification
from packages.interpreter.waterfall import WaterfallLayout, layout_waterfall
from packages.page.phabricator import PageAnchor, PhabricatorPage
from packages.retrieval.client import (
    ArtifactSource,
    get_classification_result,
    get_feature_records,
    get_method_records,
)
from packages.schema.models import ClassificationResult, FeatureRecord, MethodRiskRecord, Verdict

logger = logging.getLogger(__name__)


@dataclass
class AnnotationReport:
    diff_id: Optional[str] = None
    verdict: Optional[Verdict] = None
    selection: Optional[NarrativeSelection] = None
    layout: Optional[WaterfallLayout] = None
    annotations: List[MethodAnnotation] = field(default_factory=list)
    unmatched: List[MethodRiskRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def explain_features(
    features: Sequence[FeatureRecord], settings: Settings
) -> tuple[NarrativeSelection, WaterfallLayout]:
    selection = select_narratives(
        features,
        max_explained=settings.max_explained,
        percentile_threshold=settings.percentile_threshold,
    )
    return selection, layout_waterfall(selection.features)


async def explain_diff(source: ArtifactSource, diff_id: str, settings: Settings) -> AnnotationReport:
    """Verdict and feature narrative for a diff, without touching any page."""

    result_task = asyncio.ensure_future(get_classification_result(source, diff_id, settings))
    features_task = asyncio.ensure_future(get_feature_records(source, diff_id, settings))
    try:
        report = AnnotationReport(diff_id=diff_id)
        report.verdict = interpret_classification(await result_task)
        report.selection, report.layout = explain_features(await features_task, settings)
        return report
    finally:
        await _settle([result_task, features_task])


async def annotate_page(
    page: PhabricatorPage, source: ArtifactSource, settings: Settings
) -> AnnotationReport:
    """Inject the verdict box and method comments; each pass fails on its own."""

    report = AnnotationReport()
    try:
        anchor = page.locate_anchor()
    except Exception as exc:
        logger.error("Cannot annotate page: %s", exc)
        report.errors.append(str(exc))
        return report

    diff_id = anchor.diff_id
    report.diff_id = diff_id

    # All three retrievals start now; each is awaited where it is first needed.
    result_task = asyncio.ensure_future(get_classification_result(source, diff_id, settings))
    features_task = asyncio.ensure_future(get_feature_records(source, diff_id, settings))
    methods_task = asyncio.ensure_future(get_method_records(source, diff_id, settings))

    try:
        try:
            await _overall_pass(page, anchor, result_task, features_task, settings, report)
        except Exception as exc:
            logger.exception("Risk analysis failed for diff %s", diff_id)
            report.errors.append(str(exc))

        try:
            await _method_pass(page, methods_task, report)
        except Exception as exc:
            logger.exception("Method-level risk analysis failed for diff %s", diff_id)
            report.errors.append(str(exc))
    finally:
        await _settle([result_task, features_task, methods_task])

    return report


async def _overall_pass(
    page: PhabricatorPage,
    anchor: PageAnchor,
    result_task: Awaitable[ClassificationResult],
    features_task: Awaitable[List[FeatureRecord]],
    settings: Settings,
    report: AnnotationReport,
) -> None:
    verdict = interpret_classification(await result_task)
    report.verdict = verdict
    box = page.insert_verdict_box(anchor, verdict_heading_html(verdict, settings))
    logger.info("Diff %s: %s (%d%%)", report.diff_id, verdict.label, verdict.confidence_percent)

    features = await features_task
    selection, layout = explain_features(features, settings)
    report.selection = selection
    report.layout = layout

    box.append_html(legend_html(selection, settings))
    box.fill_graph(waterfall_svg(layout, settings))
    box.append_html(interaction_html(settings))


async def _method_pass(
    page: PhabricatorPage,
    methods_task: Awaitable[List[MethodRiskRecord]],
    report: AnnotationReport,
) -> None:
    pending = filter_predicted_risky(await methods_task)
    if not pending:
        logger.info("No risky methods for diff %s", report.diff_id)
        return

    matches = match_method_lines(pending, page.file_blocks())
    report.annotations = matches.annotations
    report.unmatched = matches.remaining
    inserted = page.insert_inline_comments(matches.annotations)
    logger.info(
        "Annotated %d risky method(s) for diff %s (%d unmatched)",
        inserted,
        report.diff_id,
        len(matches.remaining),
    )


async def _settle(tasks: Sequence["asyncio.Future"]) -> None:
    # Cancel retrievals no pass consumed; awaited ones were already handled.
    for task in tasks:
        if not task.done():
            task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["AnnotationReport", "annotate_page", "explain_diff", "explain_features"]
