# JSONL report writer: one record per verdict, explained feature and method annotation.
from pathlib import Path
from typing import Any, Dict, Iterator
import json

from packages.pipeline.runner import AnnotationReport


def report_records(report: AnnotationReport) -> Iterator[Dict[str, Any]]:
    if report.verdict is not None:
        yield {
            "type": "verdict",
            "diff_id": report.diff_id,
            "label": report.verdict.label,
            "confidence": report.verdict.confidence_percent,
        }

    intervals = {}
    if report.layout is not None:
        intervals = {seg.index: (seg.start, seg.end) for seg in report.layout.segments}
    if report.selection is not None:
        for item in report.selection.explained:
            start, end = intervals.get(item.feature.index, (None, None))
            yield {
                "type": "feature",
                "diff_id": report.diff_id,
                "index": item.feature.index,
                "name": item.feature.name,
                "shap": item.feature.shap_value,
                "branch": item.branch,
                "increases_risk": item.is_risk_direction,
                "text": item.text,
                "start": start,
                "end": end,
            }

    for annotation in report.annotations:
        yield {
            "type": "method",
            "diff_id": report.diff_id,
            "file": annotation.file_name,
            "method": annotation.record.method_name,
            "start_line": annotation.record.start_line,
            "anchor_line": annotation.anchor_line,
            "confidence": annotation.record.confidence,
            "text": annotation.text,
        }

    for message in report.errors:
        yield {"type": "error", "diff_id": report.diff_id, "message": message}


def write_jsonl(path: Path, report: AnnotationReport) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        for rec in report_records(report):
            f.write(json.dumps(rec, ensure_ascii=False) + "\n")
