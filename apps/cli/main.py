
"""Typer CLI entrypoint for diffrisk."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence

import httpx
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from packages.config.settings import Settings, load_settings
from packages.exporters.jsonl import write_jsonl
from packages.page.phabricator import PhabricatorPage
from packages.pipeline.runner import AnnotationReport, annotate_page, explain_diff
from packages.retrieval.client import ArtifactSource, HttpArtifactSource, LocalArtifactSource
from packages.schema.errors import DiffRiskError

app = typer.Typer(add_completion=False)
console = Console()

_VALID_FORMATS = {"html", "json", "table"}
_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


def _normalize_formats(values: Sequence[str]) -> List[str]:
    if not values:
        return ["html"]
    normalized = []
    for value in values:
        fmt = value.lower()
        if fmt not in _VALID_FORMATS:
            raise typer.BadParameter(
                f"Unsupported format '{value}'. Choose from {sorted(_VALID_FORMATS)}"
            )
        if fmt not in normalized:
            normalized.append(fmt)
    return normalized


def _configure_logging(level: str) -> None:
    name = level.upper()
    if name not in _VALID_LOG_LEVELS:
        raise typer.BadParameter(
            f"Unsupported log level '{level}'. Choose from {sorted(_VALID_LOG_LEVELS)}"
        )
    logging.basicConfig(
        level=getattr(logging, name),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_settings(config: Optional[Path]) -> Settings:
    try:
        return load_settings(config)
    except FileNotFoundError as exc:
        raise typer.BadParameter(str(exc)) from exc


async def _with_source(
    settings: Settings,
    artifacts_dir: Optional[Path],
    run: Callable[[ArtifactSource], Awaitable[AnnotationReport]],
) -> AnnotationReport:
    if artifacts_dir is not None:
        return await run(LocalArtifactSource(artifacts_dir))
    async with httpx.AsyncClient(follow_redirects=True) as client:
        return await run(HttpArtifactSource(settings, client))


@app.command()
def annotate(
    page: Path = typer.Argument(..., help="Saved Phabricator revision page (HTML)"),
    out: Path = typer.Option(Path("artifacts/annotated.html"), "--out", help="Output path for the annotated page"),
    artifacts_dir: Optional[Path] = typer.Option(
        None, "--artifacts-dir", help="Read artifacts from <dir>/<diff id>/ instead of the index"
    ),
    format: List[str] = typer.Option(
        ["html"], "--format", help="Repeatable option: html, json, table"
    ),
    fail_on_risky: bool = typer.Option(
        False, "--fail-on-risky", help="Exit with status 1 when the diff is classified as risky"
    ),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings YAML file"),
    log_level: str = typer.Option("WARNING", "--log-level", help="DEBUG|INFO|WARNING|ERROR"),
) -> None:
    """Inject the risk verdict, feature explanation and method comments into a page."""

    _configure_logging(log_level)
    formats = _normalize_formats(format)
    settings = _load_settings(config)

    if not page.is_file():
        raise typer.BadParameter(f"Page file not found: {page}")

    console.log(f"Annotating {page} formats={formats}")
    document = PhabricatorPage(page.read_text(encoding="utf-8"), settings)
    report = asyncio.run(
        _with_source(settings, artifacts_dir, lambda source: annotate_page(document, source, settings))
    )

    for message in report.errors:
        console.print(f"[red]{escape(message)}[/]")

    _export_results(report, document, formats=formats, out=out)

    if report.verdict is not None:
        console.log(
            f"Diff {report.diff_id}: {report.verdict.label} "
            f"({report.verdict.confidence_percent}%), "
            f"{len(report.annotations)} method comment(s)"
        )

    if fail_on_risky and report.verdict is not None and report.verdict.is_risky:
        console.print("[red]Diff classified as risky[/]")
        raise typer.Exit(code=1)
    raise typer.Exit(code=0)


@app.command()
def explain(
    diff_id: str = typer.Argument(..., help="Phabricator diff id"),
    artifacts_dir: Optional[Path] = typer.Option(
        None, "--artifacts-dir", help="Read artifacts from <dir>/<diff id>/ instead of the index"
    ),
    config: Optional[Path] = typer.Option(None, "--config", help="Settings YAML file"),
    log_level: str = typer.Option("WARNING", "--log-level", help="DEBUG|INFO|WARNING|ERROR"),
) -> None:
    """Print the verdict and the explained features for a diff."""

    _configure_logging(log_level)
    settings = _load_settings(config)

    try:
        report = asyncio.run(
            _with_source(settings, artifacts_dir, lambda source: explain_diff(source, diff_id, settings))
        )
    except DiffRiskError as exc:
        console.print(f"[red]{escape(str(exc))}[/]")
        raise typer.Exit(code=2) from exc

    _print_report(report)
    raise typer.Exit(code=0)


def _print_report(report: AnnotationReport) -> None:
    if report.verdict is not None:
        style = "red" if report.verdict.is_risky else "blue"
        console.print(
            f"Diff {report.diff_id}: [bold {style}]{report.verdict.label}[/] "
            f"with {report.verdict.confidence_percent}% confidence"
        )

    if report.selection is not None and report.layout is not None:
        intervals = {seg.index: seg for seg in report.layout.segments}
        table = Table(title="Explained features")
        table.add_column("#", justify="right")
        table.add_column("Explanation")
        table.add_column("SHAP", justify="right")
        table.add_column("Interval", justify="right")
        for item in report.selection.explained:
            seg = intervals[item.feature.index]
            style = "red" if item.is_risk_direction else "blue"
            table.add_row(
                str(item.feature.index),
                f"[{style}]{escape(item.text)}[/]",
                f"{item.feature.shap_value:+.4f}",
                f"{seg.start:.4f}–{seg.end:.4f}",
            )
        console.print(table)

    if report.annotations:
        table = Table(title="Risky functions")
        table.add_column("Function")
        table.add_column("Location")
        table.add_column("Comment after line", justify="right")
        table.add_column("Confidence", justify="right")
        for annotation in report.annotations:
            table.add_row(
                escape(annotation.record.method_name),
                f"{annotation.file_name}:{annotation.record.start_line}",
                str(annotation.anchor_line),
                f"{annotation.record.confidence:.2f}",
            )
        console.print(table)


def _export_results(
    report: AnnotationReport,
    document: PhabricatorPage,
    *,
    formats: Sequence[str],
    out: Path,
) -> dict[str, Path]:
    fmt_set = set(formats)
    outputs: dict[str, Path] = {}

    if "html" in fmt_set:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(document.render(), encoding="utf-8")
        outputs["html"] = out

    if "json" in fmt_set:
        json_path = out if out.suffix == ".jsonl" and fmt_set == {"json"} else out.with_suffix(".jsonl")
        write_jsonl(json_path, report)
        outputs["json"] = json_path

    if "table" in fmt_set:
        _print_report(report)

    return outputs


if __name__ == "__main__":  # pragma: no cover - manual execution
    app()
