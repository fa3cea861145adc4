"""CLI helper to pre-download classify_patch artifacts for offline annotation."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import httpx

from packages.config.settings import Settings, load_settings
from packages.retrieval.client import ArtifactUnavailable, HttpArtifactSource


async def _download(settings: Settings, diff_id: str, dest: Path) -> List[str]:
    artifacts = [settings.result_artifact, settings.features_artifact, settings.methods_artifact]
    target_dir = dest / diff_id
    target_dir.mkdir(parents=True, exist_ok=True)

    async with httpx.AsyncClient(follow_redirects=True) as client:
        source = HttpArtifactSource(settings, client)
        payloads = await asyncio.gather(
            *(source.fetch_json(diff_id, name) for name in artifacts),
            return_exceptions=True,
        )

    failed: List[str] = []
    for name, payload in zip(artifacts, payloads):
        if isinstance(payload, ArtifactUnavailable):
            print(f"[diffrisk] Failed to fetch '{name}': {payload}", file=sys.stderr)
            failed.append(name)
            continue
        if isinstance(payload, BaseException):
            raise payload
        (target_dir / name).write_text(json.dumps(payload), encoding="utf-8")
        print(f"[diffrisk] Saved {target_dir / name}")
    return failed


def fetch_artifacts(diff_id: str, dest: Path, config: Optional[Path] = None) -> int:
    """Download the three artifacts of a diff into ``dest/<diff_id>/``."""

    try:
        settings = load_settings(config)
    except FileNotFoundError as exc:
        print(f"[diffrisk] {exc}", file=sys.stderr)
        return 2

    failed = asyncio.run(_download(settings, diff_id, dest))
    if failed:
        print(
            f"[diffrisk] {len(failed)} artifact(s) missing for diff {diff_id}; "
            "annotation will skip the passes that need them.",
            file=sys.stderr,
        )
        return 1
    print(f"[diffrisk] Diff {diff_id} ready for --artifacts-dir {dest}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Download diffrisk artifacts for a diff")
    parser.add_argument("diff_id", help="Phabricator diff id")
    parser.add_argument("--dest", type=Path, default=Path("artifacts"), help="Destination directory")
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML file")
    args = parser.parse_args(argv)
    return fetch_artifacts(args.diff_id, args.dest, args.config)


if __name__ == "__main__":
    raise SystemExit(main())
