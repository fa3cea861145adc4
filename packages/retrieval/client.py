"""Fetch classify_patch artifacts for a diff and validate them into schema records."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Protocol

import httpx
from pydantic import ValidationError

from packages.config.settings import Settings
from packages.schema.errors import MalformedRecordError, RetrievalError
from packages.schema.models import (
    ClassificationResult,
    FeatureRecord,
    MethodRiskRecord,
    parse_records,
)

logger = logging.getLogger(__name__)


class ArtifactUnavailable(Exception):
    """A source could not produce the requested artifact."""


class ArtifactSource(Protocol):
    async def fetch_json(self, diff_id: str, artifact: str) -> Any:
        ...


class HttpArtifactSource:
    """Reads artifacts from the Taskcluster index over HTTP.

    The caller owns ``client``; every artifact of a run shares its connection pool.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient) -> None:
        self.settings = settings
        self._client = client

    async def fetch_json(self, diff_id: str, artifact: str) -> Any:
        return await self._get(self._client, self.settings.artifact_url(diff_id, artifact))

    async def _get(self, client: httpx.AsyncClient, url: str) -> Any:
        logger.debug("GET %s", url)
        try:
            response = await client.get(url, timeout=self.settings.timeout_seconds)
        except httpx.TimeoutException as exc:
            raise ArtifactUnavailable(f"timed out fetching {url}") from exc
        except httpx.RequestError as exc:
            raise ArtifactUnavailable(f"request to {url} failed: {exc}") from exc

        if not response.is_success:
            raise ArtifactUnavailable(f"HTTP {response.status_code} from {url}")
        try:
            return response.json()
        except ValueError as exc:
            raise ArtifactUnavailable(f"invalid JSON from {url}") from exc


class LocalArtifactSource:
    """Reads artifacts previously saved under ``<root>/<diff_id>/``."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def path_for(self, diff_id: str, artifact: str) -> Path:
        return self.root / str(diff_id) / artifact

    async def fetch_json(self, diff_id: str, artifact: str) -> Any:
        path = self.path_for(diff_id, artifact)
        if not path.exists():
            raise ArtifactUnavailable(f"{path} not found")
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except ValueError as exc:
            raise ArtifactUnavailable(f"invalid JSON in {path}") from exc


async def _fetch(source: ArtifactSource, diff_id: str, artifact: str, kind: str) -> Any:
    try:
        return await source.fetch_json(diff_id, artifact)
    except ArtifactUnavailable as exc:
        raise RetrievalError(kind, diff_id, str(exc)) from exc  # type: ignore[arg-type]


async def get_classification_result(
    source: ArtifactSource, diff_id: str, settings: Settings
) -> ClassificationResult:
    payload = await _fetch(source, diff_id, settings.result_artifact, "result")
    try:
        return ClassificationResult.from_payload(payload)
    except ValueError as exc:
        raise MalformedRecordError(f"Malformed classification result for diff {diff_id}: {exc}") from exc


async def get_feature_records(
    source: ArtifactSource, diff_id: str, settings: Settings
) -> List[FeatureRecord]:
    payload = await _fetch(source, diff_id, settings.features_artifact, "features")
    try:
        features: List[FeatureRecord] = parse_records(FeatureRecord, payload, "features")
    except (ValidationError, ValueError) as exc:
        raise MalformedRecordError(f"Malformed feature record for diff {diff_id}: {exc}") from exc

    seen = set()
    for feature in features:
        if feature.index in seen:
            raise MalformedRecordError(f"Duplicate feature index {feature.index} for diff {diff_id}")
        seen.add(feature.index)
    return features


async def get_method_records(
    source: ArtifactSource, diff_id: str, settings: Settings
) -> List[MethodRiskRecord]:
    payload = await _fetch(source, diff_id, settings.methods_artifact, "methods")
    try:
        return parse_records(MethodRiskRecord, payload, "methods")
    except (ValidationError, ValueError) as exc:
        raise MalformedRecordError(f"Malformed method record for diff {diff_id}: {exc}") from exc


__all__ = [
    "ArtifactSource",
    "ArtifactUnavailable",
    "HttpArtifactSource",
    "LocalArtifactSource",
    "get_classification_result",
    "get_feature_records",
    "get_method_records",
]
