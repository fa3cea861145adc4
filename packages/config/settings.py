"""Runtime settings loaded from config/diffrisk.yaml with env overrides."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field

from packages.interpreter.narrative import DEFAULT_MAX_EXPLAINED, DEFAULT_PERCENTILE_THRESHOLD
from packages.interpreter.waterfall import RISKY_COLOR, SAFE_COLOR

_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "diffrisk.yaml"


class Settings(BaseModel):
    index_url: str = "https://community-tc.services.mozilla.com/api/index/v1/task"
    task_namespace: str = "project.relman.bugbug.classify_patch.diff"
    result_artifact: str = "probs.json"
    features_artifact: str = "importances.json"
    methods_artifact: str = "method_level.json"
    timeout_seconds: float = Field(default=30.0, gt=0)

    max_explained: int = Field(default=DEFAULT_MAX_EXPLAINED, ge=0)
    percentile_threshold: float = Field(default=DEFAULT_PERCENTILE_THRESHOLD, ge=0.0, le=1.0)

    risky_color: str = RISKY_COLOR
    safe_color: str = SAFE_COLOR
    chart_width: int = Field(default=800, gt=0)
    chart_height: int = Field(default=90, gt=0)

    anchor_box_selector: str = "div.phui-object-box"
    feature_importance_url: str = (
        "https://community-tc.services.mozilla.com/api/index/v1/task/"
        "project.relman.bugbug.train_regressor.latest/artifacts/public/feature_importance.png"
    )

    def artifact_url(self, diff_id: str, artifact: str) -> str:
        return f"{self.index_url.rstrip('/')}/{self.task_namespace}.{diff_id}/artifacts/public/{artifact}"


def load_settings(path: Optional[Path] = None) -> Settings:
    """Read settings from YAML; a missing default file means built-in defaults."""

    config_path = path
    if config_path is None:
        override = os.environ.get("DIFFRISK_CONFIG")
        config_path = Path(override) if override else _CONFIG_PATH

    data: Dict[str, Any] = {}
    if config_path.exists():
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    elif path is not None or os.environ.get("DIFFRISK_CONFIG"):
        raise FileNotFoundError(f"Config file missing: {config_path}")

    index_url = os.environ.get("DIFFRISK_INDEX_URL")
    if index_url:
        data["index_url"] = index_url
    timeout = os.environ.get("DIFFRISK_TIMEOUT")
    if timeout:
        data["timeout_seconds"] = float(timeout)

    return Settings(**data)


__all__ = ["Settings", "load_settings"]
