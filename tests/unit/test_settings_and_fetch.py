import json

import pytest

from conftest import DIFF_ID, default_payloads
from diffrisk.artifacts import fetch
from packages.config.settings import Settings, load_settings
from packages.retrieval.client import ArtifactUnavailable


def test_defaults_match_shipped_config():
    settings = load_settings()
    assert settings == Settings()
    assert settings.max_explained == 5
    assert settings.percentile_threshold == 0.55


def test_yaml_and_env_overrides(tmp_path, monkeypatch):
    config = tmp_path / "diffrisk.yaml"
    config.write_text("max_explained: 3\nchart_width: 640\n", encoding="utf-8")
    monkeypatch.setenv("DIFFRISK_INDEX_URL", "https://index.example/api/")
    monkeypatch.setenv("DIFFRISK_TIMEOUT", "5")

    settings = load_settings(config)

    assert settings.max_explained == 3
    assert settings.chart_width == 640
    assert settings.timeout_seconds == 5.0
    assert settings.artifact_url("1", "probs.json").startswith(
        "https://index.example/api/project.relman.bugbug.classify_patch.diff.1/"
    )


def test_explicit_missing_config_is_an_error(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "nope.yaml")


def test_config_env_var_selects_file(tmp_path, monkeypatch):
    config = tmp_path / "alt.yaml"
    config.write_text("percentile_threshold: 0.6\n", encoding="utf-8")
    monkeypatch.setenv("DIFFRISK_CONFIG", str(config))
    assert load_settings().percentile_threshold == 0.6


class _FakeHttpSource:
    missing = set()

    def __init__(self, settings, client):
        self.payloads = default_payloads()

    async def fetch_json(self, diff_id, artifact):
        if artifact in self.missing:
            raise ArtifactUnavailable(f"HTTP 404 for {artifact}")
        return self.payloads[artifact]


def test_fetch_saves_all_artifacts(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(fetch, "HttpArtifactSource", _FakeHttpSource)
    monkeypatch.setattr(_FakeHttpSource, "missing", set())

    assert fetch.main([DIFF_ID, "--dest", str(tmp_path)]) == 0

    saved = json.loads((tmp_path / DIFF_ID / "probs.json").read_text())
    assert saved == [0.2, 0.8]
    assert (tmp_path / DIFF_ID / "method_level.json").exists()
    assert "ready for --artifacts-dir" in capsys.readouterr().out


def test_fetch_reports_missing_artifact(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(fetch, "HttpArtifactSource", _FakeHttpSource)
    monkeypatch.setattr(_FakeHttpSource, "missing", {"method_level.json"})

    assert fetch.main([DIFF_ID, "--dest", str(tmp_path)]) == 1

    assert (tmp_path / DIFF_ID / "importances.json").exists()
    assert not (tmp_path / DIFF_ID / "method_level.json").exists()
    assert "Failed to fetch 'method_level.json'" in capsys.readouterr().err
