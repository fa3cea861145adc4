from bs4 import BeautifulSoup

from conftest import feature_payload
from packages.config.settings import Settings
from packages.exporters.html import HIGHLIGHT_SCRIPT, legend_html
from packages.interpreter.narrative import select_narratives
from packages.schema.models import FeatureRecord


def test_hover_binds_only_legend_text_and_bars():
    assert 'querySelectorAll("span.diffrisk-text, rect.diffrisk-bar")' in HIGHLIGHT_SCRIPT
    assert 'querySelectorAll("[data-feature-index]")' not in HIGHLIGHT_SCRIPT


def test_plot_toggle_is_not_a_hover_target():
    feature = FeatureRecord.model_validate(feature_payload(index=0, perc_buggy_values_higher_than_median=0.7))
    soup = BeautifulSoup(legend_html(select_narratives([feature]), Settings()), "html.parser")

    hover_targets = soup.select("span.diffrisk-text, rect.diffrisk-bar")
    assert [el.get("id") for el in hover_targets] == ["feature_0_text"]
    toggle = soup.select_one("a.diffrisk-plot-toggle")
    assert toggle is not None
    assert toggle not in hover_targets
