import json
from pathlib import Path

import pytest


REVIEW_PAGE = """<html><body>
<div class="phui-object-box" id="revision"><div class="phui-header-shell"><span class="phui-header-header">D4321 Fix crash in layout</span></div></div>
<div class="phui-object-box" id="history"><div class="phui-header-shell"><span class="phui-header-header">Diff 98765</span></div></div>
<div class="phui-object-box" id="detail"><div class="phui-header-shell"><h1><span class="phui-header-header">Diff Detail</span></h1></div><div data-sigil="phui-tab-group-view"><div class="summary">Lint OK</div><div class="tests">Unit tests passed</div></div></div>
<div data-sigil="differential-changeset">
<h1 class="differential-file-icon-header">dom/a.cpp</h1>
<table class="differential-diff"><tbody>
<tr id="a-5"><td class="n" data-n="4"></td><td class="left">old</td><td class="n" data-n="5"></td><td class="right">new</td></tr>
<tr id="a-sep"><td></td><td class="show-more"></td><td class="n"></td><td></td></tr>
<tr id="a-15"><td class="n" data-n="14"></td><td class="left">old</td><td class="n" data-n="15"></td><td class="right">new</td></tr>
<tr id="a-25"><td class="n" data-n="24"></td><td class="left">old</td><td class="n" data-n="25"></td><td class="right">new</td></tr>
</tbody></table>
</div>
<div data-sigil="differential-changeset">
<h1 class="differential-file-icon-header">dom/b.h</h1>
<table class="differential-diff"><tbody>
<tr id="b-3"><td class="n" data-n="2"></td><td class="left">old</td><td class="n" data-n="3"></td><td class="right">new</td></tr>
</tbody></table>
</div>
</body></html>
"""

DIFF_ID = "98765"


def feature_payload(**overrides):
    data = {
        "index": 0,
        "name": "Number of lines added",
        "value": 120,
        "shap": "0.25",
        "spearman": [0.3, 0.001],
        "median_bug_introducing": 100,
        "median_clean": 20,
        "perc_buggy_values_higher_than_median": 0.72,
        "perc_buggy_values_lower_than_median": 0.28,
        "perc_clean_values_higher_than_median": 0.4,
        "perc_clean_values_lower_than_median": 0.6,
        "plot": "iVBORw0KGgo=",
    }
    data.update(overrides)
    return data


def default_payloads():
    return {
        "probs.json": [0.2, 0.8],
        "importances.json": [
            feature_payload(),
            feature_payload(
                index=1,
                name="Reviewer experience",
                value=3,
                shap="(0.15)",
                spearman=[0.1, 0.02],
                median_bug_introducing=40,
                median_clean=5,
                perc_clean_values_lower_than_median=0.61,
                plot=None,
            ),
            feature_payload(
                index=2,
                name="# of times the components were touched before (max)",
                value=22052.0,
                shap=0.14,
                spearman=[-0.07, 2.4e-125],
                median_bug_introducing=4079.9,
                median_clean=4921.6,
            ),
        ],
        "method_level.json": [
            {
                "file_name": "dom/a.cpp",
                "method_name": "Foo::Bar",
                "method_start_line": 10,
                "prediction": "TRUE",
                "prediction_true": 0.91,
            },
            {
                "file_name": "dom/a.cpp",
                "method_name": "Foo::Baz",
                "method_start_line": "20",
                "prediction": "TRUE",
                "prediction_true": 0.77,
            },
            {
                "file_name": "dom/a.cpp",
                "method_name": "Foo::Qux",
                "method_start_line": 1,
                "prediction": "FALSE",
                "prediction_true": 0.2,
            },
        ],
    }


@pytest.fixture
def review_page_html() -> str:
    return REVIEW_PAGE


@pytest.fixture
def payloads():
    return default_payloads()


@pytest.fixture
def artifacts_dir(tmp_path: Path, payloads) -> Path:
    root = tmp_path / "artifacts"
    target = root / DIFF_ID
    target.mkdir(parents=True)
    for name, payload in payloads.items():
        (target / name).write_text(json.dumps(payload), encoding="utf-8")
    return root
