from conftest import feature_payload
from packages.interpreter.narrative import classify_branch, select_narratives
from packages.schema.models import FeatureRecord


def _feature(**overrides) -> FeatureRecord:
    return FeatureRecord.model_validate(feature_payload(**overrides))


def _branch_a(index: int, percentile: float = 0.72) -> FeatureRecord:
    return _feature(index=index, name=f"feature {index}", perc_buggy_values_higher_than_median=percentile)


def test_branch_a_too_large():
    selection = select_narratives([_branch_a(0)])
    [item] = selection.explained
    assert item.branch == "A"
    assert item.is_risk_direction is True
    assert item.text == "feature 0 is too large (120), as in 72% of patches introducing regressions."
    assert selection.chosen == {0: True}


def test_branch_b_too_small():
    feature = _feature(
        value=1, shap=0.2, spearman=[-0.4, 0.0], median_bug_introducing=0, median_clean=5,
        perc_buggy_values_lower_than_median=0.6,
    )
    [item] = select_narratives([feature]).explained
    assert item.branch == "B"
    assert item.adjective == "too small"
    assert item.percent == 60
    assert item.is_risk_direction


def test_branch_c_small():
    feature = _feature(
        value=1, shap=-0.2, spearman=[0.4, 0.0], median_bug_introducing=10, median_clean=1,
        perc_clean_values_lower_than_median=0.8,
    )
    [item] = select_narratives([feature]).explained
    assert item.branch == "C"
    assert item.text.endswith("is small (1), as in 80% of patches not introducing regressions.")
    assert item.is_risk_direction is False


def test_branch_d_large():
    feature = _feature(
        value=20, shap=-0.2, spearman=[-0.4, 0.0], median_bug_introducing=3, median_clean=19,
        perc_clean_values_higher_than_median=0.9,
    )
    selection = select_narratives([feature])
    assert selection.explained[0].branch == "D"
    assert selection.explained[0].adjective == "large"
    assert selection.chosen == {0: False}


def test_contradicting_signals_are_skipped():
    # positive contribution but the value looks like the clean population
    feature = _feature(
        value=22052.0, shap=0.14, spearman=[-0.07, 0.0],
        median_bug_introducing=4079.9, median_clean=4921.6,
    )
    assert classify_branch(feature) is None
    assert select_narratives([feature]).explained == []


def test_equidistant_medians_are_skipped():
    feature = _feature(value=5, median_bug_introducing=3, median_clean=7)
    assert classify_branch(feature) is None


def test_zero_signals_are_skipped():
    assert classify_branch(_feature(shap=0)) is None
    assert classify_branch(_feature(spearman=[0.0, 1.0])) is None


def test_closeness_uses_displayed_value():
    # 10.4 displays as 10, which is exactly between the medians
    feature = _feature(value=10.4, median_bug_introducing=12, median_clean=8)
    assert classify_branch(feature) is None


def test_low_percentile_is_discarded_without_using_a_slot():
    features = [_branch_a(0, percentile=0.54)] + [_branch_a(i) for i in range(1, 7)]
    selection = select_narratives(features, max_explained=5)
    assert [item.feature.index for item in selection.explained] == [1, 2, 3, 4, 5]


def test_threshold_applies_to_rounded_percent():
    selection = select_narratives([_branch_a(0, percentile=0.546), _branch_a(1, percentile=0.544)])
    assert list(selection.chosen) == [0]
    assert selection.explained[0].percent == 55


def test_percentile_exactly_at_threshold_is_kept():
    selection = select_narratives([_branch_a(0, percentile=0.55)])
    assert [item.percent for item in selection.explained] == [55]
    assert select_narratives([_branch_a(0, percentile=0.6)], percentile_threshold=0.6).chosen == {0: True}


def test_never_more_than_max_explained():
    features = [_branch_a(i) for i in range(10)]
    assert len(select_narratives(features).explained) == 5
    assert len(select_narratives(features, max_explained=2).explained) == 2
    assert select_narratives(features, max_explained=0).explained == []


def test_explained_set_keeps_ranking_order():
    features = [
        _feature(index=7, name="late", shap=-0.3, spearman=[0.5, 0.0], value=1,
                 median_bug_introducing=10, median_clean=1, perc_clean_values_lower_than_median=0.9),
        _branch_a(3),
        _feature(index=5, shap=0.1, value=5, median_bug_introducing=3, median_clean=7),
        _branch_a(1),
    ]
    selection = select_narratives(features)
    assert [f.index for f in selection.features] == [7, 3, 1]
    assert selection.chosen == {7: False, 3: True, 1: True}
