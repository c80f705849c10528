import os

import numpy as np
import pandas as pd
import pytest

import attrition_pipeline as ap
import attrition_research_analysis as ra


@pytest.fixture(scope="module")
def evaluated(model_frame):
    X, y = ap.model_matrix(model_frame)
    num_cols, cat_cols = ap.detect_column_types(X)
    pre = ap.build_preprocessor(num_cols, cat_cols)
    Xtr, Xte, ytr, yte = ap.split_data(X, y)

    models = ap.get_models()
    models["Random Forest"].set_params(n_estimators=25)
    results, fitted, _, Xte_p = ap.train_all(Xtr, Xte, ytr, yte, pre, models)
    ranked = results.sort_values("ROC-AUC", ascending=False).reset_index(drop=True)
    names = ap.feature_names(pre, num_cols, cat_cols)
    return ranked, fitted, Xte, Xte_p, yte, names, cat_cols


def test_roc_curves(evaluated, tmp_path):
    ranked, fitted, _, Xte_p, yte, _, _ = evaluated
    p = ra.analysis_1_roc_curves(ranked, fitted, Xte_p, yte, fig_dir=str(tmp_path))
    assert os.path.getsize(p) > 0


def test_segment_errors(evaluated, tmp_path):
    ranked, fitted, Xte, Xte_p, yte, _, _ = evaluated
    table = ra.analysis_2_segment_errors(ranked, fitted, Xte, Xte_p, yte,
                                         fig_dir=str(tmp_path), res_dir=str(tmp_path))

    assert set(table["variable"]) <= set(ra.SEGMENT_COLS)
    assert (table["employees"] >= ra.MIN_SEGMENT).all()
    for c in ["attrition_rate", "predicted_rate", "mean_risk"]:
        assert table[c].between(0, 1).all()

    # the two overtime levels partition the test set
    ot = table[table["variable"] == "over_time"].set_index("level")
    assert ot["employees"].sum() == len(yte)
    overtime = Xte["over_time"].astype(str) == "1"
    assert ot.loc["1", "attrition_rate"] == pytest.approx(yte[overtime].mean())

    assert (tmp_path / "segment_errors.csv").exists()
    assert (tmp_path / "segment_attrition_risk.png").exists()


def test_segment_recall_matches_best_model(evaluated, tmp_path):
    ranked, fitted, Xte, Xte_p, yte, _, _ = evaluated
    table = ra.analysis_2_segment_errors(ranked, fitted, Xte, Xte_p, yte,
                                         segments=["department"],
                                         fig_dir=str(tmp_path), res_dir=str(tmp_path))
    pred = pd.Series(fitted[ranked.iloc[0]["Model"]].predict(Xte_p), index=Xte.index)
    for _, r in table.iterrows():
        leavers = (Xte["department"].astype(str) == r["level"]) & (yte == 1)
        expected = pred[leavers].mean() if leavers.any() else np.nan
        assert r["recall"] == pytest.approx(expected, nan_ok=True)


@pytest.mark.parametrize("name,expected", [
    ("department_Sales", "department"),
    ("job_role_Sales Executive", "job_role"),
    ("monthly_income", "monthly_income"),
    ("education_3", "education"),
])
def test_source_variable(name, expected):
    cats = ["department", "job_role", "education", "education_field"]
    assert ra.source_variable(name, cats) == expected


def test_source_variable_prefers_longest_prefix():
    assert ra.source_variable("education_field_Medical",
                              ["education", "education_field"]) == "education_field"


def test_feature_importance_and_lasso(evaluated, tmp_path):
    _, fitted, _, _, _, names, _ = evaluated
    out = ra.analysis_3_feature_importance(fitted, names, fig_dir=str(tmp_path))
    assert {"Random Forest", "Decision Tree", "Lasso Logistic Regression"} <= set(out)
    rf = out["Random Forest"]
    assert rf.is_monotonic_decreasing
    assert set(rf.index) <= set(names)
    assert (out["Lasso Logistic Regression"] != 0).all()
    assert (tmp_path / "importance_random_forest.png").exists()


def test_shap_drivers(evaluated, tmp_path):
    _, fitted, _, Xte_p, _, names, cat_cols = evaluated
    drivers = ra.analysis_4_shap_drivers(fitted, Xte_p, names, cat_cols,
                                         fig_dir=str(tmp_path), n_sample=60)
    expected = {ra.source_variable(n, cat_cols) for n in names}
    assert set(drivers.index) == expected
    assert (drivers["mean_abs_shap"] >= 0).all()
    assert drivers["share"].sum() == pytest.approx(1.0)
    assert drivers["mean_abs_shap"].is_monotonic_decreasing
    assert (tmp_path / "attrition_drivers_shap.png").exists()


def test_shap_without_random_forest(evaluated, tmp_path):
    _, fitted, _, Xte_p, _, names, cat_cols = evaluated
    rest = {k: v for k, v in fitted.items() if k != "Random Forest"}
    assert ra.analysis_4_shap_drivers(rest, Xte_p, names, cat_cols,
                                      fig_dir=str(tmp_path)) is None
