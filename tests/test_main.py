import os

import numpy as np
import pandas as pd
import pytest

import attrition_pipeline as ap
import attrition_research_analysis as ra
import attrition_segmentation as seg
from hr_data import N_ROWS, make_hr_frame


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Empty working directory holding the HR CSV at its default location."""
    monkeypatch.chdir(tmp_path)
    os.makedirs(os.path.dirname(ap.DATA_PATH))
    make_hr_frame().to_csv(ap.DATA_PATH, index=False)
    return tmp_path


def test_pipeline_main(workdir):
    ranked = ap.main()

    assert len(ranked) == len(ap.get_models())
    saved = pd.read_csv(workdir / ap.RES_DIR / "model_comparison.csv")
    assert list(saved["Model"]) == list(ranked["Model"])
    for name in ["attrition_balance.png", "density_by_attrition.png",
                 "boxplots_by_attrition.png", "attrition_rate_by_category.png",
                 "correlation_matrix.png", "cooks_distance.png"]:
        assert (workdir / ap.FIG_DIR / name).exists()


def test_prepare_keeps_all_rows_at_default_path(workdir):
    df, flags = ap.prepare(plots=False)
    assert len(df) == N_ROWS
    assert len(flags) == N_ROWS
    assert flags.sum() > 0


def test_research_main(workdir):
    ranked = ra.main()

    assert ranked.iloc[0]["ROC-AUC"] == ranked["ROC-AUC"].max()
    for name in ["model_comparison.csv", "segment_errors.csv"]:
        assert (workdir / ap.RES_DIR / name).exists()
    for name in ["roc_curves.png", "segment_attrition_risk.png",
                 "importance_random_forest.png", "lasso_coefficients.png",
                 "attrition_drivers_shap.png"]:
        assert (workdir / ap.FIG_DIR / name).exists()


def test_segmentation_main(workdir):
    labels = seg.main()

    assert len(labels) == N_ROWS
    assert (workdir / ap.FIG_DIR / "tsne_clusters.png").exists()
    for name in ["pca_scree.png", "pca_rotated_loadings.png", "mca_category_map.png",
                 "cluster_attrition_rate.png"]:
        assert (workdir / ap.FIG_DIR / name).exists()
    profile = pd.read_csv(workdir / ap.RES_DIR / "cluster_profile.csv")
    assert profile["size"].sum() == N_ROWS


def test_plot_embedding_returns_written_path(tmp_path):
    rng = np.random.default_rng(0)
    emb = rng.normal(size=(40, 2))
    labels = np.where(np.arange(40) < 30, 0, seg.NOISE_LABEL)

    p = seg.plot_embedding(emb, labels, fig_dir=str(tmp_path))
    assert p == os.path.join(str(tmp_path), "tsne_clusters.png")
    assert os.path.getsize(p) > 0
