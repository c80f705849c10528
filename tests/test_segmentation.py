import numpy as np
import pandas as pd
import pytest

import attrition_pipeline as ap
import attrition_segmentation as seg


@pytest.fixture(scope="module")
def encoded(small_frame):
    return seg.encode_dummies(small_frame)


@pytest.fixture(scope="module")
def distances(small_frame):
    return seg.gower_distance(small_frame)


@pytest.fixture(scope="module")
def embedding(distances):
    return seg.embed_tsne(distances, perplexity=20)


def test_encode_dummies(small_frame, encoded):
    assert len(encoded) == len(small_frame)
    assert encoded.select_dtypes(include=["object", "category"]).empty
    levels = small_frame["department"].nunique()
    assert sum(c.startswith("department_") for c in encoded.columns) == levels


def test_varimax_preserves_communalities():
    rng = np.random.default_rng(3)
    phi = rng.normal(size=(12, 4))
    rot = seg.varimax(phi)
    assert rot.shape == phi.shape
    np.testing.assert_allclose((rot**2).sum(axis=1), (phi**2).sum(axis=1), rtol=1e-8)


def test_pca_shapes(encoded, tmp_path):
    scores, rotated, ratio = seg.run_pca(encoded, k=4, fig_dir=str(tmp_path))
    n_vars = encoded.shape[1] - 1
    assert scores.shape == (len(encoded), 4)
    assert rotated.shape == (n_vars, 4)
    assert list(rotated.index) == [c for c in encoded.columns if c != ap.TARGET]
    assert len(ratio) == 4
    assert 0 < ratio.sum() <= 1


def test_mca_component_count(small_frame, tmp_path):
    rows, cols, eig = seg.run_mca(small_frame, k=4, fig_dir=str(tmp_path))
    assert rows.shape == (len(small_frame), 4)
    assert cols.shape[1] == 4
    assert len(eig) == 4
    assert (tmp_path / "mca_category_map.png").exists()


def test_categorical_columns_exclude_target(small_frame):
    cats = seg.categorical_columns(small_frame)
    assert ap.TARGET not in cats
    assert "business_travel" in cats and "over_time" in cats
    assert "monthly_income" not in cats


def test_gower_matrix_properties(small_frame, distances):
    n = len(small_frame)
    assert distances.shape == (n, n)
    np.testing.assert_allclose(distances, distances.T)
    np.testing.assert_allclose(np.diag(distances), 0)
    assert distances.min() >= 0 and distances.max() <= 1 + 1e-6


def test_tsne_embedding_shape(small_frame, embedding):
    assert embedding.shape == (len(small_frame), 2)
    assert np.isfinite(embedding).all()


def test_every_point_gets_one_label(small_frame, embedding):
    labels = seg.cluster_embedding(embedding, eps=3.0, min_samples=5)
    assert len(labels) == len(small_frame)
    sizes = seg.cluster_sizes(labels)
    assert sizes.sum() == len(small_frame)
    assert all(lab >= seg.NOISE_LABEL for lab in sizes.index)


def test_all_noise_still_labels_everyone(embedding):
    labels = seg.cluster_embedding(embedding, eps=1e-9, min_samples=5)
    assert (labels == seg.NOISE_LABEL).all()
    assert seg.cluster_sizes(labels).sum() == len(embedding)


def test_profile_clusters(small_frame, tmp_path):
    labels = np.arange(len(small_frame)) % 3
    out = seg.profile_clusters(small_frame, labels,
                               fig_dir=str(tmp_path), res_dir=str(tmp_path))

    assert set(out["tables"]) == set(seg.categorical_columns(small_frame))
    for table in out["tables"].values():
        np.testing.assert_allclose(table.sum(axis=1), 1.0)
    assert list(out["numeric_means"].index) == [0, 1, 2]
    expected = pd.Series(small_frame[ap.TARGET].values).groupby(labels).mean()
    np.testing.assert_allclose(out["attrition_rate"].values, expected.values)
    assert (tmp_path / "cluster_profile.csv").exists()
    assert (tmp_path / "balloon_department.png").exists()
