"""
=============================================================================
Employee Attrition — Unsupervised Segmentation (full dataset, no split)

    1. Dummy / one-hot encoding of the cleaned data
    2. PCA (k = 4) with varimax-rotated loadings
    3. MCA (k = 4) over the categorical and ordinal variables
    4. Gower distance over the mixed-type frame
    5. t-SNE embedding of the distance matrix (2-D)
    6. DBSCAN on the embedding
    7. Cluster profiles: contingency tables, balloon and bar charts
=============================================================================
"""

# ── Imports ─────────────────────────────────────────────────────────────────
import warnings
warnings.filterwarnings("ignore")

import os
import numpy as np
import pandas as pd

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import seaborn as sns

import gower
import prince

from sklearn.preprocessing import StandardScaler
from sklearn.decomposition import PCA
from sklearn.manifold import TSNE
from sklearn.cluster import DBSCAN

from attrition_pipeline import (
    SEED, TARGET, DATA_PATH, FIG_DIR, RES_DIR, ORDINAL_COLS,
    load_data, clean_data, engineer_features, save_figure, section,
)

# ── Settings ────────────────────────────────────────────────────────────────
N_COMPONENTS       = 4
TSNE_PERPLEXITY    = 30
DBSCAN_EPS         = 3.0
DBSCAN_MIN_SAMPLES = 10
NOISE_LABEL        = -1

PROFILE_NUMERIC = ["age", "monthly_income", "total_working_years",
                   "years_at_company", "distance_from_home",
                   "total_satisfaction"]


def categorical_columns(df):
    """Nominal, ordinal and 0/1 flag columns, target excluded."""
    cols = df.select_dtypes(include=["object", "category"]).columns.tolist()
    cols += [c for c in ORDINAL_COLS if c in df.columns]
    if "over_time" in df.columns:
        cols.append("over_time")
    return [c for c in dict.fromkeys(cols) if c != TARGET]


# ═══════════════════════════════════════════════════════════════════════════
# STEP 1 — DUMMY ENCODING
# ═══════════════════════════════════════════════════════════════════════════
def encode_dummies(df):
    """One-hot copy of the full frame (all levels kept)."""
    section("STEP 1 : DUMMY ENCODING  (full dataset)")
    nominal = df.select_dtypes(include=["object", "category"]).columns.tolist()
    out = pd.get_dummies(df, columns=nominal, dtype=int)
    print(f"  Encoded {len(nominal)} columns → {out.shape[1]} total columns")
    return out


# ═══════════════════════════════════════════════════════════════════════════
# STEP 2 — PCA + VARIMAX
# ═══════════════════════════════════════════════════════════════════════════
def varimax(phi, gamma=1.0, q=20, tol=1e-6):
    """Orthogonal varimax rotation of a (variables × factors) loadings matrix."""
    p, k = phi.shape
    R = np.eye(k)
    d = 0
    for _ in range(q):
        d_old = d
        L = phi @ R
        u, s, vh = np.linalg.svd(
            phi.T @ (L**3 - (gamma / p) * L @ np.diag(np.diag(L.T @ L))))
        R = u @ vh
        d = np.sum(s)
        if d_old != 0 and d / d_old < 1 + tol:
            break
    return phi @ R


def run_pca(encoded, k=N_COMPONENTS, fig_dir=FIG_DIR):
    """PCA on the standardised encoded frame.

    Returns (scores, rotated_loadings, explained_ratio); rotated_loadings
    has one row per input variable and k columns.
    """
    section(f"STEP 2 : PCA  (k = {k}, varimax rotation)")

    X = encoded.drop(columns=[TARGET], errors="ignore").astype(float)
    Z = StandardScaler().fit_transform(X)

    pca = PCA(n_components=k, random_state=SEED)
    scores = pca.fit_transform(Z)
    comps = [f"RC{i+1}" for i in range(k)]

    loadings = pca.components_.T * np.sqrt(pca.explained_variance_)
    rotated = pd.DataFrame(varimax(loadings), index=X.columns, columns=comps)
    scores = pd.DataFrame(scores, index=encoded.index, columns=comps)
    ratio = pca.explained_variance_ratio_

    for comp, r in zip(comps, ratio):
        top = rotated[comp].abs().nlargest(5).index.tolist()
        print(f"  {comp}  ({r*100:4.1f}% var)  top loadings: {top}")
    print(f"  Cumulative variance : {ratio.sum()*100:.1f}%")

    # scree over all components
    full = PCA(random_state=SEED).fit(Z)
    fig, ax = plt.subplots(figsize=(9, 5))
    n_show = min(20, len(full.explained_variance_))
    ax.plot(range(1, n_show + 1), full.explained_variance_[:n_show], "o-",
            color="#457B9D")
    ax.axhline(1, color="#E63946", ls="--", lw=1, label="Kaiser (eigenvalue = 1)")
    ax.axvline(k, color="gray", ls=":", lw=1, label=f"k = {k}")
    ax.set_xlabel("Component"); ax.set_ylabel("Eigenvalue")
    ax.set_title("PCA Scree Plot", fontweight="bold")
    ax.legend()
    save_figure(fig, "pca_scree.png", fig_dir)

    shown = rotated.loc[rotated.abs().max(axis=1).sort_values(ascending=False).index[:25]]
    fig, ax = plt.subplots(figsize=(8, max(6, len(shown) * 0.35)))
    sns.heatmap(shown, annot=True, fmt=".2f", cmap="RdBu_r", center=0,
                vmin=-1, vmax=1, linewidths=.5, ax=ax)
    ax.set_title("Varimax-Rotated Loadings (top 25 variables)", fontweight="bold")
    save_figure(fig, "pca_rotated_loadings.png", fig_dir)

    return scores, rotated, ratio


# ═══════════════════════════════════════════════════════════════════════════
# STEP 3 — MCA
# ═══════════════════════════════════════════════════════════════════════════
def run_mca(df, k=N_COMPONENTS, fig_dir=FIG_DIR):
    """MCA over the categorical / ordinal variables.

    Returns (row_coords, column_coords, eigenvalues).
    """
    section(f"STEP 3 : MCA  (k = {k})")

    cats = categorical_columns(df)
    X = df[cats].astype(str)

    mca = prince.MCA(n_components=k, n_iter=3, random_state=SEED)
    mca = mca.fit(X)
    rows = mca.row_coordinates(X)
    cols = mca.column_coordinates(X)
    eig = np.asarray(mca.eigenvalues_)

    print(f"  Variables   : {len(cats)}  ({cols.shape[0]} categories)")
    print(f"  Eigenvalues : {np.round(eig, 4).tolist()}")

    fig, ax = plt.subplots(figsize=(11, 9))
    ax.scatter(cols.iloc[:, 0], cols.iloc[:, 1], s=18, color="#2A9D8F")
    for label, (x0, y0) in zip(cols.index, cols.iloc[:, :2].values):
        ax.annotate(str(label), (x0, y0), fontsize=7, alpha=.8)
    ax.axhline(0, color="gray", lw=.6); ax.axvline(0, color="gray", lw=.6)
    ax.set_xlabel("Dimension 1"); ax.set_ylabel("Dimension 2")
    ax.set_title("MCA — Category Map", fontweight="bold")
    save_figure(fig, "mca_category_map.png", fig_dir)

    return rows, cols, eig


# ═══════════════════════════════════════════════════════════════════════════
# STEP 4 — GOWER DISTANCE
# ═══════════════════════════════════════════════════════════════════════════
def gower_distance(df):
    """Mixed-type (n × n) Gower distance matrix, target excluded."""
    section("STEP 4 : GOWER DISTANCE")

    X = df.drop(columns=[TARGET], errors="ignore").copy()
    cats = [c for c in categorical_columns(df) if c in X.columns]
    nums = [c for c in X.columns if c not in cats]
    X[cats] = X[cats].astype(str)
    X[nums] = X[nums].astype(float)
    is_cat = np.array([c in cats for c in X.columns])

    dist = gower.gower_matrix(X, cat_features=is_cat).astype(float)
    dist = (dist + dist.T) / 2
    np.fill_diagonal(dist, 0.0)

    print(f"  Variables : {len(nums)} numeric + {len(cats)} categorical")
    print(f"  Matrix    : {dist.shape}   mean distance {dist.mean():.4f}")
    return dist


# ═══════════════════════════════════════════════════════════════════════════
# STEP 5 — t-SNE
# ═══════════════════════════════════════════════════════════════════════════
def embed_tsne(dist, perplexity=TSNE_PERPLEXITY, seed=SEED):
    """2-D t-SNE of a precomputed distance matrix."""
    section(f"STEP 5 : t-SNE  (perplexity = {perplexity})")
    tsne = TSNE(n_components=2, metric="precomputed", init="random",
                perplexity=perplexity, random_state=seed)
    emb = tsne.fit_transform(dist)
    print(f"  Embedding : {emb.shape}   KL divergence {tsne.kl_divergence_:.4f}")
    return emb


# ═══════════════════════════════════════════════════════════════════════════
# STEP 6 — DENSITY-BASED CLUSTERING
# ═══════════════════════════════════════════════════════════════════════════
def cluster_embedding(emb, eps=DBSCAN_EPS, min_samples=DBSCAN_MIN_SAMPLES):
    """DBSCAN over the embedding; one label per point, -1 = noise."""
    section(f"STEP 6 : DBSCAN  (eps = {eps}, min_samples = {min_samples})")
    labels = DBSCAN(eps=eps, min_samples=min_samples).fit_predict(emb)

    sizes = cluster_sizes(labels)
    n_clusters = int((sizes.index != NOISE_LABEL).sum())
    print(f"  Clusters : {n_clusters}")
    print(f"  Noise    : {int(sizes.get(NOISE_LABEL, 0))} points")
    for lab, cnt in sizes.items():
        print(f"    cluster {lab:>3d} : {cnt}")
    return labels


def cluster_sizes(labels):
    return pd.Series(labels).value_counts().sort_index()


def plot_embedding(emb, labels, fig_dir=FIG_DIR):
    fig, ax = plt.subplots(figsize=(9, 8))
    frame = pd.DataFrame({"x": emb[:, 0], "y": emb[:, 1],
                          "cluster": pd.Series(labels).astype(str)})
    sns.scatterplot(data=frame, x="x", y="y", hue="cluster", s=14,
                    palette="tab10", linewidth=0, ax=ax)
    ax.set_xlabel("t-SNE 1"); ax.set_ylabel("t-SNE 2")
    ax.set_title("t-SNE of Gower Distances — DBSCAN Clusters", fontweight="bold")
    ax.legend(title="Cluster", bbox_to_anchor=(1.02, 1), loc="upper left")
    return save_figure(fig, "tsne_clusters.png", fig_dir)


# ═══════════════════════════════════════════════════════════════════════════
# STEP 7 — CLUSTER PROFILING
# ═══════════════════════════════════════════════════════════════════════════
def balloon_chart(counts, var, fig_dir=FIG_DIR):
    """Balloon plot of a cluster × level contingency table."""
    long = (counts.rename_axis(index="cluster", columns="level")
                  .stack().rename("count").reset_index())
    long["cluster"] = long["cluster"].astype(str)
    long["level"] = long["level"].astype(str)

    fig, ax = plt.subplots(figsize=(max(6, counts.shape[1] * 1.1),
                                    max(4, counts.shape[0] * 0.6)))
    sns.scatterplot(data=long, x="level", y="cluster", size="count",
                    sizes=(10, 900), color="#E76F51", alpha=.7,
                    legend=False, ax=ax)
    for _, r in long.iterrows():
        ax.annotate(f"{int(r['count'])}", (r["level"], r["cluster"]),
                    ha="center", va="center", fontsize=8)
    ax.set_xlabel(var); ax.set_ylabel("Cluster")
    ax.set_title(f"Cluster × {var}", fontweight="bold")
    plt.setp(ax.get_xticklabels(), rotation=35, ha="right")
    return save_figure(fig, f"balloon_{var}.png", fig_dir)


def profile_clusters(df, labels, fig_dir=FIG_DIR, res_dir=RES_DIR):
    """Contingency tables and mean profiles of each cluster.

    Returns dict with `tables` (var → row-normalised crosstab),
    `numeric_means` and `attrition_rate`.
    """
    section("STEP 7 : CLUSTER PROFILING")
    df = df.copy()
    df["cluster"] = np.asarray(labels)

    tables = {}
    for var in categorical_columns(df.drop(columns=["cluster"])):
        counts = pd.crosstab(df["cluster"], df[var])
        tables[var] = pd.crosstab(df["cluster"], df[var], normalize="index")
        balloon_chart(counts, var, fig_dir)

    nums = [c for c in PROFILE_NUMERIC if c in df.columns]
    z = (df[nums] - df[nums].mean()) / df[nums].std(ddof=0).replace(0, 1)
    numeric_means = z.groupby(df["cluster"]).mean()

    long = numeric_means.reset_index().melt(id_vars="cluster",
                                            var_name="variable", value_name="mean_z")
    long["cluster"] = long["cluster"].astype(str)
    fig, ax = plt.subplots(figsize=(12, 6))
    sns.barplot(data=long, x="variable", y="mean_z", hue="cluster",
                palette="tab10", ax=ax)
    ax.axhline(0, color="k", lw=.8)
    ax.set_xlabel(""); ax.set_ylabel("Mean (z-score)")
    ax.set_title("Numeric Profile by Cluster", fontweight="bold")
    plt.setp(ax.get_xticklabels(), rotation=25, ha="right")
    save_figure(fig, "cluster_numeric_profile.png", fig_dir)

    rate = df.groupby("cluster")[TARGET].mean().rename("attrition_rate")
    fig, ax = plt.subplots(figsize=(8, 5))
    sns.barplot(x=rate.index.astype(str), y=rate.values, color="#E63946", ax=ax)
    ax.axhline(df[TARGET].mean(), color="k", ls="--", lw=1, label="Overall")
    ax.set_xlabel("Cluster"); ax.set_ylabel("Attrition rate")
    ax.set_title("Attrition Rate by Cluster", fontweight="bold")
    ax.legend()
    save_figure(fig, "cluster_attrition_rate.png", fig_dir)

    print("\n  Attrition rate per cluster:")
    for lab, r in rate.items():
        print(f"    cluster {lab:>3d} : {r:.3f}")

    os.makedirs(res_dir, exist_ok=True)
    fp = os.path.join(res_dir, "cluster_profile.csv")
    numeric_means.join(rate).join(cluster_sizes(labels).rename("size")).to_csv(fp)
    print(f"  Saved → {fp}")

    return {"tables": tables, "numeric_means": numeric_means,
            "attrition_rate": rate}


# ═══════════════════════════════════════════════════════════════════════════
# MAIN
# ═══════════════════════════════════════════════════════════════════════════
def main(path=DATA_PATH):
    print("╔════════════════════════════════════════════════════════════════════╗")
    print("║  Employee Attrition — Unsupervised Segmentation                    ║")
    print("╚════════════════════════════════════════════════════════════════════╝\n")

    df = engineer_features(clean_data(load_data(path)))

    encoded = encode_dummies(df)
    _, rotated, ratio = run_pca(encoded)
    mca_rows, _, _ = run_mca(df)

    dist = gower_distance(df)
    emb = embed_tsne(dist)
    labels = cluster_embedding(emb)
    plot_embedding(emb, labels)
    profile_clusters(df, labels)

    sizes = cluster_sizes(labels)
    print("\n" + "=" * 72)
    print("SEGMENTATION COMPLETE")
    print("=" * 72)
    print(f"  Employees      : {len(df)}")
    print(f"  PCA variance   : {ratio.sum()*100:.1f}% in {rotated.shape[1]} components")
    print(f"  MCA dimensions : {mca_rows.shape[1]}")
    print(f"  Clusters       : {int((sizes.index != NOISE_LABEL).sum())}  "
          f"(noise {int(sizes.get(NOISE_LABEL, 0))})")
    print(f"  Figures        : {FIG_DIR}/")
    print("=" * 72 + "\n")
    return labels


if __name__ == "__main__":
    main()
