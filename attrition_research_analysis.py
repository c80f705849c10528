"""
=============================================================================
Employee Attrition — Extended Evaluation of the Five Classifiers

Prerequisites:
  - Same input CSV as attrition_pipeline.py.
  - This script re-runs the preparation and model fits, then asks:
    1. How do the five models trade off leavers caught vs. false alarms?
    2. Where does the best model miss leavers (department, overtime, role)?
    3. Which variables drive the tree models, and which survive the LASSO?
    4. Which source variables push attrition risk up (SHAP, random forest)?
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

import shap

from sklearn.metrics import roc_auc_score, roc_curve

from attrition_pipeline import (
    DATA_PATH, FIG_DIR, RES_DIR,
    prepare, model_matrix, detect_column_types, build_preprocessor,
    split_data, train_all, compare, feature_names, save_figure,
)

SEGMENT_COLS = ["department", "over_time", "job_role", "marital_status"]
MIN_SEGMENT  = 10


def banner(sec):
    print(f"\n{'═'*72}\n  {sec}\n{'═'*72}")


def source_variable(name, cat_cols):
    """One-hot column (`department_Sales`) → the variable it came from."""
    for c in sorted(cat_cols, key=len, reverse=True):
        if name.startswith(f"{c}_"):
            return c
    return name


# ═══════════════════════════════════════════════════════════════════════════
#  ANALYSIS 1 — ROC CURVES
# ═══════════════════════════════════════════════════════════════════════════
def analysis_1_roc_curves(ranked, fitted, Xte, yte, fig_dir=FIG_DIR):
    """ROC of every model, with the share of leavers caught at 10% false alarms."""
    banner("ANALYSIS 1 : ROC CURVES")

    names  = [m for m in ranked["Model"] if m in fitted]
    colors = ["#E63946", "#457B9D", "#2A9D8F", "#E9C46A", "#264653"]

    fig, ax = plt.subplots(figsize=(8, 7))
    for name, c in zip(names, colors):
        ypr = fitted[name].predict_proba(Xte)[:, 1]
        fpr, tpr, _ = roc_curve(yte, ypr)
        caught = np.interp(0.10, fpr, tpr)
        print(f"  {name:<28s} AUC={roc_auc_score(yte, ypr):.4f}  "
              f"leavers caught @10% FPR={caught:.3f}")
        ax.plot(fpr, tpr, color=c, lw=2, label=f"{name} ({caught:.2f} @ 10% FPR)")

    ax.plot([0, 1], [0, 1], "k--", lw=1, alpha=.5)
    ax.axvline(0.10, color="gray", ls=":", lw=1)
    ax.set_xlabel("Stayers flagged (false positive rate)")
    ax.set_ylabel("Leavers caught (true positive rate)")
    ax.set_title("ROC — Attrition Classifiers", fontweight="bold")
    ax.legend(loc="lower right", framealpha=.9)
    ax.grid(alpha=.25)
    fig.tight_layout()
    return save_figure(fig, "roc_curves.png", fig_dir)


# ═══════════════════════════════════════════════════════════════════════════
#  ANALYSIS 2 — ERRORS BY SEGMENT
# ═══════════════════════════════════════════════════════════════════════════
def analysis_2_segment_errors(ranked, fitted, Xte_raw, Xte, yte,
                              segments=SEGMENT_COLS, fig_dir=FIG_DIR,
                              res_dir=RES_DIR):
    """Best model's recall and false-alarm rate within each workforce segment.

    Returns one row per (variable, level) with at least MIN_SEGMENT employees.
    """
    banner("ANALYSIS 2 : ERRORS BY SEGMENT (best model)")

    best = ranked.iloc[0]["Model"]
    frame = pd.DataFrame({
        "actual":    np.asarray(yte),
        "predicted": fitted[best].predict(Xte),
        "risk":      fitted[best].predict_proba(Xte)[:, 1],
    }, index=Xte_raw.index)

    rows = []
    for var in [s for s in segments if s in Xte_raw.columns]:
        for level, g in frame.groupby(Xte_raw[var].astype(str)):
            if len(g) < MIN_SEGMENT:
                continue
            leavers = g[g["actual"] == 1]
            stayers = g[g["actual"] == 0]
            rows.append({
                "variable":         var,
                "level":            level,
                "employees":        len(g),
                "attrition_rate":   g["actual"].mean(),
                "predicted_rate":   g["predicted"].mean(),
                "mean_risk":        g["risk"].mean(),
                "recall":           leavers["predicted"].mean() if len(leavers) else np.nan,
                "false_alarm_rate": stayers["predicted"].mean() if len(stayers) else np.nan,
            })
    table = pd.DataFrame(rows)

    print(f"  Model : {best}")
    if not table.empty:
        print(table.to_string(index=False))

        fig, ax = plt.subplots(figsize=(10, max(5, len(table) * 0.3)))
        labels = table["variable"] + " = " + table["level"]
        sns.barplot(x=table["attrition_rate"], y=labels, color="#E9C46A",
                    label="Actual", ax=ax)
        sns.barplot(x=table["mean_risk"], y=labels, color="#E63946",
                    alpha=.6, label="Mean predicted risk", ax=ax)
        ax.set_xlabel("Attrition"); ax.set_ylabel("")
        ax.set_title(f"Actual vs Predicted Attrition by Segment — {best}",
                     fontweight="bold")
        ax.legend(loc="lower right")
        fig.tight_layout()
        save_figure(fig, "segment_attrition_risk.png", fig_dir)

    os.makedirs(res_dir, exist_ok=True)
    fp = os.path.join(res_dir, "segment_errors.csv")
    table.to_csv(fp, index=False)
    print(f"  Saved → {fp}")
    return table


# ═══════════════════════════════════════════════════════════════════════════
#  ANALYSIS 3 — TREE IMPORTANCES  +  LASSO SELECTION
# ═══════════════════════════════════════════════════════════════════════════
def analysis_3_feature_importance(fitted, feat_names, fig_dir=FIG_DIR, top=15):
    """Importances for the tree models, non-zero coefficients of the LASSO.

    Returns {model: Series of the top features}.
    """
    banner("ANALYSIS 3 : TREE IMPORTANCES + LASSO SELECTION")

    out = {}
    for name in ["Random Forest", "Decision Tree"]:
        mdl = fitted.get(name)
        if mdl is None:
            continue
        imp = (pd.Series(mdl.feature_importances_, index=feat_names)
                 .sort_values(ascending=False).head(top))
        out[name] = imp

        fig, ax = plt.subplots(figsize=(9, 6))
        sns.barplot(x=imp.values, y=imp.index, hue=imp.index,
                    palette="crest", legend=False, ax=ax)
        ax.set_xlabel("Impurity decrease")
        ax.set_title(f"Attrition Predictors — {name}", fontweight="bold")
        fig.tight_layout()
        save_figure(fig, f"importance_{name.lower().replace(' ', '_')}.png", fig_dir)

    lasso = fitted.get("Lasso Logistic Regression")
    if lasso is not None:
        coef = pd.Series(lasso.coef_[0], index=feat_names)
        print(f"  LASSO kept {int((coef != 0).sum())}/{len(coef)} terms "
              f"({int((coef == 0).sum())} shrunk to zero)")
        kept = coef[coef != 0]
        kept = kept.reindex(kept.abs().sort_values(ascending=False).index).head(top)
        out["Lasso Logistic Regression"] = kept

        if len(kept):
            direction = np.where(kept.values > 0, "raises risk", "lowers risk")
            fig, ax = plt.subplots(figsize=(9, 6))
            sns.barplot(x=kept.values, y=kept.index, hue=direction,
                        palette={"raises risk": "#E63946", "lowers risk": "#457B9D"},
                        dodge=False, ax=ax)
            ax.axvline(0, color="k", lw=.8)
            ax.set_xlabel("Log-odds per SD / vs. reference level")
            ax.set_title("LASSO — Terms Kept", fontweight="bold")
            fig.tight_layout()
            save_figure(fig, "lasso_coefficients.png", fig_dir)

    return out


# ═══════════════════════════════════════════════════════════════════════════
#  ANALYSIS 4 — SHAP ATTRITION DRIVERS
# ═══════════════════════════════════════════════════════════════════════════
def analysis_4_shap_drivers(fitted, Xte, feat_names, cat_cols,
                            fig_dir=FIG_DIR, n_sample=500):
    """Random-forest SHAP values folded back onto the source variables.

    Returns a frame indexed by variable with `mean_abs_shap` (sum over the
    variable's one-hot columns) and `share`, or None without a random forest.
    """
    banner("ANALYSIS 4 : SHAP ATTRITION DRIVERS (random forest)")

    rf = fitted.get("Random Forest")
    if rf is None:
        print("  ⚠  No random forest fitted — skipped.")
        return None

    sample = pd.DataFrame(Xte[:n_sample], columns=feat_names)
    vals = shap.TreeExplainer(rf).shap_values(sample, check_additivity=False)
    # leave-class contributions: list [stay, leave] or (n, features, classes)
    if isinstance(vals, list):
        vals = vals[1]
    elif np.ndim(vals) == 3:
        vals = vals[:, :, 1]

    per_column = pd.Series(np.abs(vals).mean(axis=0), index=feat_names)
    sources = [source_variable(f, cat_cols) for f in feat_names]
    drivers = (per_column.groupby(sources).sum()
                         .sort_values(ascending=False)
                         .rename("mean_abs_shap").to_frame())
    drivers["share"] = drivers["mean_abs_shap"] / drivers["mean_abs_shap"].sum()

    for var, r in drivers.head(8).iterrows():
        print(f"    {var:<28s} {r['mean_abs_shap']:.4f}  ({r['share']*100:4.1f}%)")

    top = drivers.head(15)
    fig, ax = plt.subplots(figsize=(9, 6))
    sns.barplot(x=top["share"], y=top.index, hue=top.index,
                palette="rocket", legend=False, ax=ax)
    ax.set_xlabel("Share of mean |SHAP| (leave class)")
    ax.set_title("What Drives Predicted Attrition", fontweight="bold")
    fig.tight_layout()
    save_figure(fig, "attrition_drivers_shap.png", fig_dir)
    return drivers


# ═══════════════════════════════════════════════════════════════════════════
#  MAIN
# ═══════════════════════════════════════════════════════════════════════════
def main(path=DATA_PATH):
    print("╔════════════════════════════════════════════════════════════════════╗")
    print("║  Employee Attrition — Extended Evaluation Suite                    ║")
    print("╚════════════════════════════════════════════════════════════════════╝\n")

    df, _ = prepare(path, plots=False)
    X, y = model_matrix(df)
    num_cols, cat_cols = detect_column_types(X)
    preprocessor = build_preprocessor(num_cols, cat_cols)
    Xtr, Xte, ytr, yte = split_data(X, y)

    res_df, fitted, _, Xte_p = train_all(Xtr, Xte, ytr, yte, preprocessor)
    ranked = compare(res_df)
    feat_names = feature_names(preprocessor, num_cols, cat_cols)

    analysis_1_roc_curves(ranked, fitted, Xte_p, yte)
    segments = analysis_2_segment_errors(ranked, fitted, Xte, Xte_p, yte)
    analysis_3_feature_importance(fitted, feat_names)
    drivers = analysis_4_shap_drivers(fitted, Xte_p, feat_names, cat_cols)

    print(f"\n{'═'*72}")
    print(f"  EXTENDED EVALUATION COMPLETE")
    print(f"{'═'*72}")
    print(f"  Best Model   : {ranked.iloc[0]['Model']}")
    print(f"  Segments     : {len(segments)}")
    if drivers is not None:
        print(f"  Top driver   : {drivers.index[0]}")
    print(f"  Figures      : {FIG_DIR}/")
    print(f"  Results      : {RES_DIR}/")
    print(f"{'═'*72}\n")
    return ranked


if __name__ == "__main__":
    main()
