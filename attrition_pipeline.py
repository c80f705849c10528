"""
=============================================================================
Employee Attrition — Exploratory Analysis & Predictive Modelling

Load → clean → stratified split → EDA → outlier flagging →
feature engineering → 5 classifiers → accuracy / ROC-AUC comparison.

Dataset : IBM HR Analytics Employee Attrition (1470 × 35)
Target  : attrition (binary 0/1) — recoded from Yes/No.
=============================================================================
"""

# ── Imports ─────────────────────────────────────────────────────────────────
import warnings
warnings.filterwarnings("ignore")

import os, re
import numpy as np
import pandas as pd

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import seaborn as sns

import statsmodels.api as sm

from sklearn.model_selection import train_test_split
from sklearn.preprocessing import StandardScaler, OneHotEncoder
from sklearn.compose import ColumnTransformer

# classifiers
from sklearn.linear_model import LogisticRegression
from sklearn.tree import DecisionTreeClassifier
from sklearn.ensemble import RandomForestClassifier
from sklearn.svm import SVC

from sklearn.metrics import accuracy_score, roc_auc_score

# ── Constants ───────────────────────────────────────────────────────────────
SEED          = 42
TEST_SIZE     = 0.20
TARGET        = "attrition"
DATA_PATH     = os.path.join("data", "WA_Fn-UseC_-HR-Employee-Attrition.csv")
FIG_DIR       = "figures"
RES_DIR       = "results"
FIG_DPI       = 300

# Raw schema, in file order
EXPECTED_COLUMNS = [
    "Age", "Attrition", "BusinessTravel", "DailyRate", "Department",
    "DistanceFromHome", "Education", "EducationField", "EmployeeCount",
    "EmployeeNumber", "EnvironmentSatisfaction", "Gender", "HourlyRate",
    "JobInvolvement", "JobLevel", "JobRole", "JobSatisfaction",
    "MaritalStatus", "MonthlyIncome", "MonthlyRate", "NumCompaniesWorked",
    "Over18", "OverTime", "PercentSalaryHike", "PerformanceRating",
    "RelationshipSatisfaction", "StandardHours", "StockOptionLevel",
    "TotalWorkingYears", "TrainingTimesLastYear", "WorkLifeBalance",
    "YearsAtCompany", "YearsInCurrentRole", "YearsSinceLastPromotion",
    "YearsWithCurrManager",
]

TRAVEL_LEVELS = ["Non-Travel", "Travel_Rarely", "Travel_Frequently"]
NOMINAL_COLS  = ["department", "education_field", "gender",
                 "job_role", "marital_status"]
ORDINAL_COLS  = [
    "education", "environment_satisfaction", "job_involvement",
    "job_satisfaction", "performance_rating", "relationship_satisfaction",
    "work_life_balance", "job_level", "stock_option_level",
]

# Feature engineering
SATISFACTION_COLS = [
    "environment_satisfaction", "job_satisfaction",
    "relationship_satisfaction", "work_life_balance", "job_involvement",
]
COMPOSITE_COL   = "total_satisfaction"
NOISY_COLS      = ["employee_number", "daily_rate", "hourly_rate", "monthly_rate"]
COLLINEAR_COLS  = ["job_level"]

# EDA
DENSITY_COLS = ["age", "monthly_income", "distance_from_home",
                "total_working_years", "years_at_company"]
BOX_COLS     = ["monthly_income", "years_at_company", "years_in_current_role",
                "years_with_curr_manager", "num_companies_worked",
                "percent_salary_hike"]
RATE_COLS    = ["business_travel", "department", "job_role",
                "marital_status", "over_time", "gender"]

# Publication style
plt.rcParams.update({
    "font.family":     "serif",
    "font.size":       12,
    "axes.titlesize":  14,
    "axes.labelsize":  13,
    "xtick.labelsize": 11,
    "ytick.labelsize": 11,
    "legend.fontsize": 10,
    "figure.dpi":      100,
})


def section(title):
    print("\n" + "=" * 72)
    print(title)
    print("=" * 72)


def save_figure(fig, name, fig_dir=FIG_DIR):
    """Save a figure as PNG under fig_dir, close it, return the path."""
    os.makedirs(fig_dir, exist_ok=True)
    p = os.path.join(fig_dir, name)
    fig.savefig(p, dpi=FIG_DPI, bbox_inches="tight")
    plt.close(fig)
    print(f"  Saved → {p}")
    return p


# ═══════════════════════════════════════════════════════════════════════════
# STEP 1 — DATA LOADING
# ═══════════════════════════════════════════════════════════════════════════
def to_snake(name):
    """CamelCase → snake_case (`YearsWithCurrManager` → `years_with_curr_manager`)."""
    s = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", name)
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s)
    return s.lower()


def load_data(path=DATA_PATH):
    """Read the HR CSV, normalise column names, check the schema."""
    section("STEP 1 : DATA LOADING")

    df = pd.read_csv(path)
    df.columns = [to_snake(c) for c in df.columns]

    expected = [to_snake(c) for c in EXPECTED_COLUMNS]
    missing = [c for c in expected if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: missing expected columns {missing}")

    print(f"  Raw shape      : {df.shape}")
    print(f"  Missing values : {int(df.isna().sum().sum())}")
    print(f"  Columns        : {list(df.columns)}\n")
    return df


# ═══════════════════════════════════════════════════════════════════════════
# STEP 2 — CLEANING / RECODING
# ═══════════════════════════════════════════════════════════════════════════
def constant_columns(df, keep=(TARGET, "over_time")):
    """Columns with a single value; the target and binary flags are kept."""
    return [c for c in df.columns
            if c not in keep and df[c].nunique(dropna=False) <= 1]


def clean_data(df):
    """Recode target and flags, drop constant columns, relevel factors."""
    section("STEP 2 : CLEANING / RECODING")
    df = df.copy()

    df[TARGET] = df[TARGET].map({"Yes": 1, "No": 0}).astype(int)
    df["over_time"] = df["over_time"].map({"Yes": 1, "No": 0}).astype(int)

    const = constant_columns(df)
    df.drop(columns=const, inplace=True)
    print(f"  Dropped {len(const)} constant columns: {const}")

    if "business_travel" in df.columns:
        df["business_travel"] = pd.Categorical(
            df["business_travel"], categories=TRAVEL_LEVELS, ordered=True)
    for c in NOMINAL_COLS:
        if c in df.columns:
            df[c] = df[c].astype("category")

    print(f"  Remaining      : {df.shape[1]} columns")
    show_class_dist(df[TARGET], "Full dataset")
    return df


def detect_column_types(X):
    """Split model columns into continuous and factor columns.

    Factors are the text/categorical columns plus the coded ordinal scales
    (education, performance rating, stock option level, ...) still present.
    Everything else, the over-time 0/1 flag included, is scaled as-is.
    """
    factors = [c for c in X.columns
               if c in ORDINAL_COLS or not pd.api.types.is_numeric_dtype(X[c])]
    continuous = [c for c in X.columns if c not in factors]
    return continuous, factors


def build_preprocessor(num_cols, cat_cols):
    """Standardise continuous columns; one-hot factors against their first level."""
    return ColumnTransformer([
        ("num", StandardScaler(), num_cols),
        ("cat", OneHotEncoder(drop="first", handle_unknown="ignore",
                              sparse_output=False), cat_cols),
    ], remainder="drop")


def model_matrix(df):
    """Split a cleaned frame into X (categoricals as plain objects) and y."""
    X = df.drop(columns=[TARGET])
    for c in X.select_dtypes(include=["category"]).columns:
        X[c] = X[c].astype(str).astype(object)
    y = df[TARGET].astype(int)
    return X, y


def show_class_dist(y, label=""):
    """Stayers, leavers and the attrition rate of a 0/1 target."""
    leaves = int((y == 1).sum())
    stays = len(y) - leaves
    rate = leaves / len(y) if len(y) else float("nan")
    print(f"  {label:<14s}: {stays} stay / {leaves} leave  "
          f"(attrition rate {rate:.3f})")


# ═══════════════════════════════════════════════════════════════════════════
# STEP 3 — TRAIN-TEST SPLIT
# ═══════════════════════════════════════════════════════════════════════════
def split_data(X, y, test_size=TEST_SIZE, seed=SEED):
    """Stratified 80 / 20 split."""
    section(f"STEP 3 : TRAIN-TEST SPLIT  ({int((1-test_size)*100)}-"
            f"{int(test_size*100)}, stratified)")
    Xtr, Xte, ytr, yte = train_test_split(
        X, y, test_size=test_size, random_state=seed, stratify=y)
    print(f"  Train : {Xtr.shape[0]}   Test : {Xte.shape[0]}")
    show_class_dist(ytr, "Train")
    show_class_dist(yte, "Test")
    return Xtr, Xte, ytr, yte


# ═══════════════════════════════════════════════════════════════════════════
# STEP 4 — EXPLORATORY PLOTS
# ═══════════════════════════════════════════════════════════════════════════
def plot_attrition_balance(df, fig_dir=FIG_DIR):
    fig, ax = plt.subplots(figsize=(6, 5))
    counts = df[TARGET].map({0: "No", 1: "Yes"}).value_counts().reindex(["No", "Yes"])
    sns.barplot(x=counts.index, y=counts.values, hue=counts.index,
                palette=["#457B9D", "#E63946"], legend=False, ax=ax)
    for i, v in enumerate(counts.values):
        ax.text(i, v, f"{v} ({v/len(df)*100:.1f}%)", ha="center", va="bottom")
    ax.set_xlabel("Attrition"); ax.set_ylabel("Employees")
    ax.set_title("Attrition Class Balance", fontweight="bold")
    return save_figure(fig, "attrition_balance.png", fig_dir)


def plot_densities(df, cols=DENSITY_COLS, fig_dir=FIG_DIR):
    """Density of each numeric variable, split by attrition."""
    cols = [c for c in cols if c in df.columns]
    ncol = 3
    nrow = int(np.ceil(len(cols) / ncol))
    fig, axes = plt.subplots(nrow, ncol, figsize=(6 * ncol, 4 * nrow))
    axes = np.atleast_1d(axes).ravel()
    for ax, c in zip(axes, cols):
        sns.kdeplot(data=df, x=c, hue=TARGET, common_norm=False,
                    fill=True, alpha=.35, palette=["#457B9D", "#E63946"], ax=ax)
        ax.set_title(c.replace("_", " ").title())
    for ax in axes[len(cols):]:
        ax.set_visible(False)
    fig.suptitle("Numeric Distributions by Attrition", fontweight="bold", y=1.02)
    fig.tight_layout()
    return save_figure(fig, "density_by_attrition.png", fig_dir)


def plot_boxplots(df, cols=BOX_COLS, fig_dir=FIG_DIR):
    cols = [c for c in cols if c in df.columns]
    ncol = 3
    nrow = int(np.ceil(len(cols) / ncol))
    fig, axes = plt.subplots(nrow, ncol, figsize=(6 * ncol, 4 * nrow))
    axes = np.atleast_1d(axes).ravel()
    for ax, c in zip(axes, cols):
        sns.boxplot(data=df, x=TARGET, y=c, hue=TARGET,
                    palette=["#457B9D", "#E63946"], legend=False, ax=ax)
        ax.set_xticklabels(["No", "Yes"])
        ax.set_xlabel("Attrition")
        ax.set_title(c.replace("_", " ").title())
    for ax in axes[len(cols):]:
        ax.set_visible(False)
    fig.tight_layout()
    return save_figure(fig, "boxplots_by_attrition.png", fig_dir)


def plot_attrition_rates(df, cols=RATE_COLS, fig_dir=FIG_DIR):
    """Attrition rate per level of each categorical variable."""
    cols = [c for c in cols if c in df.columns]
    ncol = 3
    nrow = int(np.ceil(len(cols) / ncol))
    fig, axes = plt.subplots(nrow, ncol, figsize=(6 * ncol, 4.5 * nrow))
    axes = np.atleast_1d(axes).ravel()
    for ax, c in zip(axes, cols):
        rate = df.groupby(c, observed=True)[TARGET].mean().sort_values()
        sns.barplot(x=rate.values, y=rate.index.astype(str), color="#2A9D8F", ax=ax)
        ax.axvline(df[TARGET].mean(), color="k", ls="--", lw=1)
        ax.set_xlabel("Attrition rate"); ax.set_ylabel("")
        ax.set_title(c.replace("_", " ").title())
    for ax in axes[len(cols):]:
        ax.set_visible(False)
    fig.tight_layout()
    return save_figure(fig, "attrition_rate_by_category.png", fig_dir)


def plot_correlation(df, fig_dir=FIG_DIR):
    corr = df.select_dtypes(include=["number"]).corr()
    fig, ax = plt.subplots(figsize=(14, 12))
    mask = np.triu(np.ones_like(corr, dtype=bool), k=1)
    sns.heatmap(corr, mask=mask, cmap="coolwarm", vmin=-1, vmax=1,
                center=0, linewidths=.4, square=True, ax=ax,
                cbar_kws={"shrink": .7})
    ax.set_title("Correlation Matrix — Numeric Variables", fontweight="bold")
    return save_figure(fig, "correlation_matrix.png", fig_dir)


def explore(df, fig_dir=FIG_DIR):
    """All descriptive plots; returns the saved paths."""
    section("STEP 4 : EXPLORATORY PLOTS")
    return [
        plot_attrition_balance(df, fig_dir),
        plot_densities(df, fig_dir=fig_dir),
        plot_boxplots(df, fig_dir=fig_dir),
        plot_attrition_rates(df, fig_dir=fig_dir),
        plot_correlation(df, fig_dir),
    ]


# ═══════════════════════════════════════════════════════════════════════════
# STEP 5 — OUTLIER FLAGGING  (Cook's distance)
# ═══════════════════════════════════════════════════════════════════════════
def flag_outliers(df, fig_dir=FIG_DIR):
    """OLS of attrition on numeric predictors; flag Cook's D > 4/n.

    Rows are flagged only. Returns (flags, cooks) as Series on df.index.
    """
    section("STEP 5 : OUTLIER FLAGGING  (Cook's distance)")

    X = (df.select_dtypes(include=["number"])
           .drop(columns=[TARGET, "employee_number"], errors="ignore")
           .astype(float))
    X = sm.add_constant(X, has_constant="add")
    fit = sm.OLS(df[TARGET].astype(float), X).fit()
    cooks = pd.Series(fit.get_influence().cooks_distance[0],
                      index=df.index, name="cooks_distance")

    threshold = 4 / len(df)
    flags = (cooks > threshold).rename("outlier")
    print(f"  Predictors     : {X.shape[1] - 1}")
    print(f"  Threshold 4/n  : {threshold:.5f}")
    print(f"  Flagged rows   : {int(flags.sum())}  ({flags.mean()*100:.1f}%)")
    if flags.any():
        print(f"  Attrition among flagged : {df.loc[flags, TARGET].mean():.3f}")

    fig, ax = plt.subplots(figsize=(12, 4))
    ax.vlines(np.arange(len(cooks)), 0, cooks.values, color="#457B9D", lw=.6)
    ax.axhline(threshold, color="#E63946", ls="--", lw=1.2, label="4 / n")
    ax.set_xlabel("Observation"); ax.set_ylabel("Cook's distance")
    ax.set_title("Influential Observations", fontweight="bold")
    ax.legend(loc="upper right")
    save_figure(fig, "cooks_distance.png", fig_dir)
    return flags, cooks


# ═══════════════════════════════════════════════════════════════════════════
# STEP 6 — FEATURE ENGINEERING
# ═══════════════════════════════════════════════════════════════════════════
def engineer_features(df):
    """Add the satisfaction composite, drop its parts and noisy/collinear cols."""
    section("STEP 6 : FEATURE ENGINEERING")
    df = df.copy()

    df[COMPOSITE_COL] = df[SATISFACTION_COLS].sum(axis=1).astype(int)
    to_drop = [c for c in SATISFACTION_COLS + NOISY_COLS + COLLINEAR_COLS
               if c in df.columns]
    df.drop(columns=to_drop, inplace=True)

    print(f"  Added   : {COMPOSITE_COL}  "
          f"(range {df[COMPOSITE_COL].min()}–{df[COMPOSITE_COL].max()})")
    print(f"  Dropped : {to_drop}")
    print(f"  Shape   : {df.shape}")
    return df


# ═══════════════════════════════════════════════════════════════════════════
# STEP 7 — MODEL DEFINITIONS
# ═══════════════════════════════════════════════════════════════════════════
def get_models():
    """The five classifiers compared on the held-out partition."""
    return {
        "Logistic Regression":       LogisticRegression(max_iter=5000, random_state=SEED),
        "Lasso Logistic Regression": LogisticRegression(penalty="l1", solver="saga", C=0.1, max_iter=5000, random_state=SEED),
        "Random Forest":             RandomForestClassifier(n_estimators=200, random_state=SEED),
        "Decision Tree":             DecisionTreeClassifier(max_depth=5, min_samples_leaf=10, random_state=SEED),
        "SVM (RBF)":                 SVC(kernel="rbf", probability=True, random_state=SEED),
    }


# ═══════════════════════════════════════════════════════════════════════════
# STEP 7 — TRAIN + EVALUATE
# ═══════════════════════════════════════════════════════════════════════════
def train_all(Xtr, Xte, ytr, yte, preprocessor, models=None):
    """Fit each model on train, score on test.

    Returns (results, fitted, Xtr_p, Xte_p); results has one row per model.
    """
    section("STEP 7 : PREPROCESSING → TRAIN 5 MODELS → EVALUATE")

    # fit preprocessor on train only
    Xtr_p = preprocessor.fit_transform(Xtr)
    Xte_p = preprocessor.transform(Xte)
    print(f"  Design matrix : train {Xtr_p.shape}   test {Xte_p.shape}")

    models = get_models() if models is None else models
    rows, fitted = [], {}
    n = len(models)

    for i, (name, clf) in enumerate(models.items(), 1):
        tag = f"[{i}/{n}]"
        try:
            clf.fit(Xtr_p, ytr)
            yp  = clf.predict(Xte_p)
            ypr = clf.predict_proba(Xte_p)[:, 1]
            row = {
                "Model":    name,
                "Accuracy": accuracy_score(yte, yp),
                "ROC-AUC":  roc_auc_score(yte, ypr),
            }
            rows.append(row)
            fitted[name] = clf
            print(f"  {tag} {name:<28s}  ACC={row['Accuracy']:.4f}  "
                  f"AUC={row['ROC-AUC']:.4f} ✓")

        except Exception as e:
            print(f"  {tag} {name:<28s}  FAILED  ({e})")
            rows.append({"Model": name, "Accuracy": np.nan, "ROC-AUC": np.nan})

    return pd.DataFrame(rows), fitted, Xtr_p, Xte_p


# ═══════════════════════════════════════════════════════════════════════════
# STEP 7 — PERFORMANCE COMPARISON
# ═══════════════════════════════════════════════════════════════════════════
def compare(df_res, res_dir=RES_DIR):
    """Rank by ROC-AUC, print the table, save it as CSV."""
    section("STEP 7 : PERFORMANCE COMPARISON")

    ranked = (df_res
              .sort_values("ROC-AUC", ascending=False)
              .reset_index(drop=True))
    ranked.index = ranked.index + 1
    ranked.index.name = "Rank"

    pd.set_option("display.max_columns", None)
    pd.set_option("display.width", 220)
    pd.set_option("display.float_format", "{:.4f}".format)
    print("\n", ranked.to_string())

    os.makedirs(res_dir, exist_ok=True)
    p = os.path.join(res_dir, "model_comparison.csv")
    ranked.to_csv(p)
    print(f"\n  Saved → {p}")
    return ranked


def feature_names(preprocessor, num_cols, cat_cols):
    names = list(num_cols)
    if cat_cols:
        ohe = preprocessor.named_transformers_["cat"]
        names += ohe.get_feature_names_out(cat_cols).tolist()
    return np.array(names)


def prepare(path=DATA_PATH, fig_dir=FIG_DIR, plots=True):
    """Steps 1-6: returns the modelling frame and the outlier flags."""
    df = clean_data(load_data(path))
    if plots:
        explore(df, fig_dir)
    flags, _ = flag_outliers(df, fig_dir)
    return engineer_features(df), flags


# ═══════════════════════════════════════════════════════════════════════════
# MAIN
# ═══════════════════════════════════════════════════════════════════════════
def main(path=DATA_PATH):
    print("╔════════════════════════════════════════════════════════════════════╗")
    print("║  Employee Attrition — EDA & 5-Model Comparison                     ║")
    print("╚════════════════════════════════════════════════════════════════════╝\n")

    # 1-6  Load, clean, explore, flag, engineer
    df, flags = prepare(path)

    # 3  Split
    X, y = model_matrix(df)
    num_cols, cat_cols = detect_column_types(X)
    print(f"\n  Numerical  ({len(num_cols)}): {num_cols}")
    print(f"  Categorical({len(cat_cols)}): {cat_cols}")
    preprocessor = build_preprocessor(num_cols, cat_cols)
    Xtr, Xte, ytr, yte = split_data(X, y)

    # 7  Train all five, compare
    res_df, fitted, _, _ = train_all(Xtr, Xte, ytr, yte, preprocessor)
    ranked = compare(res_df)

    # ── Final summary ──────────────────────────────────────────────────
    best = ranked.iloc[0]
    print("\n" + "=" * 72)
    print("PIPELINE COMPLETE")
    print("=" * 72)
    print(f"  Rows          : {len(df)}  (flagged influential: {int(flags.sum())})")
    print(f"  Best Model    : {best['Model']}")
    print(f"  Accuracy      : {best['Accuracy']:.4f}")
    print(f"  ROC-AUC       : {best['ROC-AUC']:.4f}")
    print(f"  Figures       : {FIG_DIR}/")
    print(f"  Results       : {RES_DIR}/model_comparison.csv")
    print("=" * 72 + "\n")
    return ranked


if __name__ == "__main__":
    main()
