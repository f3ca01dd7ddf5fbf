import logging

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


# Purpose: Compute summary metrics for a scored tract layer.
# Inputs:
# - scored (GeoDataFrame): Output of score_tracts with 'accessibility' and 'accessibility_status'.
# - income_column (str): Median household income column used for quintile binning.
# Outputs:
# - dict: Tract count, counts per status, mean/median score, and mean score per income quintile.
def summarize_scores(scored, income_column: str = "median_income") -> dict:
    scores = scored["accessibility"].astype(float) if "accessibility" in scored else pd.Series(dtype=float)
    status = scored["accessibility_status"] if "accessibility_status" in scored else pd.Series(dtype=object)
    metrics = {
        "tracts": int(len(scored)),
        "status_counts": {str(k): int(v) for k, v in status.value_counts().sort_index().items()},
        "mean_accessibility": _round(scores.mean()),
        "median_accessibility": _round(scores.median()),
        "by_income_quintile": income_quintiles(scored, income_column),
    }
    logger.info(f"Metrics: {metrics}")
    return metrics


# Purpose: Mean accessibility per median-income quintile (Q1 = lowest income).
# Inputs:
# - scored (DataFrame): Rows with 'accessibility' and the income column.
# - income_column (str): Income column; rows with missing income are left out.
# Outputs:
# - dict[str, dict]: {'Q1': {'tracts': n, 'income_min': .., 'income_max': .., 'mean_accessibility': ..}, ...}.
#   Fewer bins when incomes have fewer distinct values; empty when fewer than two.
def income_quintiles(scored, income_column: str = "median_income") -> dict:
    if income_column not in scored or "accessibility" not in scored:
        return {}
    df = pd.DataFrame({
        "income": pd.to_numeric(scored[income_column], errors="coerce"),
        "score": scored["accessibility"].astype(float),
    }).dropna(subset=["income"])
    if df["income"].nunique() < 2:
        return {}
    q = min(5, int(df["income"].nunique()))
    df["bin"] = pd.qcut(df["income"], q=q, labels=False, duplicates="drop")
    out = {}
    for b, grp in df.groupby("bin", sort=True):
        out[f"Q{int(b) + 1}"] = {
            "tracts": int(len(grp)),
            "income_min": _round(grp["income"].min(), 2),
            "income_max": _round(grp["income"].max(), 2),
            "mean_accessibility": _round(grp["score"].mean()),
        }
    return out


def _round(x, ndigits=4):
    if x is None or np.isnan(x):
        return None
    return round(float(x), ndigits)
