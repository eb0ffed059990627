"""
Evaluation Module - Aggregation of precomputed scores.

This module provides a clean interface for:
- Deriving forecast horizons from datetime and reference_datetime
- Mean scores per model, per (model, horizon) and per (model, reference_datetime)
- Comparisons against a baseline model (relative scores, skill scores)
- Empirical coverage of the central prediction interval

Scores (crps, logs) are computed upstream; nothing here scores a forecast.
"""

from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Sequence, Union

import pandas as pd

from .config import Config
from . import validation


@dataclass
class MetricSpec:
    """Specification for a scoring metric with metadata."""
    name: str                               # Column name in the score table
    orientation: Literal["min", "max", "target"]  # Lower, higher, or closest to `target` is better
    family: str                             # Metric family ("crps", "logs", "coverage")
    description: str = ""
    target: Optional[float] = None          # Ideal value for orientation="target"


class MetricRegistry:
    """Metrics found in the score archive, plus derived coverage."""

    CRPS = MetricSpec(
        name="crps",
        orientation="min",
        family="crps",
        description="Continuous Ranked Probability Score",
    )

    LOGS = MetricSpec(
        name="logs",
        orientation="min",
        family="logs",
        description="Ignorance (negative log) score",
    )

    COVERAGE_95 = MetricSpec(
        name="coverage_95",
        orientation="target",
        family="coverage",
        description="Share of observations inside the 95% interval",
        target=0.95,
    )

    ALL = [CRPS, LOGS, COVERAGE_95]

    @classmethod
    def get(cls, name: str) -> Optional[MetricSpec]:
        for spec in cls.ALL:
            if spec.name == name:
                return spec
        return None


def add_horizon(df: pd.DataFrame, unit: Optional[str] = "D") -> pd.DataFrame:
    """
    Add a `horizon` column: datetime - reference_datetime.

    Args:
        df: Table with datetime and reference_datetime columns
        unit: Pandas timedelta unit for a float horizon ("D", "h", ...);
            None keeps the Timedelta

    Returns:
        Copy of `df` with a horizon column
    """
    validation.validate_columns(df, ["datetime", "reference_datetime"], context="horizon input")
    out = df.copy()
    delta = pd.to_datetime(out["datetime"]) - pd.to_datetime(out["reference_datetime"])
    if unit is None:
        out["horizon"] = delta
    else:
        out["horizon"] = delta / pd.Timedelta(1, unit=unit)
    return out


def filter_reference_after(df: pd.DataFrame, bound, column: str = "reference_datetime") -> pd.DataFrame:
    """
    Keep rows whose reference_datetime is strictly after `bound`.

    The bound is brought to the column's timezone first; a tz-aware bound on a
    naive column (as collect() returns) is read as UTC.
    """
    validation.validate_columns(df, [column], context="reference filter input")
    values = pd.to_datetime(df[column])
    ts = pd.Timestamp(bound)
    column_tz = values.dt.tz
    if column_tz is None and ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    elif column_tz is not None:
        ts = ts.tz_localize(column_tz) if ts.tzinfo is None else ts.tz_convert(column_tz)
    return df[values > ts]


def summarise_metric(
    df: pd.DataFrame,
    metric: str = "crps",
    by: Sequence[str] = (Config.MODEL_COL,),
    agg: str = "mean",
) -> pd.DataFrame:
    """
    Aggregate a metric over groups.

    Args:
        df: Long score table
        metric: Column to aggregate
        by: Grouping columns
        agg: Aggregation ("mean", "median", "sum")

    Returns:
        DataFrame with columns [*by, metric, "n"], one row per group.
        Missing metric values are skipped; `n` counts the values used.
    """
    by = list(by)
    validation.validate_columns(df, by + [metric], context="summary input")

    grouped = df.groupby(by, as_index=False, dropna=False)[metric]
    summary = grouped.agg(agg)
    summary["n"] = grouped.count()[metric].to_numpy()
    return summary


def _order_models(summary: pd.DataFrame, metric: str) -> pd.DataFrame:
    spec = MetricRegistry.get(metric)
    if spec is not None and spec.orientation == "target":
        return summary.sort_values(metric, key=lambda s: (s - spec.target).abs(), ignore_index=True)
    ascending = spec is None or spec.orientation == "min"
    return summary.sort_values(metric, ascending=ascending, ignore_index=True)


def mean_by_model(df: pd.DataFrame, metric: str = "crps", model_col: str = Config.MODEL_COL) -> pd.DataFrame:
    """Mean metric per model, best model first."""
    summary = summarise_metric(df, metric, by=[model_col])
    return _order_models(summary, metric)


def mean_by_horizon(df: pd.DataFrame, metric: str = "crps", model_col: str = Config.MODEL_COL,
                    unit: Optional[str] = "D") -> pd.DataFrame:
    if "horizon" not in df.columns:
        df = add_horizon(df, unit=unit)
    summary = summarise_metric(df, metric, by=[model_col, "horizon"])
    return summary.sort_values([model_col, "horizon"], ignore_index=True)


def mean_by_reference_datetime(df: pd.DataFrame, metric: str = "crps",
                               model_col: str = Config.MODEL_COL) -> pd.DataFrame:
    summary = summarise_metric(df, metric, by=[model_col, "reference_datetime"])
    return summary.sort_values([model_col, "reference_datetime"], ignore_index=True)


def _comparison_keys(df: pd.DataFrame) -> List[str]:
    keys = list(Config.ALIGN_KEYS)
    if "site_id" in df.columns:
        keys.append("site_id")
    return keys


def relative_scores(
    df: pd.DataFrame,
    baseline_model: str,
    metric: str = "crps",
    model_col: str = Config.MODEL_COL,
) -> pd.DataFrame:
    """
    Ratio of each model's metric to the baseline's at the same forecast.

    Rows are matched on datetime, reference_datetime and, when present,
    site_id. Forecasts the baseline did not score are dropped.

    Returns:
        DataFrame with [*keys, model_col, metric, "<metric>_baseline", "relative_<metric>"]
    """
    keys = _comparison_keys(df)
    validation.validate_columns(df, keys + [model_col, metric], context="relative score input")

    base = df[df[model_col] == baseline_model]
    if base.empty:
        raise ValueError(f"Baseline model '{baseline_model}' not found in scores")

    rel = pd.merge(
        df[keys + [model_col, metric]],
        base[keys + [metric]],
        on=keys,
        suffixes=("", "_baseline"),
    )
    rel[f"relative_{metric}"] = rel[metric] / rel[f"{metric}_baseline"]
    return rel


def skill_scores(
    df: pd.DataFrame,
    baseline_model: str,
    metric: str = "crps",
    model_col: str = Config.MODEL_COL,
) -> pd.DataFrame:
    """
    Skill of each model against a baseline: 1 - mean(model) / mean(baseline).

    Means are taken over forecasts scored by both the model and the baseline,
    so positive skill means the model beat the baseline on the same forecasts.
    """
    rel = relative_scores(df, baseline_model, metric, model_col)
    means = rel.groupby(model_col, as_index=False).agg(
        **{metric: (metric, "mean"), "baseline": (f"{metric}_baseline", "mean"), "n": (metric, "count")}
    )
    means["skill"] = 1.0 - means[metric] / means["baseline"]
    return means.sort_values("skill", ascending=False, ignore_index=True)


def interval_coverage(
    df: pd.DataFrame,
    lower: str = Config.QUANTILE_LOW,
    upper: str = Config.QUANTILE_HIGH,
    observation: str = Config.OBSERVATION,
    by: Union[str, Sequence[str]] = Config.MODEL_COL,
    nominal: float = 0.95,
) -> pd.DataFrame:
    """
    Share of observations inside [lower, upper], per group.

    Rows without an observation are ignored.

    Returns:
        DataFrame with [*by, "coverage_95", "coverage_95_gap", "n"]
    """
    by = [by] if isinstance(by, str) else list(by)
    validation.validate_columns(df, by + [lower, upper, observation], context="coverage input")

    observed = df.dropna(subset=[observation, lower, upper])
    inside = (observed[observation] >= observed[lower]) & (observed[observation] <= observed[upper])
    observed = observed.assign(_inside=inside.astype(float))

    cov = observed.groupby(by, as_index=False).agg(
        coverage_95=("_inside", "mean"), n=("_inside", "size")
    )
    cov["coverage_95_gap"] = cov["coverage_95"] - nominal
    return cov[by + ["coverage_95", "coverage_95_gap", "n"]]


def missing_counts(df: pd.DataFrame, metric: str = "crps", model_col: str = Config.MODEL_COL) -> Dict[str, int]:
    """Number of rows per model with a missing metric value."""
    validation.validate_columns(df, [model_col, metric], context="missing count input")
    counts = df[metric].isna().groupby(df[model_col]).sum()
    return {model: int(n) for model, n in counts.items()}
