"""
Multi-model alignment.

Models rarely cover the same forecasts: one model may have skipped a day, another
may have started later. Comparing raw means would then reward models for the
forecasts they did not submit. Alignment restricts every model to the
(datetime, reference_datetime) keys that all requested models scored.
"""

from typing import List, Optional, Sequence

import pandas as pd

from .config import Config
from . import validation


def _select_models(df: pd.DataFrame, model_ids: Optional[Sequence[str]], model_col: str) -> List[str]:
    if model_ids is None:
        return sorted(df[model_col].dropna().unique())
    return list(model_ids)


def pivot_metric(
    df: pd.DataFrame,
    metric: str = "crps",
    model_ids: Optional[Sequence[str]] = None,
    keys: Sequence[str] = Config.ALIGN_KEYS,
    model_col: str = Config.MODEL_COL,
) -> pd.DataFrame:
    """
    Wide view of one metric: one row per key, one column per model.

    Requested models absent from `df` appear as all-NaN columns.

    Raises:
        ValidationError: if a key or metric column is missing
        DuplicateRecordError: if a (model, *keys) combination repeats
    """
    keys = list(keys)
    validation.validate_columns(df, keys + [model_col, metric], context="alignment input")
    models = _select_models(df, model_ids, model_col)

    sub = df[df[model_col].isin(models)]
    validation.validate_unique_keys(sub, [model_col] + keys, context="alignment input")

    if sub.empty:
        empty_index = pd.MultiIndex.from_arrays([[] for _ in keys], names=keys)
        wide = pd.DataFrame(index=empty_index, columns=models, dtype=float)
    else:
        wide = sub.pivot(index=keys, columns=model_col, values=metric).reindex(columns=models)
    wide.columns.name = model_col
    return wide


def common_keys(
    df: pd.DataFrame,
    metric: str = "crps",
    model_ids: Optional[Sequence[str]] = None,
    keys: Sequence[str] = Config.ALIGN_KEYS,
    model_col: str = Config.MODEL_COL,
) -> pd.DataFrame:
    """Keys at which every requested model has a non-missing `metric`."""
    wide = pivot_metric(df, metric, model_ids, keys, model_col)
    complete = wide.dropna(how="any")
    return complete.index.to_frame(index=False)


def align_models(
    df: pd.DataFrame,
    metric: str = "crps",
    model_ids: Optional[Sequence[str]] = None,
    keys: Sequence[str] = Config.ALIGN_KEYS,
    model_col: str = Config.MODEL_COL,
) -> pd.DataFrame:
    """
    Restrict a long score table to the keys shared by all requested models.

    Pivot wide (one column per model), drop keys where any model is missing,
    then melt back to long form.

    Args:
        df: Long table with `model_col`, `keys` and `metric` columns
        metric: Score column to align (e.g. "crps", "logs")
        model_ids: Models to compare (default: every model in `df`)
        keys: Columns identifying one forecast
        model_col: Model identifier column

    Returns:
        DataFrame with columns [*keys, model_col, metric]; for every kept key
        each requested model has exactly one non-missing value.
    """
    keys = list(keys)
    wide = pivot_metric(df, metric, model_ids, keys, model_col).dropna(how="any")
    long = wide.reset_index().melt(id_vars=keys, var_name=model_col, value_name=metric)
    long[metric] = long[metric].astype(float)
    return long.sort_values([model_col] + keys, ignore_index=True)


def align_records(
    df: pd.DataFrame,
    metric: str = "crps",
    model_ids: Optional[Sequence[str]] = None,
    keys: Sequence[str] = Config.ALIGN_KEYS,
    model_col: str = Config.MODEL_COL,
) -> pd.DataFrame:
    """
    Like align_models(), but keeps every column of the input rows.

    The original rows of the requested models are inner-joined against the
    common key set, so observations, quantiles and other metrics travel along.
    """
    keys = list(keys)
    shared = common_keys(df, metric, model_ids, keys, model_col)
    models = _select_models(df, model_ids, model_col)
    rows = df[df[model_col].isin(models)]
    aligned = rows.merge(shared, on=keys, how="inner")
    return aligned.sort_values([model_col] + keys, ignore_index=True)
