"""
Forecast Archive Plotting - Forecast ribbons and score comparison charts.

This module provides:
- forecast_ribbon: quantile ribbon, central line and observations for one reference_datetime
- model_bar_chart: mean metric per model
- metric_line_chart: mean metric against horizon or reference_datetime, one line per model

Every function returns the matplotlib Figure and also writes it to
save_dir/filename when both are given.
"""

from typing import Dict, Optional
import os

import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns

from .config import Config
from . import validation


def _model_palette(models) -> Dict[str, tuple]:
    models = list(models)
    colors = sns.color_palette("tab10", n_colors=max(len(models), 1))
    return {model: colors[i % len(colors)] for i, model in enumerate(models)}


def _finish(fig, filename: Optional[str], save_dir: Optional[str]):
    fig.tight_layout()
    if filename is not None and save_dir is not None:
        os.makedirs(save_dir, exist_ok=True)
        fig.savefig(os.path.join(save_dir, filename), dpi=200, bbox_inches='tight')
    return fig


def forecast_ribbon(
    df: pd.DataFrame,
    reference_datetime,
    site_id: Optional[str] = None,
    lower: str = Config.QUANTILE_LOW,
    upper: str = Config.QUANTILE_HIGH,
    central: str = Config.CENTRAL,
    observation: str = Config.OBSERVATION,
    model_col: str = Config.MODEL_COL,
    title: Optional[str] = None,
    filename: Optional[str] = None,
    save_dir: Optional[str] = None,
    ax=None,
):
    """
    Plot the forecasts issued at one reference_datetime.

    Args:
        df: Summary or score table with datetime, reference_datetime, model
            and the lower/upper/central columns
        reference_datetime: Issue time to plot
        site_id: Restrict to one site (required if several are present)
        lower, upper: Quantile columns bounding the ribbon
        central: Column drawn as a line (mean or median)
        observation: Observed values, drawn as points when the column exists
        title: Plot title (default built from site and reference_datetime)
        filename, save_dir: Where to save the figure
        ax: Existing axes to draw into

    Raises:
        ValueError: if no rows match reference_datetime (and site_id)
    """
    validation.validate_columns(
        df, ["datetime", "reference_datetime", model_col, lower, upper, central], context="ribbon input"
    )

    ref = pd.Timestamp(reference_datetime)
    plot_data = df[pd.to_datetime(df["reference_datetime"]) == ref]
    if site_id is not None:
        plot_data = plot_data[plot_data["site_id"] == site_id]
    if plot_data.empty:
        raise ValueError(f"No forecasts issued at {ref} for site {site_id}")

    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 5))
    else:
        fig = ax.figure

    models = sorted(plot_data[model_col].unique())
    colors = _model_palette(models)
    for model in models:
        model_data = plot_data[plot_data[model_col] == model].sort_values("datetime")
        ax.fill_between(model_data["datetime"], model_data[lower], model_data[upper],
                        color=colors[model], alpha=0.3, lw=0)
        ax.plot(model_data["datetime"], model_data[central], color=colors[model], lw=2, label=model)

    if observation in plot_data.columns:
        # Observations are the same across models; plot each timestamp once
        obs = plot_data.dropna(subset=[observation]).drop_duplicates(subset=["datetime"])
        ax.scatter(obs["datetime"], obs[observation], color="black", s=12, zorder=3, label="observed")

    if title is None:
        title = f"{site_id + ' - ' if site_id else ''}reference {ref:%Y-%m-%d}"
    ax.set_title(title)
    ax.set_xlabel("datetime")
    ax.legend(fontsize=8)
    fig.autofmt_xdate()
    return _finish(fig, filename, save_dir)


def model_bar_chart(
    summary: pd.DataFrame,
    metric: str = "crps",
    model_col: str = Config.MODEL_COL,
    title: Optional[str] = None,
    filename: Optional[str] = None,
    save_dir: Optional[str] = None,
):
    """Bar chart of a per-model summary (e.g. evaluation.mean_by_model output)."""
    validation.validate_columns(summary, [model_col, metric], context="bar chart input")

    fig, ax = plt.subplots(figsize=(max(6, 0.6 * len(summary)), 5))
    colors = _model_palette(summary[model_col])
    sns.barplot(data=summary, x=model_col, y=metric, hue=model_col, palette=colors, legend=False, ax=ax)
    ax.set_ylabel(f"mean {metric}")
    ax.set_title(title or f"Mean {metric} by model")
    ax.tick_params(axis='x', labelrotation=45)
    return _finish(fig, filename, save_dir)


def metric_line_chart(
    summary: pd.DataFrame,
    x: str = "horizon",
    metric: str = "crps",
    model_col: str = Config.MODEL_COL,
    title: Optional[str] = None,
    filename: Optional[str] = None,
    save_dir: Optional[str] = None,
):
    """
    Mean metric against `x` ("horizon" or "reference_datetime"), one line per model.
    """
    validation.validate_columns(summary, [model_col, x, metric], context="line chart input")

    fig, ax = plt.subplots(figsize=(10, 5))
    models = sorted(summary[model_col].unique())
    colors = _model_palette(models)
    for model in models:
        model_data = summary[summary[model_col] == model].sort_values(x)
        ax.plot(model_data[x], model_data[metric], color=colors[model], marker='o', ms=3, lw=1.5, label=model)

    ax.set_xlabel(x)
    ax.set_ylabel(f"mean {metric}")
    ax.set_title(title or f"Mean {metric} by {x}")
    ax.legend(fontsize=8)
    if x == "reference_datetime":
        fig.autofmt_xdate()
    return _finish(fig, filename, save_dir)
