#!/usr/bin/env python3
"""
Summarise aligned scores for a set of models from the score archive.

Usage:
    forecast-archive --project_id neon4cast --variable temperature --site_id BART \
        --models climatology,persistenceRW,tg_arima --reference_after 2024-01-01
"""

from pathlib import Path
import logging

import click
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from .config import Config, configure_logging, dataset_url
from . import access, alignment, evaluation, plotting

logger = logging.getLogger(__name__)


@click.command()
@click.option("--url", default=None, help="Scores dataset root (default: archive scores URL)")
@click.option("--project_id", default="neon4cast", show_default=True, help="Project partition")
@click.option("--duration", default="P1D", show_default=True, help="Duration partition")
@click.option("--variable", required=True, help="Variable partition (e.g. temperature)")
@click.option("--site_id", default=None, help="Site to keep")
@click.option("--models", required=True, help="Comma-separated model_ids to compare")
@click.option("--reference_after", default=None, help="Keep reference_datetime strictly after this date (YYYY-MM-DD)")
@click.option("--metric", default="crps", show_default=True, help="Score column to summarise")
@click.option("--baseline", default=None, help="Baseline model for skill scores")
@click.option("--output_dir", default="./results", show_default=True, help="Where to write tables and figures")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def main(url, project_id, duration, variable, site_id, models, reference_after, metric, baseline,
         output_dir, verbose):
    """Open, filter, align and summarise archive scores"""
    configure_logging(logging.DEBUG if verbose else logging.INFO)

    url = url or dataset_url("scores")
    model_ids = [m.strip() for m in models.split(",") if m.strip()]
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    scores_ds = access.open_dataset(url, kind="scores", project_id=project_id, duration=duration,
                                    variable=variable, model_id=model_ids)
    scores_ds = scores_ds.filter(site_id=site_id, reference_after=reference_after)
    scores = scores_ds.collect()

    if scores.empty:
        logger.warning("No scores matched the filters")
        return

    missing = evaluation.missing_counts(scores, metric)
    absent = [m for m in model_ids if m not in missing]
    if absent:
        logger.warning(f"No scores for models: {absent}")

    keys = list(Config.ALIGN_KEYS) if site_id is not None else list(Config.ALIGN_KEYS) + ["site_id"]
    aligned = alignment.align_models(scores, metric=metric, model_ids=model_ids, keys=keys)
    logger.info(f"{aligned[Config.ALIGN_KEYS[0]].nunique()} datetimes shared by {len(model_ids)} models "
                f"(missing {metric} per model: {missing})")

    if aligned.empty:
        logger.warning("Requested models share no scored forecasts; nothing to summarise")
        return

    by_model = evaluation.mean_by_model(aligned, metric)
    by_horizon = evaluation.mean_by_horizon(aligned, metric)
    by_reference = evaluation.mean_by_reference_datetime(aligned, metric)

    by_model.to_csv(output_path / "mean_by_model.csv", index=False)
    by_horizon.to_csv(output_path / "mean_by_horizon.csv", index=False)
    by_reference.to_csv(output_path / "mean_by_reference_datetime.csv", index=False)

    if baseline is not None:
        skill = evaluation.skill_scores(aligned, baseline, metric)
        skill.to_csv(output_path / "skill_scores.csv", index=False)

    figures = [
        plotting.model_bar_chart(by_model, metric, filename="mean_by_model.png", save_dir=str(output_path)),
        plotting.metric_line_chart(by_horizon, "horizon", metric,
                                   filename="mean_by_horizon.png", save_dir=str(output_path)),
        plotting.metric_line_chart(by_reference, "reference_datetime", metric,
                                   filename="mean_by_reference_datetime.png", save_dir=str(output_path)),
    ]
    for fig in figures:
        plt.close(fig)

    click.echo(by_model.to_string(index=False))
    logger.info(f"Results written to {output_path}")


if __name__ == "__main__":
    main()
