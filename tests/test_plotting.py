"""
Tests for forecast ribbons and score charts.
"""

import pytest
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from forecast_archive import evaluation, plotting


class TestForecastRibbon:

    def test_returns_figure(self, scores_df):
        fig = plotting.forecast_ribbon(scores_df, "2024-01-02", site_id="BART")
        assert isinstance(fig, Figure)
        ax = fig.axes[0]
        # One line per model
        assert len(ax.get_lines()) == 3
        plt.close(fig)

    def test_saves_file(self, scores_df, tmp_path):
        fig = plotting.forecast_ribbon(scores_df, "2024-01-02", site_id="BART",
                                       filename="ribbon.png", save_dir=str(tmp_path))
        assert (tmp_path / "ribbon.png").exists()
        plt.close(fig)

    def test_unknown_reference_raises(self, scores_df):
        with pytest.raises(ValueError):
            plotting.forecast_ribbon(scores_df, "2023-06-01")

    def test_draws_into_given_axes(self, scores_df):
        fig, ax = plt.subplots()
        out = plotting.forecast_ribbon(scores_df, "2024-01-03", site_id="HARV", ax=ax)
        assert out is fig
        plt.close(fig)


class TestScoreCharts:

    def test_bar_chart(self, scores_df, tmp_path):
        summary = evaluation.mean_by_model(scores_df)
        fig = plotting.model_bar_chart(summary, "crps", filename="bar.png", save_dir=str(tmp_path))
        assert (tmp_path / "bar.png").exists()
        assert len(fig.axes[0].patches) == 3
        plt.close(fig)

    def test_line_chart_by_horizon(self, scores_df):
        summary = evaluation.mean_by_horizon(scores_df)
        fig = plotting.metric_line_chart(summary, "horizon", "crps")
        assert len(fig.axes[0].get_lines()) == 3
        plt.close(fig)

    def test_line_chart_by_reference(self, scores_df):
        summary = evaluation.mean_by_reference_datetime(scores_df)
        fig = plotting.metric_line_chart(summary, "reference_datetime", "crps")
        assert fig.axes[0].get_xlabel() == "reference_datetime"
        plt.close(fig)
