"""
Pytest fixtures for forecast archive tests.

A small hive-partitioned score archive is written once per session with the
same layout as the remote one:
project_id=/duration=/variable=/model_id=/datetime=/part-N.parquet
"""

import pytest
import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq
from pathlib import Path
import sys

import matplotlib
matplotlib.use("Agg")

# Add package to path
sys.path.insert(0, str(Path(__file__).parent.parent))
from forecast_archive.config import Config


REFERENCE_DATES = ["2024-01-01", "2024-01-02", "2024-01-03"]
SITES = ["BART", "HARV"]
HORIZONS = [1, 2, 3]
MODELS = {
    # model_id -> (reference dates submitted, crps offset)
    "climatology": (REFERENCE_DATES, 1.0),
    "tg_arima": (REFERENCE_DATES, 0.5),
    "persistenceRW": (REFERENCE_DATES[1:], 0.8),
}


def build_scores() -> pd.DataFrame:
    rows = []
    for model_id, (ref_dates, offset) in MODELS.items():
        for ref in ref_dates:
            for site_id in SITES:
                for h in HORIZONS:
                    ref_ts = pd.Timestamp(ref)
                    dt = ref_ts + pd.Timedelta(days=h)
                    observation = 10.0 + h
                    median = observation + offset
                    rows.append({
                        "project_id": "neon4cast",
                        "duration": "P1D",
                        "variable": "temperature",
                        "model_id": model_id,
                        "datetime": dt.strftime("%Y-%m-%d"),
                        "reference_datetime": ref_ts,
                        "site_id": site_id,
                        "observation": observation,
                        "median": median,
                        "quantile02.5": median - 2.0,
                        "quantile97.5": median + 2.0,
                        "crps": offset + 0.1 * h,
                        "logs": offset + 0.2 * h,
                    })
    return pd.DataFrame(rows)


@pytest.fixture(scope="session")
def scores_frame():
    """Score rows as written to the archive fixture (datetime as partition strings)."""
    return build_scores()


@pytest.fixture(scope="session")
def scores_archive(tmp_path_factory, scores_frame):
    """Path to a local hive-partitioned score archive."""
    root = tmp_path_factory.mktemp("archive") / "scores" / "parquet"
    table = pa.Table.from_pandas(scores_frame, preserve_index=False)
    pq.write_to_dataset(table, root_path=str(root), partition_cols=list(Config.PARTITIONS["scores"]))
    return str(root)


@pytest.fixture
def scores_df(scores_frame):
    """Score rows as collect() returns them: datetime parsed to datetime64."""
    df = scores_frame.copy()
    df["datetime"] = pd.to_datetime(df["datetime"])
    return df


@pytest.fixture
def two_model_scores():
    """Model A scored at t=1,2,3 and model B at t=2,3."""
    ref = pd.Timestamp("2024-01-01")
    return pd.DataFrame({
        "model_id": ["A", "A", "A", "B", "B"],
        "datetime": [ref + pd.Timedelta(days=d) for d in [1, 2, 3, 2, 3]],
        "reference_datetime": [ref] * 5,
        "crps": [100.0, 2.0, 4.0, 3.0, 5.0],
    })
