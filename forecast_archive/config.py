"""
Configuration for the forecast archive: where the datasets live and how they are partitioned.
"""

import logging
from typing import Dict, Optional, Tuple


class Config:
    """Archive locations and layout constants."""

    # Object store
    ENDPOINT = "sdsc.osn.xsede.org"
    BUCKET = "bio230014-bucket01"
    ARCHIVE_PREFIX = "challenges"

    # Dataset kind -> path under ARCHIVE_PREFIX
    DATASETS: Dict[str, str] = {
        "forecasts": "forecasts/parquet",
        "summaries": "summaries/parquet",
        "scores": "scores/parquet",
    }

    # Hive partition keys, outermost first. Scores are re-run whenever new
    # observations arrive for a datetime, so they partition on datetime only.
    PARTITIONS: Dict[str, Tuple[str, ...]] = {
        "forecasts": ("project_id", "duration", "variable", "model_id", "reference_datetime"),
        "summaries": ("project_id", "duration", "variable", "model_id", "reference_datetime"),
        "scores": ("project_id", "duration", "variable", "model_id", "datetime"),
    }

    # Partition keys whose directory values are calendar dates
    DATE_PARTITION_KEYS = ("reference_datetime", "datetime", "date")

    # Columns of the default forecast ribbon
    CENTRAL = "median"
    QUANTILE_LOW = "quantile02.5"
    QUANTILE_HIGH = "quantile97.5"
    OBSERVATION = "observation"

    MODEL_COL = "model_id"
    ALIGN_KEYS = ("datetime", "reference_datetime")

    CATALOG_URL = "https://raw.githubusercontent.com/eco4cast/neon4cast-ci/main/catalog/catalog.json"

    LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def dataset_url(kind: str, endpoint: Optional[str] = None, bucket: Optional[str] = None) -> str:
    """
    Build the object-store URL of a dataset kind.

    Args:
        kind: One of Config.DATASETS ("forecasts", "summaries", "scores")
        endpoint: Endpoint override (default: Config.ENDPOINT)
        bucket: Bucket name (default: Config.BUCKET)

    Returns:
        URL such as s3://anonymous@bucket/challenges/scores/parquet?endpoint_override=host
    """
    if kind not in Config.DATASETS:
        raise KeyError(f"Dataset kind '{kind}' not found in configuration. Available: {list(Config.DATASETS.keys())}")

    endpoint = Config.ENDPOINT if endpoint is None else endpoint
    bucket = Config.BUCKET if bucket is None else bucket
    path = f"{bucket}/{Config.ARCHIVE_PREFIX}/{Config.DATASETS[kind]}"
    return f"s3://anonymous@{path}?endpoint_override={endpoint}"


def configure_logging(level=logging.INFO) -> None:
    logging.basicConfig(level=level, format=Config.LOG_FORMAT)
