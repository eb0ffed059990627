"""
Forecast Archive - Query, align and visualise scores from a partitioned forecast archive.

This package provides modular components for reading the archive:

- forecast_archive.config: Archive locations, partition layouts and logging setup
  - Config: Endpoint, bucket and dataset layout constants
  - dataset_url(): Build the object-store URL of a dataset kind

- forecast_archive.access: Lazy, partition-aware dataset handles
  - open_dataset(): Open a dataset root with partition predicates pushed down
  - ArchiveDataset: filter() and collect() into a pandas DataFrame

- forecast_archive.alignment: Multi-model alignment on a shared key set
  - align_models(), common_keys(), align_records()

- forecast_archive.evaluation: Horizons, aggregates and baseline comparisons
  - mean_by_model(), mean_by_horizon(), mean_by_reference_datetime()
  - relative_scores(), skill_scores(), interval_coverage()

- forecast_archive.plotting: Forecast ribbons and score charts

- forecast_archive.catalog: STAC catalog discovery of dataset URLs

- forecast_archive.validation: Column and key checks
  - ValidationError, DuplicateRecordError

Usage:
    from forecast_archive import access, alignment, evaluation

    ds = access.open_dataset(url, project_id="neon4cast", variable="temperature")
    scores = ds.filter(site_id="BART", reference_after="2024-01-01").collect()
    aligned = alignment.align_models(scores, metric="crps")
    evaluation.mean_by_model(aligned)
"""

__version__ = "0.1.0"

from . import config
from . import validation
from . import access
from . import alignment
from . import evaluation
from . import catalog
from . import plotting

__all__ = ['config', 'validation', 'access', 'alignment', 'evaluation', 'catalog', 'plotting']
