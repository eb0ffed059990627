"""
Tests for opening, filtering and collecting partitioned datasets.
"""

import datetime
from pathlib import Path

import pytest
import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from forecast_archive import access
from forecast_archive.access import ArchiveDataset


class TestOpenDataset:
    """Opening dataset roots."""

    def test_collect_everything(self, scores_archive, scores_frame):
        df = access.open_dataset(scores_archive).collect()
        assert len(df) == len(scores_frame)
        expected = {"site_id", "model_id", "datetime", "reference_datetime", "observation",
                    "median", "quantile02.5", "quantile97.5", "crps"}
        assert expected.issubset(df.columns)

    def test_open_is_lazy(self, scores_archive):
        handle = access.open_dataset(scores_archive)
        assert isinstance(handle, ArchiveDataset)
        assert handle.expression is None
        assert handle.partition_keys[-1] == "datetime"

    def test_partition_filters_pushed_down(self, scores_archive):
        df = access.open_dataset(scores_archive, project_id="neon4cast", model_id="tg_arima").collect()
        assert set(df["model_id"]) == {"tg_arima"}
        assert len(df) == 18

    def test_partition_membership_filter(self, scores_archive):
        df = access.open_dataset(scores_archive, model_id=["tg_arima", "persistenceRW"]).collect()
        assert set(df["model_id"]) == {"tg_arima", "persistenceRW"}
        assert len(df) == 30

    def test_zero_matching_partitions_is_empty_not_error(self, scores_archive):
        df = access.open_dataset(scores_archive, variable="chla").collect()
        assert df.empty
        assert "crps" in df.columns

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            access.open_dataset(str(tmp_path / "does-not-exist"))

    def test_unknown_kind_raises(self, scores_archive):
        with pytest.raises(KeyError):
            access.open_dataset(scores_archive, kind="observations")

    def test_explicit_partitions(self, scores_archive):
        handle = access.open_dataset(
            scores_archive, partitions=("project_id", "duration", "variable", "model_id", "datetime")
        )
        assert pa.types.is_date32(handle.schema.field("datetime").type)


class TestFilterAndCollect:
    """Predicate filters on an opened dataset."""

    def test_filter_returns_new_handle(self, scores_archive):
        handle = access.open_dataset(scores_archive)
        filtered = handle.filter(site_id="BART")
        assert handle.expression is None
        assert filtered.expression is not None

    def test_site_filter(self, scores_archive):
        df = access.open_dataset(scores_archive).filter(site_id="HARV").collect()
        assert set(df["site_id"]) == {"HARV"}
        assert len(df) == 24

    def test_reference_after_is_strict(self, scores_archive):
        df = access.open_dataset(scores_archive).filter(reference_after="2024-01-02").collect()
        assert not df.empty
        assert (df["reference_datetime"] > pd.Timestamp("2024-01-02")).all()
        assert set(df["reference_datetime"]) == {pd.Timestamp("2024-01-03")}

    def test_reference_after_is_idempotent(self, scores_archive):
        once = access.open_dataset(scores_archive).filter(reference_after="2024-01-01")
        twice = once.filter(reference_after="2024-01-01")
        assert once.count_rows() == twice.count_rows()
        pd.testing.assert_frame_equal(
            once.collect().sort_values(["model_id", "site_id", "datetime"], ignore_index=True),
            twice.collect().sort_values(["model_id", "site_id", "datetime"], ignore_index=True),
        )

    def test_reference_before_is_inclusive(self, scores_archive):
        df = access.open_dataset(scores_archive).filter(reference_before="2024-01-01").collect()
        assert set(df["reference_datetime"]) == {pd.Timestamp("2024-01-01")}

    def test_datetime_range_accepts_date_objects(self, scores_archive):
        df = access.open_dataset(scores_archive).filter(
            datetime_after=datetime.date(2024, 1, 3), datetime_before=pd.Timestamp("2024-01-04")
        ).collect()
        assert set(df["datetime"]) == {pd.Timestamp("2024-01-04")}

    def test_date_columns_are_datetimes(self, scores_archive):
        df = access.open_dataset(scores_archive).collect()
        assert pd.api.types.is_datetime64_any_dtype(df["datetime"])
        assert pd.api.types.is_datetime64_any_dtype(df["reference_datetime"])

    def test_datetimes_despite_stored_pandas_metadata(self, scores_archive):
        """Files written from pandas record the partition column as str; collect ignores that."""
        first_file = next(Path(scores_archive).rglob("*.parquet"))
        assert pq.read_schema(first_file).pandas_metadata is not None

        df = access.open_dataset(scores_archive).filter(site_id="BART").collect()
        assert pd.api.types.is_datetime64_any_dtype(df["datetime"])
        assert df["datetime"].min() == pd.Timestamp("2024-01-02")
        horizons = (df["datetime"] - df["reference_datetime"]).dt.days
        assert set(horizons) == {1, 2, 3}

    def test_no_implicit_deduplication(self, scores_archive):
        handle = access.open_dataset(scores_archive)
        assert len(handle.collect()) == handle.count_rows()

    def test_filter_unknown_column_raises(self, scores_archive):
        with pytest.raises(KeyError):
            access.open_dataset(scores_archive).filter(ensemble="1")

    def test_collect_columns(self, scores_archive):
        df = access.open_dataset(scores_archive).collect(columns=["model_id", "crps"])
        assert list(df.columns) == ["model_id", "crps"]


class TestCoerceScalar:
    """Filter values are converted to the column type."""

    def test_date(self):
        scalar = access.coerce_scalar("2024-01-05", pa.date32())
        assert scalar.as_py() == datetime.date(2024, 1, 5)

    def test_tz_aware_value_on_date_column_uses_utc_date(self):
        scalar = access.coerce_scalar("2024-01-02T01:00+05:00", pa.date32())
        assert scalar.as_py() == datetime.date(2024, 1, 1)

    def test_naive_value_on_utc_column(self):
        scalar = access.coerce_scalar("2024-01-05", pa.timestamp("us", tz="UTC"))
        assert scalar.as_py() == datetime.datetime(2024, 1, 5, tzinfo=datetime.timezone.utc)

    def test_date_on_string_column(self):
        scalar = access.coerce_scalar(datetime.date(2024, 1, 5), pa.string())
        assert scalar.as_py() == "2024-01-05"

    def test_resolve_local_path(self, tmp_path):
        fs, path = access.resolve_location(str(tmp_path))
        assert fs is None
        assert path == str(tmp_path)
