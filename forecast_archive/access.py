"""
Dataset Access - Lazy, partition-aware handles on the forecast archive.

This module provides:
- open_dataset(): open a hive-partitioned parquet root (local path or s3:// URL)
  with partition predicates pushed into the scan
- ArchiveDataset: chainable filter() returning new lazy handles, and collect()
  which materialises the matching rows as a pandas DataFrame

Nothing is read from storage until collect() or count_rows() is called. Storage
errors (unknown bucket, missing path, access denied) propagate to the caller.
"""

import datetime
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
import pyarrow as pa
import pyarrow.dataset as ds
import pyarrow.fs as pafs

from .config import Config

logger = logging.getLogger(__name__)


def partitioning_for(keys: Sequence[str]) -> ds.Partitioning:
    """Hive partitioning with date keys typed as date32 and everything else as strings."""
    fields = [
        (key, pa.date32() if key in Config.DATE_PARTITION_KEYS else pa.string())
        for key in keys
    ]
    return ds.partitioning(pa.schema(fields), flavor="hive")


def resolve_location(url: str, filesystem: Optional[pafs.FileSystem] = None) -> Tuple[Optional[pafs.FileSystem], str]:
    """Split a dataset URL into (filesystem, path). Plain paths use the local filesystem."""
    if filesystem is not None:
        return filesystem, url
    if "://" in url:
        return pafs.FileSystem.from_uri(url)
    return None, url


def coerce_scalar(value: Any, arrow_type: pa.DataType) -> pa.Scalar:
    """
    Convert a Python filter value into a scalar of the column's arrow type.

    Date-like values (str, date, datetime, pd.Timestamp) are accepted for date
    and timestamp columns. Timezone-naive values compared to a timezone-aware
    column are taken to be in that column's timezone.
    """
    if pa.types.is_dictionary(arrow_type):
        arrow_type = arrow_type.value_type

    if pa.types.is_date(arrow_type):
        ts = pd.Timestamp(value)
        if ts.tzinfo is not None:
            ts = ts.tz_convert("UTC")
        return pa.scalar(ts.date(), type=arrow_type)

    if pa.types.is_timestamp(arrow_type):
        ts = pd.Timestamp(value)
        if arrow_type.tz is not None:
            ts = ts.tz_localize(arrow_type.tz) if ts.tzinfo is None else ts.tz_convert(arrow_type.tz)
        elif ts.tzinfo is not None:
            ts = ts.tz_convert(None)
        return pa.scalar(ts.to_pydatetime(), type=arrow_type)

    if pa.types.is_string(arrow_type) or pa.types.is_large_string(arrow_type):
        if isinstance(value, (datetime.date, pd.Timestamp)):
            value = pd.Timestamp(value).date().isoformat()
        return pa.scalar(str(value), type=arrow_type)

    return pa.scalar(value, type=arrow_type)


class ArchiveDataset:
    """
    A lazy view on a partitioned dataset plus the filter expression applied so far.

    Instances are immutable: filter() returns a new ArchiveDataset.
    """

    def __init__(self, dataset: ds.Dataset, partition_keys: Sequence[str],
                 expression: Optional[ds.Expression] = None, url: str = ""):
        self._dataset = dataset
        self.partition_keys = tuple(partition_keys)
        self.expression = expression
        self.url = url

    def __repr__(self):
        return f"ArchiveDataset(url={self.url!r}, filter={self.expression})"

    @property
    def schema(self) -> pa.Schema:
        return self._dataset.schema

    def _field_type(self, column: str) -> pa.DataType:
        if column not in self.schema.names:
            raise KeyError(f"Column '{column}' not in dataset. Available: {self.schema.names}")
        return self.schema.field(column).type

    def _match(self, column: str, value: Any) -> ds.Expression:
        """Equality for scalars, membership for list/tuple/set values."""
        arrow_type = self._field_type(column)
        if isinstance(value, (list, tuple, set, frozenset)):
            coerced = [coerce_scalar(v, arrow_type).as_py() for v in value]
            value_type = arrow_type.value_type if pa.types.is_dictionary(arrow_type) else arrow_type
            return ds.field(column).isin(pa.array(coerced, type=value_type))
        return ds.field(column) == coerce_scalar(value, arrow_type)

    def _bound(self, column: str, value: Any, strict_lower: bool) -> ds.Expression:
        scalar = coerce_scalar(value, self._field_type(column))
        if strict_lower:
            return ds.field(column) > scalar
        return ds.field(column) <= scalar

    def where(self, expression: ds.Expression) -> "ArchiveDataset":
        """AND an arbitrary pyarrow expression into the current filter."""
        combined = expression if self.expression is None else self.expression & expression
        return ArchiveDataset(self._dataset, self.partition_keys, combined, self.url)

    def filter(
        self,
        site_id=None,
        model_id=None,
        reference_after=None,
        reference_before=None,
        datetime_after=None,
        datetime_before=None,
        **equals,
    ) -> "ArchiveDataset":
        """
        Add predicates to the scan.

        Args:
            site_id: Site or list of sites to keep
            model_id: Model or list of models to keep
            reference_after: Keep reference_datetime strictly after this bound
            reference_before: Keep reference_datetime on or before this bound
            datetime_after: Keep datetime strictly after this bound
            datetime_before: Keep datetime on or before this bound
            **equals: Further column=value (or column=[values]) predicates

        Returns:
            New ArchiveDataset with the predicates ANDed into the filter
        """
        parts: List[ds.Expression] = []
        matches: Dict[str, Any] = dict(equals)
        if site_id is not None:
            matches["site_id"] = site_id
        if model_id is not None:
            matches["model_id"] = model_id
        for column, value in matches.items():
            parts.append(self._match(column, value))

        bounds = [
            ("reference_datetime", reference_after, True),
            ("reference_datetime", reference_before, False),
            ("datetime", datetime_after, True),
            ("datetime", datetime_before, False),
        ]
        for column, value, strict_lower in bounds:
            if value is not None:
                parts.append(self._bound(column, value, strict_lower))

        result = self
        for expr in parts:
            result = result.where(expr)
        return result

    def count_rows(self) -> int:
        return self._dataset.count_rows(filter=self.expression)

    def collect(self, columns: Optional[Iterable[str]] = None) -> pd.DataFrame:
        """
        Materialise the matching rows.

        Date and timestamp columns come back as timezone-naive datetime64 (UTC)
        so that datetime and reference_datetime can be subtracted directly.
        A filter matching no partitions gives an empty DataFrame.
        """
        columns = list(columns) if columns is not None else None
        logger.debug(f"Scanning {self.url} with filter {self.expression}")
        table = self._dataset.to_table(columns=columns, filter=self.expression)
        # Stored pandas metadata would restore the writer's dtypes (e.g. str for
        # a partition column), so convert from the arrow types alone.
        df = table.replace_schema_metadata(None).to_pandas(date_as_object=False)

        for field in table.schema:
            if pa.types.is_date(field.type) or pa.types.is_timestamp(field.type):
                values = pd.to_datetime(df[field.name])
                if isinstance(values.dtype, pd.DatetimeTZDtype):
                    values = values.dt.tz_convert(None)
                df[field.name] = values

        logger.info(f"Collected {len(df)} rows from {self.url or 'dataset'}")
        return df


def open_dataset(
    url: str,
    kind: str = "scores",
    partitions: Optional[Sequence[str]] = None,
    filesystem: Optional[pafs.FileSystem] = None,
    **partition_filters,
) -> ArchiveDataset:
    """
    Open a lazy handle on a partitioned parquet dataset.

    Args:
        url: Dataset root, a local path or an s3:// URL (anonymous@ and
            ?endpoint_override= are honoured)
        kind: Dataset kind used to pick the partition layout from Config.PARTITIONS
        partitions: Explicit partition keys, overriding `kind`
        filesystem: Explicit pyarrow filesystem; `url` is then a path within it
        **partition_filters: column=value predicates pushed into the scan,
            e.g. project_id="neon4cast", variable="temperature", model_id=[...]

    Returns:
        ArchiveDataset

    Raises:
        FileNotFoundError / OSError: if the root cannot be reached
        KeyError: if `kind` is unknown or a filter names an unknown column
    """
    if partitions is None:
        if kind not in Config.PARTITIONS:
            raise KeyError(f"Dataset kind '{kind}' not found in configuration. Available: {list(Config.PARTITIONS.keys())}")
        partitions = Config.PARTITIONS[kind]

    fs, path = resolve_location(url, filesystem)
    dataset = ds.dataset(path, filesystem=fs, format="parquet", partitioning=partitioning_for(partitions))
    logger.debug(f"Opened {url} with partitions {tuple(partitions)}")

    handle = ArchiveDataset(dataset, partitions, url=url)
    if partition_filters:
        handle = handle.filter(**partition_filters)
    return handle
