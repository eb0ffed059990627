"""
Validation Module - Column and key consistency checks.

These checks run before alignment and aggregation so that malformed tables
fail loudly instead of producing silently biased means.
"""

from typing import Iterable, List, Sequence

import pandas as pd


class ValidationError(Exception):
    """Custom exception for validation failures."""
    pass


class DuplicateRecordError(ValidationError):
    """Raised when several rows share a key that must be unique."""
    pass


def validate_columns(df: pd.DataFrame, required: Iterable[str], context: str = "table") -> None:
    """
    Validate that a DataFrame carries every required column.

    Args:
        df: DataFrame to validate
        required: Column names that must be present
        context: Description for error messages (e.g., "scores", "model X")

    Raises:
        ValidationError: If any column is missing
    """
    missing_cols = [col for col in required if col not in df.columns]
    if missing_cols:
        raise ValidationError(
            f"{context} missing required columns: {missing_cols}"
        )


def find_duplicate_keys(df: pd.DataFrame, keys: Sequence[str]) -> pd.DataFrame:
    """Return the distinct key combinations that appear more than once."""
    dup_mask = df.duplicated(subset=list(keys), keep=False)
    return df.loc[dup_mask, list(keys)].drop_duplicates()


def validate_unique_keys(df: pd.DataFrame, keys: Sequence[str], context: str = "table") -> None:
    """
    Validate that no two rows share the same key.

    Duplicate rows for one key are an upstream data-quality problem; they are
    reported rather than averaged.

    Raises:
        DuplicateRecordError: If any key combination repeats
    """
    validate_columns(df, keys, context)
    dups = find_duplicate_keys(df, keys)
    if not dups.empty:
        examples: List[dict] = dups.head(5).to_dict("records")
        raise DuplicateRecordError(
            f"{context} has {len(dups)} duplicated {tuple(keys)} keys, e.g. {examples}"
        )
