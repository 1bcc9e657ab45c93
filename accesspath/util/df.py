"""Utilities to work with Pandas data frames"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from pathlib import Path
from typing import Any, Optional

import pandas as pd


def as_df(data: Collection[dict[Any, Any]], *, columns: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Generates a new Pandas `DataFrame` from a collection of dictionaries.

    Each dictionary corresponds to one row of the data frame and all dictionaries have to consist of exactly the same
    keys. If no `columns` are given, they are inferred from the first dictionary.
    """
    if not data:
        return pd.DataFrame(columns=list(columns) if columns else None)
    columns = list(columns) if columns is not None else list(next(iter(data)).keys())
    df_container: dict[str, list[Any]] = {col: [] for col in columns}
    for row in data:
        for col in columns:
            df_container[col].append(row[col])
    return pd.DataFrame(df_container)


def read_df(path: str | Path, *, required_columns: Iterable[str] = (), **kwargs) -> pd.DataFrame:
    """Reads a CSV file into a data frame and makes sure that all `required_columns` are present.

    All additional arguments are passed to ``pd.read_csv``.

    Raises
    ------
    ValueError
        If any of the required columns is missing
    """
    df = pd.read_csv(path, **kwargs)
    missing = [col for col in required_columns if col not in df.columns]
    if missing:
        raise ValueError(f"File {path} is missing columns {missing}")
    return df
