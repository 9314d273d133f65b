from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd

from ..models.row_data import RawRow

"""Uploaded-table reader.

Converts an uploaded spreadsheet into an ordered list of RawRow:
- Excel (.xlsx/.xlsm): first sheet only; CSV: whole file
- first row is the header; header cells are stripped
- blank cells become None; rows where every cell is blank are dropped
- literal strings such as "NA" or "null" are kept as text (no pandas NA parsing)
"""

__all__ = [
    "UploadReadError",
    "SUPPORTED_SUFFIXES",
    "read_upload",
    "read_raw_frame",
    "normalize_frame",
]

SUPPORTED_SUFFIXES = (".xlsx", ".xlsm", ".csv")


class UploadReadError(Exception):
    """Raised when an upload cannot be opened or parsed as a table."""


def _is_blank(val: Any) -> bool:
    if val is None:
        return True
    if isinstance(val, str):
        return val.strip() == ""
    try:
        return bool(pd.isna(val))
    except (TypeError, ValueError):  # array-likes
        return False


def read_raw_frame(path: Path) -> pd.DataFrame:
    """Read the first sheet (or the CSV) without header inference, every cell as object."""
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise UploadReadError(f"unsupported upload type '{path.suffix}' ({path.name})")
    try:
        if suffix == ".csv":
            return pd.read_csv(
                path, header=None, dtype=object, keep_default_na=False, na_values=[""]
            )
        with pd.ExcelFile(path) as xls:
            if not xls.sheet_names:
                raise UploadReadError(f"workbook has no sheets: {path.name}")
            return xls.parse(
                xls.sheet_names[0],
                header=None,
                dtype=object,
                keep_default_na=False,
                na_values=[""],
            )
    except UploadReadError:
        raise
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except Exception as e:
        raise UploadReadError(f"failed to read {path.name}: {e}") from e


def _header_names(header_values: list[Any]) -> list[str | None]:
    """Stripped header names; blank headers -> None, repeats get a _N suffix."""
    names: list[str | None] = []
    seen: dict[str, int] = {}
    for val in header_values:
        if _is_blank(val):
            names.append(None)
            continue
        name = str(val).strip()
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 0
        names.append(name)
    return names


def normalize_frame(df: pd.DataFrame) -> list[RawRow]:
    """Turn a header-less raw frame into RawRows (row 0 = header)."""
    if df.shape[0] == 0:
        return []
    columns = _header_names(df.iloc[0].tolist())
    rows: list[RawRow] = []
    row_number = 0
    for raw in df.iloc[1:].itertuples(index=False, name=None):
        values: dict[str, Any] = {}
        for col, val in zip(columns, raw, strict=False):
            if col is None:
                continue  # headerless column
            values[col] = None if _is_blank(val) else val
        if all(v is None for v in values.values()):
            continue
        row_number += 1
        rows.append(RawRow(row_number=row_number, values=values))
    return rows


def read_upload(path: Path) -> list[RawRow]:
    """Read an uploaded table into RawRows (empty list for an empty sheet)."""
    return normalize_frame(read_raw_frame(path))
