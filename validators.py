from __future__ import annotations

import pandas as pd

from field_specs import validate_table_rows


def require_cols(df: pd.DataFrame, cols: list[str]) -> list[str]:
    missing = []
    for col in cols:
        if col not in df.columns or df[col].fillna("").astype(str).str.strip().eq("").any():
            missing.append(col)
    return missing


def validate_dates(df: pd.DataFrame, cols: list[str]) -> list[str]:
    errors = []
    for col in cols:
        if col not in df.columns:
            continue
        series = df[col].replace("", pd.NA)
        parsed = pd.to_datetime(series, errors="coerce")
        if parsed.isna().any() and series.notna().any():
            errors.append(f"{col} has invalid dates")
    return errors


def validate_date_order(df: pd.DataFrame, start_col: str, end_col: str) -> list[str]:
    if start_col not in df.columns or end_col not in df.columns:
        return []
    start = pd.to_datetime(df[start_col], errors="coerce")
    end = pd.to_datetime(df[end_col], errors="coerce")
    bad = start.gt(end)
    return [f"Row {i} ({start_col}): must be on or before {end_col}" for i, flag in enumerate(bad.tolist(), start=1) if flag]


def validate_with_specs(table_key: str, df: pd.DataFrame) -> list[str]:
    return validate_table_rows(table_key, df)
