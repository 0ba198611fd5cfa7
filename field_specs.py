from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import re
from typing import Any

import pandas as pd
import streamlit as st

from models import CHARGE_BASES, CHARGE_SECTIONS, RATE_MODES, RATE_TYPES, VAT_RULES


@dataclass(frozen=True)
class FieldSpec:
    field_type: str
    required: bool = False
    description: str = ""
    example: str = ""
    fmt: str = ""
    max_length: int | None = None
    regex: str | None = None
    allowed_chars: str = ""
    min_value: float | int | None = None
    max_value: float | int | None = None
    choices: list[str] | None = None
    notes: str = ""


_PRICE_NOTE = "Only used when basis is CONTAINER."

TABLE_SPECS: dict[str, dict[str, FieldSpec]] = {
    "rate_cards": {
        "sheet_key": FieldSpec("text", required=True, max_length=40, description="Key linking charges to this card within the upload", example="MAEU-SHA-CAS"),
        "reference": FieldSpec("text", required=True, max_length=40, description="Rate reference", example="CN-MAE-2024-01"),
        "carrier_id": FieldSpec("text", max_length=40, description="Carrier identifier", example="sup_1"),
        "carrier_name": FieldSpec("text", required=True, max_length=120, description="Carrier display name", example="Maersk Line"),
        "mode": FieldSpec("text", required=True, choices=list(RATE_MODES), description="Transport mode", example="SEA_FCL"),
        "rate_type": FieldSpec("text", required=True, choices=list(RATE_TYPES), description="Offer type", example="CONTRACT", notes="CONTRACT outranks SPOT during rate lookup."),
        "valid_from": FieldSpec("date", required=True, fmt="YYYY-MM-DD", description="First valid day", example="2024-01-01"),
        "valid_to": FieldSpec("date", required=True, fmt="YYYY-MM-DD", description="Last valid day", example="2024-12-31"),
        "pol": FieldSpec("text", required=True, max_length=60, description="Port or place of loading", example="SHANGHAI (CN)"),
        "pod": FieldSpec("text", required=True, max_length=60, description="Port or place of discharge", example="CASABLANCA (MA)"),
        "transit_time": FieldSpec("int", min_value=0, description="Transit days", example="28"),
        "currency": FieldSpec("text", required=True, max_length=3, regex=r"^[A-Z]{3}$", allowed_chars="A-Z", description="ISO currency", example="USD"),
        "incoterm": FieldSpec("text", max_length=16, description="Service scope", example="CY/CY"),
        "free_time": FieldSpec("int", min_value=0, description="Free days at destination", example="14"),
        "payment_terms": FieldSpec("text", choices=["PREPAID", "COLLECT"], description="Payment terms", example="PREPAID"),
        "remarks": FieldSpec("text", max_length=500, description="Remarks", example="Subject to GRI"),
    },
    "rate_charges": {
        "sheet_key": FieldSpec("text", required=True, max_length=40, description="Parent card sheet_key", example="MAEU-SHA-CAS"),
        "section": FieldSpec("text", required=True, choices=list(CHARGE_SECTIONS), description="Charge section", example="freight_charges"),
        "charge_head": FieldSpec("text", required=True, max_length=80, description="Charge label", example="Ocean Freight"),
        "is_surcharge": FieldSpec("bool", description="Surcharge flag", example="0"),
        "basis": FieldSpec("text", required=True, choices=list(CHARGE_BASES), description="Pricing basis", example="CONTAINER"),
        "price_20dv": FieldSpec("decimal", min_value=0, description="20' dry price", example="1200", notes=_PRICE_NOTE),
        "price_40dv": FieldSpec("decimal", min_value=0, description="40' dry price", example="2200", notes=_PRICE_NOTE),
        "price_40hc": FieldSpec("decimal", min_value=0, description="40' high cube price", example="2200", notes=_PRICE_NOTE),
        "price_40rf": FieldSpec("decimal", min_value=0, description="40' reefer price", example="3500", notes=_PRICE_NOTE),
        "unit_price": FieldSpec("decimal", min_value=0, description="Per-kg or flat price", example="0"),
        "min_price": FieldSpec("decimal", min_value=0, description="Minimum line amount", example="0"),
        "percentage": FieldSpec("decimal", min_value=0, max_value=100, description="Percent of base", example="0"),
        "currency": FieldSpec("text", required=True, max_length=3, regex=r"^[A-Z]{3}$", allowed_chars="A-Z", description="Charge currency", example="USD"),
        "vat_rule": FieldSpec("text", choices=list(VAT_RULES), description="VAT rule", example="STD_20"),
    },
}

# Editable grid of one section in the workspace; same columns minus upload keys.
TABLE_SPECS["charges"] = {
    "id": FieldSpec("text", description="Row id", example="a1b2c3d4e"),
    **{k: v for k, v in TABLE_SPECS["rate_charges"].items() if k not in {"sheet_key", "section"}},
}


def build_help_text(table_key: str, field: str) -> str:
    spec = TABLE_SPECS.get(table_key, {}).get(field)
    if not spec:
        return ""
    chunks = [spec.description]
    if spec.fmt:
        chunks.append(f"Format: {spec.fmt}")
    if spec.allowed_chars:
        chunks.append(f"Allowed: {spec.allowed_chars}")
    if spec.max_length:
        chunks.append(f"Max length: {spec.max_length}")
    if spec.min_value is not None or spec.max_value is not None:
        chunks.append(f"Range: {spec.min_value if spec.min_value is not None else '-∞'} to {spec.max_value if spec.max_value is not None else '∞'}")
    if spec.choices:
        chunks.append(f"One of: {', '.join(spec.choices)}")
    if spec.example:
        chunks.append(f"Example: {spec.example}")
    return " | ".join([c for c in chunks if c])


def field_guide_df(table_key: str) -> pd.DataFrame:
    rows: list[dict[str, Any]] = []
    for col, spec in TABLE_SPECS.get(table_key, {}).items():
        rows.append(
            {
                "column": col,
                "type": spec.field_type,
                "required": "yes" if spec.required else "-",
                "format": spec.fmt or "-",
                "allowed": ", ".join(spec.choices) if spec.choices else spec.allowed_chars or (f"<= {spec.max_length} chars" if spec.max_length else "-"),
                "example": spec.example,
                "notes": spec.notes or "-",
            }
        )
    return pd.DataFrame(rows)


def validate_table_rows(table_key: str, df: pd.DataFrame) -> list[str]:
    errors: list[str] = []
    specs = TABLE_SPECS.get(table_key, {})
    for i, (_, row) in enumerate(df.iterrows(), start=1):
        for col, spec in specs.items():
            if col not in df.columns:
                continue
            value = row.get(col)
            empty = pd.isna(value) or str(value).strip() == ""
            if spec.required and empty:
                errors.append(f"Row {i} ({col}): required. Example: {spec.example}")
                continue
            if empty:
                continue
            if spec.field_type == "date":
                try:
                    datetime.strptime(str(value)[:10], "%Y-%m-%d")
                except ValueError:
                    errors.append(f"Row {i} ({col}): must be YYYY-MM-DD. Example: {spec.example}")
            if spec.field_type in {"int", "decimal"}:
                num = pd.to_numeric(pd.Series([value]), errors="coerce").iloc[0]
                if pd.isna(num):
                    errors.append(f"Row {i} ({col}): must be numeric. Example: {spec.example}")
                    continue
                if spec.min_value is not None and num < spec.min_value:
                    errors.append(f"Row {i} ({col}): must be >= {spec.min_value}. Example: {spec.example}")
                if spec.max_value is not None and num > spec.max_value:
                    errors.append(f"Row {i} ({col}): must be <= {spec.max_value}. Example: {spec.example}")
            txt = str(value)
            if spec.max_length and len(txt) > spec.max_length:
                errors.append(f"Row {i} ({col}): max length {spec.max_length}. Example: {spec.example}")
            if spec.regex and not re.fullmatch(spec.regex, txt):
                char_hint = f", {spec.allowed_chars} only" if spec.allowed_chars else ""
                errors.append(f"Row {i} ({col}): invalid format{char_hint}. Example: {spec.example}")
            if spec.choices and txt not in spec.choices:
                errors.append(f"Row {i} ({col}): must be one of {', '.join(spec.choices)}. Example: {spec.example}")
    return errors


def table_column_config(table_key: str) -> dict[str, st.column_config.Column]:
    config: dict[str, st.column_config.Column] = {}
    for col, spec in TABLE_SPECS.get(table_key, {}).items():
        help_text = build_help_text(table_key, col)
        if spec.field_type == "date":
            config[col] = st.column_config.DateColumn(col, help=help_text, format="YYYY-MM-DD")
        elif spec.field_type in {"int", "decimal"}:
            config[col] = st.column_config.NumberColumn(col, help=help_text)
        elif spec.field_type == "bool":
            config[col] = st.column_config.CheckboxColumn(col, help=help_text)
        elif spec.choices:
            config[col] = st.column_config.SelectboxColumn(col, options=spec.choices, help=help_text)
        else:
            config[col] = st.column_config.TextColumn(col, help=help_text)
    return config
