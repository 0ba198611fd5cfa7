"""Charge rows from a spreadsheet selection pasted as tab-separated text."""
from __future__ import annotations

import re

import pandas as pd

from models import ChargeRow

COLUMN_TYPES = ("IGNORE", "CHARGE_NAME", "20DV", "40DV", "40HC", "CURRENCY")

_PRICE_ATTRS = {"20DV": "price_20dv", "40DV": "price_40dv", "40HC": "price_40hc"}
_NON_NUMERIC = re.compile(r"[^0-9.]")
_PLAIN_NUMBER = re.compile(r"[$€£]?\s*\d[\d\s,]*(\.\d+)?")


def parse_clipboard(text: str) -> pd.DataFrame:
    """Split pasted text into a string frame, dropping blank lines."""
    if not (text or "").strip():
        return pd.DataFrame()
    # Ragged rows are padded with empty cells.
    frame = pd.DataFrame([line.split("\t") for line in text.splitlines()]).fillna("")
    keep = frame.apply(lambda r: r.astype(str).str.strip().ne("").any(), axis=1)
    return frame[keep].reset_index(drop=True)


def detect_columns(header: list[str]) -> list[str]:
    """Guess each column's meaning from the first pasted row."""
    mappings = []
    for cell in header:
        val = str(cell).lower()
        if "20" in val or "teu" in val:
            mappings.append("20DV")
        elif "40" in val and "hc" in val:
            mappings.append("40HC")
        elif "40" in val:
            mappings.append("40DV")
        elif "curr" in val or "dev" in val:
            mappings.append("CURRENCY")
        elif "desc" in val or "item" in val or "charge" in val:
            mappings.append("CHARGE_NAME")
        else:
            mappings.append("IGNORE")
    if mappings and "CHARGE_NAME" not in mappings:
        mappings[0] = "CHARGE_NAME"
    return mappings


def _price(cell: str) -> float:
    cleaned = _NON_NUMERIC.sub("", cell)
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def _looks_like_header(cells: list[str], mappings: list[str]) -> bool:
    """A row whose price cells hold no plain numbers, e.g. "20'" or "40' HC"."""
    prices = [str(c).strip() for c, m in zip(cells, mappings) if m in _PRICE_ATTRS]
    return not any(_PLAIN_NUMBER.fullmatch(c) for c in prices if c)


def charges_from_paste(text: str, currency: str, mappings: list[str] | None = None) -> list[ChargeRow]:
    """Build CONTAINER-basis rows; rows without a name or any price are skipped.

    Returned rows carry empty ids; the editor assigns ids on import.
    """
    frame = parse_clipboard(text)
    if frame.empty:
        raise ValueError("No data detected. Copy the rows from the spreadsheet and paste again.")
    if mappings is None:
        mappings = detect_columns(frame.iloc[0].tolist())
    unknown = sorted(set(mappings) - set(COLUMN_TYPES))
    if unknown:
        raise ValueError("Unknown column mapping: " + ", ".join(unknown))

    if _looks_like_header(frame.iloc[0].tolist(), mappings):
        frame = frame.iloc[1:]

    rows = []
    for cells in frame.itertuples(index=False, name=None):
        values: dict[str, object] = {"basis": "CONTAINER", "currency": currency.upper()}
        for cell, mapping in zip(cells, mappings):
            cell = str(cell)
            if mapping == "CHARGE_NAME":
                values["charge_head"] = cell.strip()
            elif mapping == "CURRENCY" and cell.strip():
                values["currency"] = cell.strip().upper()
            elif mapping in _PRICE_ATTRS:
                values[_PRICE_ATTRS[mapping]] = _price(cell)
        # Notes and blank lines have no name or no price.
        if not values.get("charge_head") or (not values.get("price_20dv") and not values.get("price_40hc")):
            continue
        rows.append(ChargeRow(id="", **values))
    return rows
