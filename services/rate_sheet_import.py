from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date

import pandas as pd

from field_specs import TABLE_SPECS
from models import CHARGE_SECTIONS, ChargeRow, RateCard, empty_rate_card, new_row_id
from validators import require_cols, validate_date_order, validate_dates, validate_with_specs


@dataclass(frozen=True)
class RateSheetImportResult:
    cards: list[RateCard]
    warnings: list[str]


_NUMERIC_CHARGE_COLS = ["price_20dv", "price_40dv", "price_40hc", "price_40rf", "unit_price", "min_price", "percentage"]


def _to_bool(raw_value: object) -> bool:
    if pd.isna(raw_value):
        return False
    if isinstance(raw_value, bool):
        return raw_value
    return str(raw_value).strip().lower() in {"1", "true", "yes", "y"}


def _text(raw_value: object, default: str = "") -> str:
    if raw_value is None or pd.isna(raw_value):
        return default
    text = str(raw_value).strip()
    return text if text and text.lower() != "nan" else default


def _num(raw_value: object) -> float:
    num = pd.to_numeric(pd.Series([raw_value]), errors="coerce").iloc[0]
    return 0.0 if pd.isna(num) else float(num)


def _required_cols(table_key: str) -> list[str]:
    return [name for name, spec in TABLE_SPECS[table_key].items() if spec.required]


def _validate(cards_df: pd.DataFrame, charges_df: pd.DataFrame) -> list[str]:
    errors = []
    for table_key, frame in (("rate_cards", cards_df), ("rate_charges", charges_df)):
        missing = [c for c in _required_cols(table_key) if c not in frame.columns]
        if missing:
            errors.append(f"{table_key}: missing required columns: " + ", ".join(missing))
    if errors:
        return errors

    errors += [f"rate_cards: {e}" for e in validate_with_specs("rate_cards", cards_df)]
    errors += [f"rate_cards: {e}" for e in validate_dates(cards_df, ["valid_from", "valid_to"])]
    errors += [f"rate_cards: {e}" for e in validate_date_order(cards_df, "valid_from", "valid_to")]
    errors += [f"rate_charges: {e}" for e in validate_with_specs("rate_charges", charges_df)]

    if "sheet_key" not in require_cols(cards_df, ["sheet_key"]):
        dupes = cards_df.loc[cards_df["sheet_key"].duplicated(), "sheet_key"].astype(str).tolist()
        if dupes:
            errors.append("rate_cards: duplicate sheet_key values: " + ", ".join(sorted(set(dupes))))
    known = set(cards_df["sheet_key"].astype(str).str.strip())
    orphans = sorted(set(charges_df["sheet_key"].astype(str).str.strip()) - known)
    if orphans:
        errors.append("rate_charges: sheet_key not found in rate_cards: " + ", ".join(orphans))
    return errors


def _charge_from_row(row: pd.Series, card_currency: str) -> ChargeRow:
    prices = {col: _num(row.get(col)) for col in _NUMERIC_CHARGE_COLS}
    return ChargeRow(
        id=new_row_id(),
        charge_head=_text(row.get("charge_head")),
        is_surcharge=_to_bool(row.get("is_surcharge")),
        basis=_text(row.get("basis"), "CONTAINER").upper(),
        currency=_text(row.get("currency"), card_currency).upper(),
        vat_rule=_text(row.get("vat_rule"), "STD_20"),
        **prices,
    )


def import_rate_sheet(cards_df: pd.DataFrame, charges_df: pd.DataFrame) -> RateSheetImportResult:
    """Turn rate_cards/rate_charges template uploads into draft rate cards.

    Every problem in either frame is collected before raising, so one
    ValueError lists all rows to fix.
    """
    errors = _validate(cards_df, charges_df)
    if errors:
        raise ValueError("; ".join(errors))

    warnings: list[str] = []
    cards: list[RateCard] = []
    for _, card_row in cards_df.iterrows():
        key = _text(card_row["sheet_key"])
        currency = _text(card_row.get("currency"), "USD").upper()
        sections: dict[str, list[ChargeRow]] = {name: [] for name in CHARGE_SECTIONS}
        ids: set[str] = set()
        for _, charge_row in charges_df[charges_df["sheet_key"].astype(str).str.strip() == key].iterrows():
            charge = _charge_from_row(charge_row, currency)
            row_id = new_row_id(ids)
            ids.add(row_id)
            sections[_text(charge_row["section"])].append(replace(charge, id=row_id))
        if not ids:
            warnings.append(f"{key}: rate card has no charges")

        card = replace(
            empty_rate_card(),
            reference=_text(card_row["reference"]),
            carrier_id=_text(card_row.get("carrier_id")),
            carrier_name=_text(card_row["carrier_name"]),
            mode=_text(card_row["mode"]),
            rate_type=_text(card_row["rate_type"]),
            valid_from=date.fromisoformat(_text(card_row["valid_from"])[:10]),
            valid_to=date.fromisoformat(_text(card_row["valid_to"])[:10]),
            pol=_text(card_row["pol"]),
            pod=_text(card_row["pod"]),
            transit_time=int(_num(card_row.get("transit_time"))),
            currency=currency,
            incoterm=_text(card_row.get("incoterm"), "CY/CY"),
            free_time=int(_num(card_row.get("free_time"))),
            payment_terms=_text(card_row.get("payment_terms"), "PREPAID"),
            remarks=_text(card_row.get("remarks")),
            **{name: tuple(rows) for name, rows in sections.items()},
        )
        cards.append(card)
    return RateSheetImportResult(cards=cards, warnings=warnings)
