"""Copy-on-write editing of the rate card currently open in the workspace."""
from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import Any, Iterable

from models import (
    CHARGE_ROW_FIELDS,
    CHARGE_SECTIONS,
    RATE_CARD_FIELDS,
    ChargeRow,
    RateCard,
    default_basis,
    empty_rate_card,
    new_placeholder_id,
    new_row_id,
)


def _check_section(section: str) -> None:
    if section not in CHARGE_SECTIONS:
        raise ValueError(f"Unknown charge section: {section}. Expected one of {', '.join(CHARGE_SECTIONS)}")


class ChargeSheetEditor:
    """Holds the single draft being edited.

    Every change swaps ``active`` for a new frozen snapshot, so callers that
    kept a previous snapshot keep seeing it unchanged.
    """

    def __init__(self) -> None:
        self.active: RateCard | None = None

    def _require_active(self) -> RateCard:
        if self.active is None:
            raise ValueError("No rate card is open for editing")
        return self.active

    def create_rate(self, today: date | None = None) -> RateCard:
        self.active = empty_rate_card(today)
        return self.active

    def load_rate(self, card: RateCard) -> RateCard:
        self.active = card
        return card

    def renew_rate(self, card: RateCard, valid_from: date, valid_to: date) -> RateCard:
        """Clone a sheet into a new draft for the next validity window."""
        ids: set[str] = set()

        def fresh(rows: tuple[ChargeRow, ...]) -> tuple[ChargeRow, ...]:
            out = []
            for row in rows:
                row_id = new_row_id(ids)
                ids.add(row_id)
                out.append(replace(row, id=row_id))
            return tuple(out)

        self.active = replace(
            card,
            id=new_placeholder_id(),
            status="DRAFT",
            valid_from=valid_from,
            valid_to=valid_to,
            freight_charges=fresh(card.freight_charges),
            origin_charges=fresh(card.origin_charges),
            dest_charges=fresh(card.dest_charges),
            updated_at=datetime.now(),
        )
        return self.active

    def close(self) -> None:
        self.active = None

    def update_field(self, field: str, value: Any) -> RateCard:
        card = self._require_active()
        if field not in RATE_CARD_FIELDS:
            raise ValueError(f"Cannot edit rate card field: {field}")
        self.active = replace(card, **{field: value})
        return self.active

    def _row_ids(self, card: RateCard) -> set[str]:
        return {row.id for _, row in card.all_charges()}

    def add_charge_row(self, section: str) -> ChargeRow:
        card = self._require_active()
        _check_section(section)
        row = ChargeRow(
            id=new_row_id(self._row_ids(card)),
            basis=default_basis(card.mode),
            currency=card.currency,
        )
        self.active = replace(card, **{section: card.section(section) + (row,)})
        return row

    def import_charge_rows(self, section: str, rows: Iterable[ChargeRow]) -> RateCard:
        card = self._require_active()
        _check_section(section)
        ids = self._row_ids(card)
        added = []
        for row in rows:
            row_id = new_row_id(ids)
            ids.add(row_id)
            added.append(replace(row, id=row_id))
        self.active = replace(card, **{section: card.section(section) + tuple(added)})
        return self.active

    def update_charge_row(self, section: str, row_id: str, field: str, value: Any) -> RateCard:
        card = self._require_active()
        _check_section(section)
        if field not in CHARGE_ROW_FIELDS:
            raise ValueError(f"Cannot edit charge field: {field}")
        rows = card.section(section)
        if not any(row.id == row_id for row in rows):
            return card
        updated = tuple(replace(row, **{field: value}) if row.id == row_id else row for row in rows)
        self.active = replace(card, **{section: updated})
        return self.active

    def remove_charge_row(self, section: str, row_id: str) -> RateCard:
        card = self._require_active()
        _check_section(section)
        rows = card.section(section)
        kept = tuple(row for row in rows if row.id != row_id)
        if len(kept) == len(rows):
            return card
        self.active = replace(card, **{section: kept})
        return self.active

    def validate(self) -> list[str]:
        card = self._require_active()
        errors = []
        if not (card.pol or "").strip():
            errors.append("pol is required")
        if not (card.pod or "").strip():
            errors.append("pod is required")
        if not (card.carrier_name or "").strip():
            errors.append("carrier_name is required")
        if card.valid_from > card.valid_to:
            errors.append(f"valid_from {card.valid_from} must be on or before valid_to {card.valid_to}")
        return errors
