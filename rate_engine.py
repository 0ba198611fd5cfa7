"""Rate card resolution and charge computation."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
import math
from typing import Iterable

from fx import ConversionTable, MissingRateError
from models import CHARGE_SECTIONS, CONTAINER_PRICE_FIELDS, ChargeRow, RateCard


MATCHED = "MATCHED"
NO_CANDIDATES = "NO_CANDIDATES"
NOT_VALID_ON_DATE = "NOT_VALID_ON_DATE"


@dataclass(frozen=True)
class MatchResult:
    card: RateCard | None
    reason: str
    candidates: int = 0

    @property
    def matched(self) -> bool:
        return self.card is not None


@dataclass
class ChargeQuantity:
    containers: dict[str, float] = field(default_factory=dict)
    chargeable_weight: float = 0.0
    base_amount: float | None = None


@dataclass(frozen=True)
class DataQualityWarning:
    charge_id: str
    field: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"charge_id": self.charge_id, "field": self.field, "message": self.message}


@dataclass(frozen=True)
class ChargeLine:
    charge_id: str
    charge_head: str
    basis: str
    native_amount: float
    native_currency: str
    amount: float
    currency: str
    warnings: tuple[DataQualityWarning, ...] = ()


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def _is_date_valid(on_date: date, valid_from: date, valid_to: date) -> bool:
    return _as_date(valid_from) <= on_date <= _as_date(valid_to)


def _route_matches(card: RateCard, pol: str, pod: str, mode: str) -> bool:
    if card.status != "ACTIVE":
        return False
    if card.mode != mode:
        return False
    return (card.pol or "").upper() == (pol or "").upper() and (card.pod or "").upper() == (pod or "").upper()


def resolve_rate(cards: Iterable[RateCard], pol: str, pod: str, mode: str, on_date: date | datetime) -> MatchResult:
    """Pick the best ACTIVE card for a lane on a date.

    CONTRACT beats every other type, then the latest ``updated_at`` wins.
    Cards tied on both keep catalog order: the first one listed is returned.
    """
    ship_date = _as_date(on_date)
    candidates = [c for c in cards if _route_matches(c, pol, pod, mode)]
    if not candidates:
        return MatchResult(None, NO_CANDIDATES)

    valid = [c for c in candidates if _is_date_valid(ship_date, c.valid_from, c.valid_to)]
    if not valid:
        return MatchResult(None, NOT_VALID_ON_DATE, len(candidates))

    # max() keeps the first maximal element, which gives the catalog-order tie-break.
    best = max(valid, key=lambda c: (c.rate_type == "CONTRACT", c.updated_at))
    return MatchResult(best, MATCHED, len(candidates))


def find_best_match(cards: Iterable[RateCard], pol: str, pod: str, mode: str, on_date: date | datetime) -> RateCard | None:
    return resolve_rate(cards, pol, pod, mode, on_date).card


def _price(row: ChargeRow, attr: str, warnings: list[DataQualityWarning]) -> float:
    raw = getattr(row, attr, None)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = math.nan
    if math.isnan(value):
        warnings.append(DataQualityWarning(row.id, attr, f"{row.charge_head}: {attr} is missing or not numeric, counted as 0"))
        return 0.0
    return value


def _native_amount(row: ChargeRow, quantity: ChargeQuantity, warnings: list[DataQualityWarning]) -> float:
    basis = (row.basis or "").upper()
    if basis == "CONTAINER":
        total = 0.0
        for size, count in quantity.containers.items():
            attr = CONTAINER_PRICE_FIELDS.get(str(size).upper())
            if attr is None:
                warnings.append(DataQualityWarning(row.id, str(size), f"{row.charge_head}: no price field for container size {size}, counted as 0"))
                continue
            total += float(count) * _price(row, attr, warnings)
        return total
    if basis == "TAXABLE_WEIGHT":
        return float(quantity.chargeable_weight or 0) * _price(row, "unit_price", warnings)
    if basis == "FLAT":
        return _price(row, "unit_price", warnings)
    if basis == "PERCENTAGE":
        if quantity.base_amount is None:
            warnings.append(DataQualityWarning(row.id, "base_amount", f"{row.charge_head}: no base amount for percentage charge, counted as 0"))
            return 0.0
        return float(quantity.base_amount) * _price(row, "percentage", warnings) / 100
    warnings.append(DataQualityWarning(row.id, "basis", f"{row.charge_head}: unknown basis {row.basis!r}, counted as 0"))
    return 0.0


def compute_charge(
    row: ChargeRow,
    quantity: ChargeQuantity,
    target_currency: str | None = None,
    fx: ConversionTable | None = None,
) -> ChargeLine:
    """Value one charge row and convert it into ``target_currency``.

    Bad price data counts as zero and is reported as a warning. A missing
    conversion rate raises MissingRateError.
    """
    warnings: list[DataQualityWarning] = []
    native = _native_amount(row, quantity, warnings)
    min_price = row.min_price or 0
    if min_price > 0:
        native = max(native, float(min_price))

    native_currency = (row.currency or "").upper()
    currency = (target_currency or native_currency).upper()
    if currency == native_currency:
        amount = native
    elif fx is None:
        raise MissingRateError(native_currency, "<no table>")
    else:
        amount = fx.convert(native, native_currency, currency)

    return ChargeLine(
        charge_id=row.id,
        charge_head=row.charge_head,
        basis=row.basis,
        native_amount=round(native, 2),
        native_currency=native_currency,
        amount=round(amount, 2),
        currency=currency,
        warnings=tuple(warnings),
    )


def compute_rate_total(
    rate_card: RateCard,
    quantity: ChargeQuantity,
    target_currency: str | None = None,
    fx: ConversionTable | None = None,
) -> dict:
    """Price every charge row of a card in one currency.

    Percentage rows apply to ``quantity.base_amount`` when set, otherwise to
    the card's non-percentage freight subtotal.
    """
    currency = (target_currency or rate_card.currency).upper()

    def line_for(row: ChargeRow, qty: ChargeQuantity) -> ChargeLine:
        return compute_charge(row, qty, currency, fx)

    lines: dict[str, list[ChargeLine]] = {name: [] for name in CHARGE_SECTIONS}
    deferred: list[tuple[str, ChargeRow]] = []
    for section, row in rate_card.all_charges():
        if (row.basis or "").upper() == "PERCENTAGE":
            deferred.append((section, row))
            continue
        lines[section].append(line_for(row, quantity))

    if quantity.base_amount is not None:
        base_in_target = float(quantity.base_amount)
    else:
        base_in_target = sum(line.amount for line in lines["freight_charges"])

    for section, row in deferred:
        row_currency = (row.currency or "").upper()
        if row_currency == currency:
            base = base_in_target
        elif fx is None:
            raise MissingRateError(row_currency, "<no table>")
        else:
            base = fx.convert(base_in_target, currency, row_currency)
        qty = ChargeQuantity(quantity.containers, quantity.chargeable_weight, base)
        lines[section].append(line_for(row, qty))

    # Restore row order within each section.
    order = {row.id: idx for idx, (_, row) in enumerate(rate_card.all_charges())}
    items = []
    totals = {}
    warnings: list[DataQualityWarning] = []
    for section in CHARGE_SECTIONS:
        section_lines = sorted(lines[section], key=lambda line: order.get(line.charge_id, 0))
        totals[section] = round(sum(line.amount for line in section_lines), 2)
        for line in section_lines:
            warnings.extend(line.warnings)
            items.append(
                {
                    "section": section,
                    "charge_id": line.charge_id,
                    "name": line.charge_head,
                    "basis": line.basis,
                    "native_amount": line.native_amount,
                    "native_currency": line.native_currency,
                    "amount": line.amount,
                }
            )

    return {
        "rate_id": rate_card.id,
        "currency": currency,
        "freight_total": totals["freight_charges"],
        "origin_total": totals["origin_charges"],
        "destination_total": totals["dest_charges"],
        "grand_total": round(sum(totals.values()), 2),
        "items": items,
        "warnings": [w.as_dict() for w in warnings],
    }
