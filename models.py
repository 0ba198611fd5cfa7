"""Typed rate card models and editing defaults."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
import uuid


RATE_MODES = ("SEA_FCL", "SEA_LCL", "AIR", "ROAD")
RATE_TYPES = ("CONTRACT", "SPOT", "NAC")
RATE_STATUSES = ("DRAFT", "ACTIVE", "EXPIRED", "ARCHIVED")
CHARGE_BASES = ("CONTAINER", "TAXABLE_WEIGHT", "FLAT", "PERCENTAGE")
CONTAINER_SIZES = ("20DV", "40DV", "40HC", "40RF")
CHARGE_SECTIONS = ("freight_charges", "origin_charges", "dest_charges")
VAT_RULES = ("STD_20", "ROAD_14", "EXPORT_0", "EXEMPT")

PLACEHOLDER_PREFIX = "new-"

# Container size -> ChargeRow price attribute.
CONTAINER_PRICE_FIELDS = {
    "20DV": "price_20dv",
    "40DV": "price_40dv",
    "40HC": "price_40hc",
    "40RF": "price_40rf",
}


@dataclass(frozen=True)
class ChargeRow:
    id: str
    charge_head: str = "New Charge"
    is_surcharge: bool = False
    basis: str = "CONTAINER"
    price_20dv: float = 0.0
    price_40dv: float = 0.0
    price_40hc: float = 0.0
    price_40rf: float = 0.0
    unit_price: float = 0.0
    min_price: float = 0.0
    percentage: float = 0.0
    currency: str = "USD"
    vat_rule: str = "STD_20"


@dataclass(frozen=True)
class RateCard:
    id: str
    reference: str = "NEW-RATE"
    carrier_id: str = ""
    carrier_name: str = ""
    mode: str = "SEA_FCL"
    rate_type: str = "SPOT"
    status: str = "DRAFT"
    valid_from: date = field(default_factory=date.today)
    valid_to: date = field(default_factory=date.today)
    pol: str = ""
    pod: str = ""
    transit_time: int = 0
    service_loop: str = ""
    currency: str = "USD"
    incoterm: str = "CY/CY"
    free_time: int = 7
    payment_terms: str = "PREPAID"
    freight_charges: tuple[ChargeRow, ...] = ()
    origin_charges: tuple[ChargeRow, ...] = ()
    dest_charges: tuple[ChargeRow, ...] = ()
    remarks: str = ""
    updated_at: datetime = field(default_factory=datetime.now)

    def section(self, name: str) -> tuple[ChargeRow, ...]:
        if name not in CHARGE_SECTIONS:
            raise ValueError(f"Unknown charge section: {name}")
        return getattr(self, name)

    def all_charges(self) -> list[tuple[str, ChargeRow]]:
        return [(name, row) for name in CHARGE_SECTIONS for row in getattr(self, name)]

    @property
    def is_persisted(self) -> bool:
        return not is_placeholder_id(self.id)


# Scalar attributes an editor may replace with update_field.
RATE_CARD_FIELDS = tuple(
    name for name in RateCard.__dataclass_fields__ if name not in CHARGE_SECTIONS and name != "id"
)
CHARGE_ROW_FIELDS = tuple(name for name in ChargeRow.__dataclass_fields__ if name != "id")


def default_basis(mode: str | None) -> str:
    """Air freight is priced on chargeable weight, everything else per container."""
    return "TAXABLE_WEIGHT" if (mode or "").upper() == "AIR" else "CONTAINER"


def new_placeholder_id() -> str:
    return f"{PLACEHOLDER_PREFIX}{uuid.uuid4().hex[:12]}"


def is_placeholder_id(card_id: str | None) -> bool:
    return not card_id or str(card_id).startswith(PLACEHOLDER_PREFIX)


def new_row_id(existing: set[str] | None = None) -> str:
    existing = existing or set()
    while True:
        row_id = uuid.uuid4().hex[:9]
        if row_id not in existing:
            return row_id


def empty_rate_card(today: date | None = None) -> RateCard:
    """A blank DRAFT sheet valid for one month from ``today``."""
    start = today or date.today()
    return RateCard(
        id=new_placeholder_id(),
        valid_from=start,
        valid_to=start + timedelta(days=30),
        updated_at=datetime.now(),
    )
