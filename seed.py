"""Seed data and CSV template helpers."""
from __future__ import annotations

from pathlib import Path
import csv
from datetime import date
import io

from field_specs import TABLE_SPECS
from models import ChargeRow, RateCard, new_placeholder_id
from rate_store import RateStore


TEMPLATE_SPECS: list[tuple[str, str]] = [
    ("rate_cards", "rate_cards_template.csv"),
    ("rate_charges", "rate_charges_template.csv"),
]


def sample_rate_cards() -> list[RateCard]:
    return [
        RateCard(
            id=new_placeholder_id(),
            reference="CN-MAE-2024-01",
            carrier_id="sup_1",
            carrier_name="Maersk Line",
            mode="SEA_FCL",
            rate_type="CONTRACT",
            status="ACTIVE",
            valid_from=date(2024, 1, 1),
            valid_to=date(2024, 12, 31),
            pol="SHANGHAI (CN)",
            pod="CASABLANCA (MA)",
            transit_time=28,
            service_loop="AEU3",
            currency="USD",
            incoterm="CY/CY",
            free_time=14,
            payment_terms="PREPAID",
            freight_charges=(
                ChargeRow(id="c1", charge_head="Ocean Freight", price_20dv=1200, price_40dv=2200, price_40hc=2200, price_40rf=3500, currency="USD"),
                ChargeRow(id="c2", charge_head="BAF (Bunker)", is_surcharge=True, price_20dv=150, price_40dv=300, price_40hc=300, price_40rf=450, currency="USD"),
            ),
            remarks="Subject to GRI",
        )
    ]


def seed_if_empty(store: RateStore) -> int:
    if store.fetch_all_rate_cards():
        return 0
    cards = sample_rate_cards()
    for card in cards:
        store.save_rate_card(card)
    return len(cards)


def ensure_templates(template_dir: Path | None = None) -> None:
    template_dir = template_dir or Path("templates")
    template_dir.mkdir(exist_ok=True)

    for table_key, fname in TEMPLATE_SPECS:
        cols = list(TABLE_SPECS[table_key].keys())
        sample_row = [TABLE_SPECS[table_key][col].example for col in cols]
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(cols)
        writer.writerow(sample_row)
        (template_dir / fname).write_text(buffer.getvalue(), encoding="utf-8")
