"""Lane coverage reports over the rate catalog."""
from __future__ import annotations

from datetime import date
from typing import Iterable

import pandas as pd

from fx import ConversionTable
from models import CONTAINER_PRICE_FIELDS, RateCard

CRITICAL_DAYS = 7
WARNING_DAYS = 14


def clean_location(name: str) -> str:
    """'SHANGHAI (CN)' -> 'SHANGHAI'."""
    return (name or "").split("(")[0].strip()


def lane_name(pol: str, pod: str) -> str:
    return f"{clean_location(pol)} → {clean_location(pod)}"


def _severity(days_left: int) -> str:
    if days_left < 0:
        return "EXPIRED"
    if days_left <= CRITICAL_DAYS:
        return "CRITICAL"
    if days_left <= WARNING_DAYS:
        return "WARNING"
    return "OK"


def expiry_radar(cards: Iterable[RateCard], today: date, limit: int = 5) -> pd.DataFrame:
    """Active lanes whose best validity ends soonest, most urgent first."""
    columns = ["lane", "rate_id", "reference", "carrier_name", "valid_from", "valid_to", "days_left", "severity", "rate_count"]
    active = [c for c in cards if c.status == "ACTIVE"]
    if not active:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(
        [
            {
                "lane": lane_name(c.pol, c.pod),
                "rate_id": c.id,
                "reference": c.reference,
                "carrier_name": c.carrier_name,
                "valid_from": c.valid_from,
                "valid_to": c.valid_to,
            }
            for c in active
        ]
    )
    df["rate_count"] = df.groupby("lane")["rate_id"].transform("count")
    # Keep the longest-running card per lane.
    best = df.sort_values("valid_to", ascending=False, kind="stable").drop_duplicates("lane", keep="first")
    best = best.assign(days_left=best["valid_to"].apply(lambda d: (d - today).days))
    best["severity"] = best["days_left"].apply(_severity)
    best = best.sort_values(["valid_to", "lane"], kind="stable").head(limit)
    return best[columns].reset_index(drop=True)


def freight_price(card: RateCard, fx: ConversionTable, currency: str = "USD", container: str = "40HC") -> float:
    """Freight cost of one container, each row converted from its own currency."""
    attr = CONTAINER_PRICE_FIELDS.get(container.upper())
    if attr is None:
        raise ValueError(f"Unknown container size: {container}")
    return sum(
        fx.convert(float(getattr(row, attr) or 0), row.currency or card.currency, currency)
        for row in card.freight_charges
    )


def trade_lane_matrix(
    cards: Iterable[RateCard],
    fx: ConversionTable,
    currency: str = "USD",
    container: str = "40HC",
) -> pd.DataFrame:
    """POL x POD grid of the cheapest active freight price in ``currency``."""
    rows = []
    for card in cards:
        if card.status != "ACTIVE":
            continue
        price = freight_price(card, fx, currency, container)
        rows.append({"pol": clean_location(card.pol), "pod": clean_location(card.pod), "price": round(price, 2)})
    if not rows:
        return pd.DataFrame()
    df = pd.DataFrame(rows)
    return df.pivot_table(index="pol", columns="pod", values="price", aggfunc="min").sort_index().sort_index(axis=1)
