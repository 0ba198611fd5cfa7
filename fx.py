"""Currency conversion tables for charge normalization.

Convention: a table has one base currency and ``rates[code]`` is the number
of units of ``code`` bought by 1 unit of the base. The base itself is always
1.0. With base USD and ``{"EUR": 0.92, "MAD": 10.0}``, 100 EUR converts to
100 / 0.92 * 10.0 MAD.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_BASE_CURRENCY = os.getenv("TARIFF_BASE_CURRENCY", "USD").strip().upper() or "USD"


class MissingRateError(KeyError):
    """Raised when a conversion needs a currency absent from the table."""

    def __init__(self, currency: str, base: str) -> None:
        super().__init__(currency)
        self.currency = currency
        self.base = base

    def __str__(self) -> str:
        return f"No conversion rate for {self.currency} (base {self.base})"


@dataclass(frozen=True)
class ConversionTable:
    base: str = DEFAULT_BASE_CURRENCY
    rates: dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        base = self.base.strip().upper()
        rates = {code.strip().upper(): float(value) for code, value in self.rates.items()}
        bad = sorted(code for code, value in rates.items() if value <= 0)
        if bad:
            raise ValueError("Conversion rates must be > 0: " + ", ".join(bad))
        rates[base] = 1.0
        object.__setattr__(self, "base", base)
        object.__setattr__(self, "rates", rates)

    def rate_for(self, currency: str) -> float:
        code = (currency or "").strip().upper()
        if code not in self.rates:
            raise MissingRateError(code, self.base)
        return self.rates[code]

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        src = (from_currency or "").strip().upper()
        dst = (to_currency or "").strip().upper()
        if src == dst:
            return amount
        return amount / self.rate_for(src) * self.rate_for(dst)


def conversion_table_from_env() -> ConversionTable:
    """Build a table from TARIFF_FX_RATES, e.g. '{"EUR": 0.92, "MAD": 10.05}'."""
    blob = os.environ.get("TARIFF_FX_RATES", "{}")
    try:
        rates = json.loads(blob)
    except json.JSONDecodeError as exc:
        raise ValueError(f"TARIFF_FX_RATES is not valid JSON: {exc}") from exc
    if not isinstance(rates, dict):
        raise ValueError("TARIFF_FX_RATES must be a JSON object of currency -> rate")
    base = os.environ.get("TARIFF_BASE_CURRENCY", DEFAULT_BASE_CURRENCY)
    table = ConversionTable(base=base, rates=rates)
    logger.info("Loaded %d conversion rates against %s", len(table.rates) - 1, table.base)
    return table
