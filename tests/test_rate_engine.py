from datetime import date, datetime

import pytest

from fx import ConversionTable, MissingRateError
from models import ChargeRow, RateCard
from rate_engine import (
    NO_CANDIDATES,
    NOT_VALID_ON_DATE,
    ChargeQuantity,
    compute_charge,
    compute_rate_total,
    find_best_match,
    resolve_rate,
)


def _card(card_id, **overrides):
    values = dict(
        id=card_id,
        reference=f"REF-{card_id}",
        carrier_name="Carrier",
        mode="SEA_FCL",
        rate_type="CONTRACT",
        status="ACTIVE",
        valid_from=date(2024, 1, 1),
        valid_to=date(2024, 12, 31),
        pol="CASABLANCA",
        pod="ROTTERDAM",
        updated_at=datetime(2024, 3, 1),
    )
    values.update(overrides)
    return RateCard(**values)


@pytest.fixture
def contract_and_spot():
    card_a = _card("A", rate_type="CONTRACT", updated_at=datetime(2024, 3, 1))
    card_b = _card("B", rate_type="SPOT", updated_at=datetime(2024, 6, 1))
    return [card_a, card_b]


def test_contract_beats_more_recent_spot(contract_and_spot):
    best = find_best_match(contract_and_spot, "Casablanca", "Rotterdam", "SEA_FCL", date(2024, 5, 15))
    assert best is not None
    assert best.id == "A"


def test_no_match_outside_every_window(contract_and_spot):
    assert find_best_match(contract_and_spot, "Casablanca", "Rotterdam", "SEA_FCL", date(2025, 1, 15)) is None
    result = resolve_rate(contract_and_spot, "Casablanca", "Rotterdam", "SEA_FCL", date(2025, 1, 15))
    assert result.reason == NOT_VALID_ON_DATE
    assert result.candidates == 2


def test_no_candidates_reason_for_unknown_lane(contract_and_spot):
    result = resolve_rate(contract_and_spot, "Tanger", "Rotterdam", "SEA_FCL", date(2024, 5, 15))
    assert result.card is None
    assert result.reason == NO_CANDIDATES


def test_same_type_prefers_latest_update():
    cards = [
        _card("old", rate_type="SPOT", updated_at=datetime(2024, 2, 1)),
        _card("new", rate_type="SPOT", updated_at=datetime(2024, 4, 1)),
    ]
    assert find_best_match(cards, "CASABLANCA", "ROTTERDAM", "SEA_FCL", date(2024, 5, 1)).id == "new"


def test_full_tie_keeps_catalog_order():
    stamp = datetime(2024, 4, 1)
    cards = [_card("first", updated_at=stamp), _card("second", updated_at=stamp)]
    assert find_best_match(cards, "CASABLANCA", "ROTTERDAM", "SEA_FCL", date(2024, 5, 1)).id == "first"
    assert find_best_match(list(reversed(cards)), "CASABLANCA", "ROTTERDAM", "SEA_FCL", date(2024, 5, 1)).id == "second"


def test_drafts_and_other_modes_never_resolve():
    cards = [
        _card("draft", status="DRAFT", updated_at=datetime(2024, 9, 1)),
        _card("expired", status="EXPIRED", updated_at=datetime(2024, 9, 1)),
        _card("air", mode="AIR"),
        _card("ok", rate_type="SPOT"),
    ]
    assert find_best_match(cards, "CASABLANCA", "ROTTERDAM", "SEA_FCL", date(2024, 5, 1)).id == "ok"
    assert find_best_match(cards[:2], "CASABLANCA", "ROTTERDAM", "SEA_FCL", date(2024, 5, 1)) is None


def test_mode_compares_exactly_and_route_ignores_case():
    cards = [_card("A")]
    assert find_best_match(cards, "casablanca", "rotterdam", "SEA_FCL", date(2024, 5, 1)) is not None
    assert find_best_match(cards, "CASABLANCA", "ROTTERDAM", "sea_fcl", date(2024, 5, 1)) is None
    assert find_best_match(cards, "CASABLANCA PORT", "ROTTERDAM", "SEA_FCL", date(2024, 5, 1)) is None


def test_window_bounds_are_inclusive_and_datetime_queries_use_the_day():
    cards = [_card("A")]
    assert find_best_match(cards, "CASABLANCA", "ROTTERDAM", "SEA_FCL", date(2024, 1, 1)).id == "A"
    assert find_best_match(cards, "CASABLANCA", "ROTTERDAM", "SEA_FCL", date(2024, 12, 31)).id == "A"
    assert find_best_match(cards, "CASABLANCA", "ROTTERDAM", "SEA_FCL", datetime(2024, 12, 31, 23, 59)).id == "A"
    assert find_best_match(cards, "CASABLANCA", "ROTTERDAM", "SEA_FCL", date(2023, 12, 31)) is None


def test_repeated_lookup_is_stable_and_leaves_input_untouched(contract_and_spot):
    before = list(contract_and_spot)
    first = find_best_match(contract_and_spot, "Casablanca", "Rotterdam", "SEA_FCL", date(2024, 5, 15))
    second = find_best_match(contract_and_spot, "Casablanca", "Rotterdam", "SEA_FCL", date(2024, 5, 15))
    assert first is second
    assert contract_and_spot == before


def test_container_charge_sums_requested_sizes():
    row = ChargeRow(id="c1", charge_head="Ocean Freight", price_20dv=100, price_40hc=180, currency="USD")
    line = compute_charge(row, ChargeQuantity(containers={"20DV": 2, "40HC": 1}))
    assert line.amount == 380
    assert line.currency == "USD"
    assert line.warnings == ()


def test_container_charge_flags_unknown_size():
    row = ChargeRow(id="c1", charge_head="Ocean Freight", price_20dv=100, currency="USD")
    line = compute_charge(row, ChargeQuantity(containers={"20DV": 1, "45HC": 2}))
    assert line.amount == 100
    assert len(line.warnings) == 1
    assert line.warnings[0].field == "45HC"


def test_missing_price_counts_as_zero_with_warning():
    row = ChargeRow(id="c1", charge_head="THC", price_20dv=None, price_40dv=50, currency="USD")
    line = compute_charge(row, ChargeQuantity(containers={"20DV": 1, "40DV": 1}))
    assert line.amount == 50
    assert [w.field for w in line.warnings] == ["price_20dv"]


def test_weight_flat_and_percentage_bases():
    weight = ChargeRow(id="w", basis="TAXABLE_WEIGHT", unit_price=2.5, currency="USD")
    flat = ChargeRow(id="f", basis="FLAT", unit_price=75, currency="USD")
    pct = ChargeRow(id="p", basis="PERCENTAGE", percentage=10, currency="USD")
    qty = ChargeQuantity(containers={"20DV": 5}, chargeable_weight=120, base_amount=900)
    assert compute_charge(weight, qty).amount == 300
    assert compute_charge(flat, qty).amount == 75
    assert compute_charge(pct, qty).amount == 90


def test_percentage_without_base_amount_is_flagged():
    pct = ChargeRow(id="p", charge_head="Insurance", basis="PERCENTAGE", percentage=2, currency="USD")
    line = compute_charge(pct, ChargeQuantity(containers={"20DV": 1}))
    assert line.amount == 0
    assert [w.field for w in line.warnings] == ["base_amount"]


def test_min_price_floors_line():
    row = ChargeRow(id="w", basis="TAXABLE_WEIGHT", unit_price=1.0, min_price=50, currency="USD")
    assert compute_charge(row, ChargeQuantity(chargeable_weight=10)).amount == 50


def test_conversion_uses_rate_table():
    fx = ConversionTable(base="USD", rates={"EUR": 0.5, "MAD": 10})
    row = ChargeRow(id="f", basis="FLAT", unit_price=100, currency="EUR")
    line = compute_charge(row, ChargeQuantity(), "MAD", fx)
    assert line.native_amount == 100
    assert line.native_currency == "EUR"
    assert line.amount == 2000
    assert line.currency == "MAD"


def test_missing_rate_is_an_error():
    fx = ConversionTable(base="USD", rates={"EUR": 0.5})
    row = ChargeRow(id="f", basis="FLAT", unit_price=100, currency="GBP")
    with pytest.raises(MissingRateError):
        compute_charge(row, ChargeQuantity(), "USD", fx)
    with pytest.raises(MissingRateError):
        compute_charge(row, ChargeQuantity(), "USD")


def test_compute_rate_total_groups_sections_and_applies_percentage_to_freight():
    card = _card(
        "A",
        currency="USD",
        freight_charges=(
            ChargeRow(id="of", charge_head="Ocean Freight", price_20dv=1000, currency="USD"),
            ChargeRow(id="ins", charge_head="Insurance", basis="PERCENTAGE", percentage=2, currency="USD"),
            ChargeRow(id="baf", charge_head="BAF", price_20dv=100, currency="EUR"),
        ),
        origin_charges=(ChargeRow(id="doc", charge_head="Docs", basis="FLAT", unit_price=50, currency="USD"),),
        dest_charges=(ChargeRow(id="thc", charge_head="THC", price_20dv=200, currency="EUR"),),
    )
    fx = ConversionTable(base="USD", rates={"EUR": 0.5})

    result = compute_rate_total(card, ChargeQuantity(containers={"20DV": 1}), "USD", fx)

    # BAF 100 EUR = 200 USD; insurance 2% of (1000 + 200).
    assert result["freight_total"] == 1224
    assert result["origin_total"] == 50
    assert result["destination_total"] == 400
    assert result["grand_total"] == 1674
    assert [i["charge_id"] for i in result["items"]] == ["of", "ins", "baf", "doc", "thc"]
    assert result["warnings"] == []
