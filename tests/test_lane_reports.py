from datetime import date

import pytest

from fx import ConversionTable
from models import ChargeRow, RateCard
from services.lane_reports import expiry_radar, freight_price, lane_name, trade_lane_matrix


def _card(card_id, pol, pod, valid_to, **overrides):
    values = dict(
        id=card_id,
        reference=f"REF-{card_id}",
        status="ACTIVE",
        pol=pol,
        pod=pod,
        valid_from=date(2024, 1, 1),
        valid_to=valid_to,
    )
    values.update(overrides)
    return RateCard(**values)


def test_lane_name_strips_country_suffix():
    assert lane_name("SHANGHAI (CN)", "CASABLANCA (MA)") == "SHANGHAI → CASABLANCA"


def test_expiry_radar_orders_by_latest_validity_per_lane():
    today = date(2024, 6, 1)
    cards = [
        _card("1", "SHANGHAI (CN)", "CASABLANCA", date(2024, 6, 5)),
        _card("2", "SHANGHAI", "CASABLANCA", date(2024, 9, 30)),
        _card("3", "NINGBO", "TANGER", date(2024, 6, 10)),
        _card("4", "VALENCIA", "CASABLANCA", date(2024, 5, 20)),
        _card("5", "GENOA", "CASABLANCA", date(2024, 6, 2), status="DRAFT"),
    ]

    radar = expiry_radar(cards, today)

    assert radar["lane"].tolist() == ["VALENCIA → CASABLANCA", "NINGBO → TANGER", "SHANGHAI → CASABLANCA"]
    assert radar["severity"].tolist() == ["EXPIRED", "WARNING", "OK"]
    assert radar["days_left"].tolist() == [-12, 9, 121]
    assert radar.loc[2, "rate_id"] == "2"
    assert radar.loc[2, "rate_count"] == 2


def test_expiry_radar_empty_catalog():
    assert expiry_radar([], date(2024, 1, 1)).empty


def test_trade_lane_matrix_keeps_cheapest_normalized_price():
    fx = ConversionTable(base="USD", rates={"EUR": 0.5})
    cards = [
        _card("1", "SHANGHAI (CN)", "CASABLANCA", date(2024, 12, 31), currency="USD",
              freight_charges=(ChargeRow(id="a", price_40hc=2000), ChargeRow(id="b", price_40hc=300))),
        _card("2", "SHANGHAI", "CASABLANCA", date(2024, 12, 31), currency="EUR",
              freight_charges=(ChargeRow(id="c", price_40hc=1000, currency="EUR"),)),
        _card("3", "NINGBO", "CASABLANCA", date(2024, 12, 31), currency="USD",
              freight_charges=(ChargeRow(id="d", price_40hc=1800),)),
    ]

    matrix = trade_lane_matrix(cards, fx, "USD", "40HC")

    assert matrix.loc["SHANGHAI", "CASABLANCA"] == 2000
    assert matrix.loc["NINGBO", "CASABLANCA"] == 1800


def test_trade_lane_matrix_converts_each_row_from_its_own_currency():
    fx = ConversionTable(base="USD", rates={"EUR": 0.5})
    card = _card("1", "CASABLANCA", "ROTTERDAM", date(2024, 12, 31), currency="USD",
                 freight_charges=(ChargeRow(id="a", price_40hc=1000), ChargeRow(id="b", price_40hc=100, currency="EUR")))

    matrix = trade_lane_matrix([card], fx, "USD", "40HC")

    assert matrix.loc["CASABLANCA", "ROTTERDAM"] == 1200
    assert freight_price(card, fx, "EUR", "40HC") == 600


def test_freight_price_rejects_unknown_size():
    fx = ConversionTable(base="USD", rates={})
    with pytest.raises(ValueError):
        freight_price(_card("1", "A", "B", date(2024, 1, 1)), fx, "USD", "45HC")
