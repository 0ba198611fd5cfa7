import pandas as pd

from validators import require_cols, validate_date_order, validate_dates, validate_with_specs


def test_require_cols_flags_missing_or_blank():
    df = pd.DataFrame([{"pol": "CASABLANCA", "pod": ""}])
    assert require_cols(df, ["pol", "pod", "carrier_name"]) == ["pod", "carrier_name"]


def test_validate_dates_detects_invalid():
    df = pd.DataFrame([{"valid_to": "2024-12-31"}, {"valid_to": "bad-date"}])
    assert validate_dates(df, ["valid_to"]) == ["valid_to has invalid dates"]


def test_validate_date_order_reports_each_row():
    df = pd.DataFrame(
        [
            {"valid_from": "2024-01-01", "valid_to": "2024-12-31"},
            {"valid_from": "2024-06-01", "valid_to": "2024-05-31"},
            {"valid_from": "2024-06-01", "valid_to": "2024-06-01"},
        ]
    )
    assert validate_date_order(df, "valid_from", "valid_to") == ["Row 2 (valid_from): must be on or before valid_to"]
    assert validate_date_order(df.drop(columns=["valid_to"]), "valid_from", "valid_to") == []


def test_validate_with_specs_regex_length_and_choices():
    df = pd.DataFrame(
        [
            {"sheet_key": "A", "section": "freight_charges", "charge_head": "BAF", "basis": "CONTAINER", "currency": "usd"},
            {"sheet_key": "A", "section": "misc", "charge_head": "X" * 81, "basis": "PER_KG", "currency": "EUR"},
        ]
    )
    errors = validate_with_specs("rate_charges", df)
    assert any("Row 1 (currency): invalid format, A-Z only" in e for e in errors)
    assert any("Row 2 (charge_head): max length 80" in e for e in errors)
    assert any("Row 2 (section): must be one of" in e for e in errors)
    assert any("Row 2 (basis): must be one of" in e for e in errors)


def test_validate_with_specs_numeric_and_date_messages():
    cards = pd.DataFrame([{"valid_from": "2024/01/01", "transit_time": -1}])
    errors = validate_with_specs("rate_cards", cards)
    assert "Row 1 (valid_from): must be YYYY-MM-DD. Example: 2024-01-01" in errors
    assert "Row 1 (transit_time): must be >= 0. Example: 28" in errors


def test_percentage_is_capped():
    charges = pd.DataFrame([{"percentage": 150}])
    assert validate_with_specs("rate_charges", charges) == ["Row 1 (percentage): must be <= 100. Example: 0"]
