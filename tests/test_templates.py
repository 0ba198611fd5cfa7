import csv

from field_specs import TABLE_SPECS, field_guide_df
from seed import TEMPLATE_SPECS, ensure_templates


def test_generated_template_headers_match_table_specs(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    ensure_templates()

    for table_key, filename in TEMPLATE_SPECS:
        template_path = tmp_path / "templates" / filename
        assert template_path.exists(), f"missing template for {table_key}: {filename}"

        with template_path.open(newline="", encoding="utf-8") as handle:
            reader = csv.reader(handle)
            header = next(reader)

        assert header == list(TABLE_SPECS[table_key].keys())


def test_template_catalog():
    names = {filename for _, filename in TEMPLATE_SPECS}
    assert names == {"rate_cards_template.csv", "rate_charges_template.csv"}


def test_charge_grid_columns_follow_upload_columns():
    grid = list(TABLE_SPECS["charges"].keys())
    upload = [c for c in TABLE_SPECS["rate_charges"].keys() if c not in {"sheet_key", "section"}]
    assert grid == ["id", *upload]


def test_field_guide_lists_every_column():
    guide = field_guide_df("rate_cards")
    assert guide["column"].tolist() == list(TABLE_SPECS["rate_cards"].keys())
    mode_row = guide.set_index("column").loc["mode"]
    assert mode_row["required"] == "yes"
    assert "SEA_FCL" in mode_row["allowed"]
