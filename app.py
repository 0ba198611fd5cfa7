from __future__ import annotations

from dataclasses import asdict
from datetime import date
import logging

import pandas as pd
import streamlit as st

from field_specs import field_guide_df, table_column_config
from fx import MissingRateError, conversion_table_from_env
from models import CHARGE_ROW_FIELDS, CHARGE_SECTIONS, CONTAINER_SIZES, RATE_MODES, RATE_TYPES, RateCard
from rate_engine import ChargeQuantity, compute_rate_total
from rate_store import SqliteRateStore, StorageError
from seed import ensure_templates, seed_if_empty
from services.lane_reports import expiry_radar, trade_lane_matrix
from services.rate_sheet_import import import_rate_sheet
from services.smart_paste import charges_from_paste
from tariff_service import TariffWorkspace

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="Tariff Desk", layout="wide")

SECTION_LABELS = {
    "freight_charges": "Freight",
    "origin_charges": "Origin",
    "dest_charges": "Destination",
}


def get_workspace() -> TariffWorkspace:
    if "workspace" not in st.session_state:
        store = SqliteRateStore()
        seed_if_empty(store)
        ensure_templates()
        workspace = TariffWorkspace(store)
        workspace.fetch_rates()
        st.session_state["workspace"] = workspace
    return st.session_state["workspace"]


def catalog_frame(cards: tuple[RateCard, ...]) -> pd.DataFrame:
    cols = ["id", "reference", "carrier_name", "mode", "rate_type", "status", "pol", "pod", "valid_from", "valid_to", "currency", "updated_at"]
    return pd.DataFrame([{c: getattr(card, c) for c in cols} for card in cards], columns=cols)


def section_frame(card: RateCard, section: str) -> pd.DataFrame:
    cols = ["id", *CHARGE_ROW_FIELDS]
    return pd.DataFrame([asdict(row) for row in card.section(section)], columns=cols)


def apply_section_grid(workspace: TariffWorkspace, section: str, edited: pd.DataFrame) -> None:
    editor = workspace.editor
    original = {row.id: row for row in editor.active.section(section)}
    seen = set()
    for record in edited.to_dict("records"):
        row_id = record.get("id")
        if not row_id or pd.isna(row_id) or row_id not in original:
            row_id = editor.add_charge_row(section).id
            current = None
        else:
            current = original[row_id]
        seen.add(row_id)
        for field in CHARGE_ROW_FIELDS:
            value = record.get(field)
            if value is None or (not isinstance(value, str) and pd.isna(value)):
                continue
            if current is None or getattr(current, field) != value:
                editor.update_charge_row(section, row_id, field, value)
    for row_id in original:
        if row_id not in seen:
            editor.remove_charge_row(section, row_id)


workspace = get_workspace()

st.title("Tariff Desk")
screen = st.sidebar.radio("Section", ["Rate library", "Rate workspace", "Rate lookup", "Import"])

if st.sidebar.button("Reload from store"):
    try:
        workspace.fetch_rates()
    except StorageError as exc:
        st.sidebar.error(f"Failed to load rates: {exc}")

if screen == "Rate library":
    cards = workspace.catalog.cards
    st.dataframe(catalog_frame(cards), width="stretch", hide_index=True)

    radar_tab, matrix_tab = st.tabs(["Expiry radar", "Trade lane matrix"])
    with radar_tab:
        radar = expiry_radar(cards, date.today())
        if radar.empty:
            st.info("No active rates in the catalog.")
        else:
            st.dataframe(radar, width="stretch", hide_index=True)
            renew_id = st.selectbox("Clone & renew", radar["rate_id"].tolist(), format_func=lambda i: workspace.catalog.get(i).reference)
            renew_to = st.date_input("New valid to", value=date.today().replace(month=12, day=31))
            if st.button("Open renewal draft"):
                workspace.editor.renew_rate(workspace.catalog.get(renew_id), date.today(), renew_to)
                st.success("Renewal draft opened in the rate workspace")
    with matrix_tab:
        container = st.selectbox("Container", CONTAINER_SIZES, index=CONTAINER_SIZES.index("40HC"))
        try:
            fx = conversion_table_from_env()
            st.dataframe(trade_lane_matrix(cards, fx, fx.base, container), width="stretch")
        except (MissingRateError, ValueError) as exc:
            st.error(f"Cannot normalize prices: {exc}")

elif screen == "Rate workspace":
    editor = workspace.editor
    c1, c2 = st.columns([3, 1])
    options = [card.id for card in workspace.catalog.cards]
    chosen = c1.selectbox("Open rate", options, format_func=lambda i: workspace.catalog.get(i).reference) if options else None
    if c2.button("Open") and chosen:
        workspace.open_rate(chosen)
    if c2.button("New rate"):
        editor.create_rate()

    card = editor.active
    if card is None:
        st.info("Open a rate or start a new one.")
        st.stop()

    st.caption(f"{card.reference} · {card.status} · id {card.id}")
    f1, f2, f3, f4 = st.columns(4)
    edits = {
        "reference": f1.text_input("Reference", card.reference),
        "carrier_name": f2.text_input("Carrier", card.carrier_name),
        "mode": f3.selectbox("Mode", RATE_MODES, index=RATE_MODES.index(card.mode)),
        "rate_type": f4.selectbox("Type", RATE_TYPES, index=RATE_TYPES.index(card.rate_type)),
        "pol": f1.text_input("POL", card.pol),
        "pod": f2.text_input("POD", card.pod),
        "valid_from": f3.date_input("Valid from", card.valid_from),
        "valid_to": f4.date_input("Valid to", card.valid_to),
        "currency": f1.text_input("Currency", card.currency).upper(),
        "incoterm": f2.text_input("Incoterm", card.incoterm),
        "transit_time": int(f3.number_input("Transit days", min_value=0, value=card.transit_time)),
        "free_time": int(f4.number_input("Free days", min_value=0, value=card.free_time)),
        "remarks": st.text_area("Remarks", card.remarks),
    }
    for field, value in edits.items():
        if getattr(card, field) != value:
            editor.update_field(field, value)

    grids = {}
    for section, tab in zip(CHARGE_SECTIONS, st.tabs([SECTION_LABELS[s] for s in CHARGE_SECTIONS])):
        with tab:
            grids[section] = st.data_editor(
                section_frame(editor.active, section),
                num_rows="dynamic",
                width="stretch",
                column_config=table_column_config("charges"),
                key=f"grid_{section}_{editor.active.id}",
            )
            pasted = st.text_area("Smart paste from Excel", key=f"paste_{section}")
            if st.button("Import pasted rows", key=f"paste_btn_{section}"):
                try:
                    rows = charges_from_paste(pasted, editor.active.currency)
                except ValueError as exc:
                    st.error(str(exc))
                else:
                    editor.import_charge_rows(section, rows)
                    st.success(f"Imported {len(rows)} lines from clipboard.")
                    st.rerun()

    s1, s2 = st.columns(2)
    if s1.button("Save rate sheet", type="primary"):
        for section, edited in grids.items():
            apply_section_grid(workspace, section, edited)
        try:
            saved = workspace.save_rate()
        except ValueError as exc:
            st.error(str(exc))
        except StorageError as exc:
            st.error(f"Save failed: {exc}")
        else:
            st.success(f"Rate sheet {saved.reference} saved")
            st.rerun()
    if s2.button("Delete rate") and card.is_persisted:
        try:
            workspace.delete_rate(card.id)
        except StorageError as exc:
            st.error(f"Delete failed: {exc}")
        else:
            st.info("Rate deleted")
            st.rerun()

elif screen == "Rate lookup":
    l1, l2, l3, l4 = st.columns(4)
    pol = l1.text_input("POL")
    pod = l2.text_input("POD")
    mode = l3.selectbox("Mode", RATE_MODES)
    ship_date = l4.date_input("Ship date", value=date.today())

    q = st.columns(len(CONTAINER_SIZES) + 2)
    containers = {size: q[i].number_input(size, min_value=0, value=0) for i, size in enumerate(CONTAINER_SIZES)}
    weight = q[-2].number_input("Chargeable kg", min_value=0.0, value=0.0)
    target_currency = q[-1].text_input("Currency", "USD").upper()

    if st.button("Find best rate"):
        result = workspace.resolve(pol, pod, mode, ship_date)
        if not result.matched:
            st.warning(f"No rate found ({result.reason}). Price this shipment manually.")
            st.stop()
        best = result.card
        st.success(f"{best.reference} · {best.carrier_name} · {best.rate_type} · valid to {best.valid_to}")
        quantity = ChargeQuantity(containers={k: v for k, v in containers.items() if v}, chargeable_weight=weight)
        try:
            totals = compute_rate_total(best, quantity, target_currency, conversion_table_from_env())
        except (MissingRateError, ValueError) as exc:
            st.error(f"Cannot price rate: {exc}")
            st.stop()
        st.metric("Grand total", f"{totals['grand_total']:,.2f} {totals['currency']}")
        st.dataframe(pd.DataFrame(totals["items"]), width="stretch", hide_index=True)
        if totals["warnings"]:
            st.warning("Data quality: " + "; ".join(w["message"] for w in totals["warnings"]))

elif screen == "Import":
    st.caption("Upload rate_cards_template.csv and rate_charges_template.csv compatible files.")
    with st.expander("Field guide"):
        st.dataframe(field_guide_df("rate_cards"), hide_index=True)
        st.dataframe(field_guide_df("rate_charges"), hide_index=True)
    cards_upload = st.file_uploader("Rate cards csv", type=["csv"], key="cards_upload")
    charges_upload = st.file_uploader("Rate charges csv", type=["csv"], key="charges_upload")
    if cards_upload is not None and charges_upload is not None and st.button("Import rate sheet"):
        try:
            result = import_rate_sheet(pd.read_csv(cards_upload), pd.read_csv(charges_upload))
        except ValueError as exc:
            st.error(str(exc))
            st.stop()
        for warning in result.warnings:
            st.warning(warning)
        for card in result.cards:
            workspace.editor.load_rate(card)
            try:
                workspace.save_rate()
            except (ValueError, StorageError) as exc:
                st.error(f"{card.reference}: {exc}")
        workspace.editor.close()
        st.success(f"Imported {len(result.cards)} rate cards")
