"""Workspace wiring the rate store, the catalog and the draft editor."""
from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta
import logging

from charge_editor import ChargeSheetEditor
from models import CHARGE_SECTIONS, ChargeRow, RateCard, empty_rate_card, new_row_id
from rate_catalog import RateCatalog
from rate_engine import MatchResult, resolve_rate
from rate_store import RateStore, StorageError

logger = logging.getLogger(__name__)

SPOT_VALIDITY_DAYS = 30


class TariffWorkspace:
    """Applies store results to the in-memory catalog.

    Each operation calls the store first and only touches the catalog once
    the store has returned. Failures raise StorageError with the catalog
    left as it was; nothing is retried.
    """

    def __init__(self, store: RateStore, catalog: RateCatalog | None = None, editor: ChargeSheetEditor | None = None) -> None:
        self.store = store
        self.catalog = catalog if catalog is not None else RateCatalog()
        self.editor = editor if editor is not None else ChargeSheetEditor()

    def fetch_rates(self) -> list[RateCard]:
        try:
            cards = self.store.fetch_all_rate_cards()
        except StorageError:
            logger.exception("Failed to load rates")
            raise
        self.catalog.load(cards)
        logger.info("Loaded %d rate cards", len(cards))
        return cards

    def open_rate(self, card_id: str) -> RateCard | None:
        card = self.catalog.get(card_id)
        if card is not None:
            self.editor.load_rate(card)
        return card

    def save_rate(self) -> RateCard:
        errors = self.editor.validate()
        if errors:
            raise ValueError("Rate sheet is invalid: " + "; ".join(errors))
        draft = replace(self.editor.active, status="ACTIVE")
        try:
            saved = self.store.save_rate_card(draft)
        except StorageError:
            logger.exception("Failed to save rate %s", draft.reference)
            raise
        self.catalog.upsert(saved)
        self.editor.load_rate(saved)
        return saved

    def delete_rate(self, card_id: str) -> None:
        try:
            self.store.delete_rate_card(card_id)
        except StorageError:
            logger.exception("Failed to delete rate %s", card_id)
            raise
        self.catalog.remove(card_id)
        if self.editor.active is not None and self.editor.active.id == card_id:
            self.editor.close()

    def resolve(self, pol: str, pod: str, mode: str, on_date: date | datetime) -> MatchResult:
        return resolve_rate(self.catalog.cards, pol, pod, mode, on_date)

    def find_best_match(self, pol: str, pod: str, mode: str, on_date: date | datetime) -> RateCard | None:
        return self.resolve(pol, pod, mode, on_date).card

    def add_spot_rate_from_quote(
        self,
        *,
        vendor_name: str,
        description: str,
        buy_price: float,
        buy_currency: str,
        section: str,
        pol: str,
        pod: str,
        mode: str,
        vat_rule: str = "STD_20",
        today: date | None = None,
    ) -> RateCard:
        """Save a quoted buy price as a 30-day SPOT rate for the lane."""
        if not (vendor_name or "").strip() or not buy_price:
            raise ValueError("Cannot save spot rate: missing vendor or price")
        if section not in CHARGE_SECTIONS:
            raise ValueError(f"Unknown charge section: {section}")

        start = today or date.today()
        charge = ChargeRow(
            id=new_row_id(),
            charge_head=description,
            basis="CONTAINER",
            price_20dv=buy_price,
            price_40dv=buy_price,
            price_40hc=buy_price,
            price_40rf=buy_price,
            unit_price=buy_price,
            currency=buy_currency.upper(),
            vat_rule=vat_rule,
        )
        stamp = datetime.now().strftime("%H%M%S")
        card = replace(
            empty_rate_card(start),
            reference=f"SPOT-{vendor_name.strip().upper()[:3]}-{stamp}",
            carrier_name=vendor_name.strip(),
            mode=mode,
            rate_type="SPOT",
            status="ACTIVE",
            pol=pol,
            pod=pod,
            valid_to=start + timedelta(days=SPOT_VALIDITY_DAYS),
            **{section: (charge,)},
        )
        try:
            saved = self.store.save_rate_card(card)
        except StorageError:
            logger.exception("Failed to save spot rate for %s", vendor_name)
            raise
        self.catalog.upsert(saved)
        return saved
