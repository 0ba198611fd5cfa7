"""In-memory rate card catalog."""
from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Iterator

from models import RateCard
from rate_engine import find_best_match


class RateCatalog:
    """Ordered collection of rate cards as last confirmed by the store.

    Mutations are only applied after the store has accepted the matching
    save or delete, so the catalog never holds unconfirmed state.
    """

    def __init__(self, cards: Iterable[RateCard] = ()) -> None:
        self._cards: list[RateCard] = list(cards)

    def load(self, cards: Iterable[RateCard]) -> None:
        self._cards = list(cards)

    def upsert(self, card: RateCard) -> None:
        for idx, existing in enumerate(self._cards):
            if existing.id == card.id:
                self._cards[idx] = card
                return
        self._cards.insert(0, card)

    def remove(self, card_id: str) -> None:
        self._cards = [c for c in self._cards if c.id != card_id]

    def get(self, card_id: str) -> RateCard | None:
        return next((c for c in self._cards if c.id == card_id), None)

    @property
    def cards(self) -> tuple[RateCard, ...]:
        return tuple(self._cards)

    def find_best_match(self, pol: str, pod: str, mode: str, on_date: date | datetime) -> RateCard | None:
        return find_best_match(self._cards, pol, pod, mode, on_date)

    def __len__(self) -> int:
        return len(self._cards)

    def __iter__(self) -> Iterator[RateCard]:
        return iter(tuple(self._cards))
