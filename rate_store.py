"""SQLite persistence for rate cards.

Uses SQLite with lightweight startup migrations. Charge sections are kept as
JSON arrays in the camelCase shape the web client exchanges.
"""
from __future__ import annotations

from datetime import date, datetime
import json
import logging
import os
from pathlib import Path
import sqlite3
from typing import Any, Protocol

from models import CHARGE_SECTIONS, ChargeRow, RateCard, default_basis, is_placeholder_id

logger = logging.getLogger(__name__)

_env_db_path = os.getenv("TARIFF_DB_PATH")
if _env_db_path:
    DB_PATH = Path(_env_db_path).expanduser().resolve()
else:
    DB_PATH = (Path(__file__).resolve().parent / "tariffs.db").resolve()


MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS rate_cards (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            reference TEXT NOT NULL,
            carrier_id TEXT,
            carrier_name TEXT,
            mode TEXT NOT NULL,
            rate_type TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'DRAFT',
            valid_from TEXT NOT NULL,
            valid_to TEXT NOT NULL,
            pol TEXT,
            pod TEXT,
            transit_time INTEGER NOT NULL DEFAULT 0,
            service_loop TEXT,
            currency TEXT NOT NULL,
            incoterm TEXT,
            free_time INTEGER NOT NULL DEFAULT 0,
            payment_terms TEXT,
            freight_charges TEXT NOT NULL DEFAULT '[]',
            origin_charges TEXT NOT NULL DEFAULT '[]',
            dest_charges TEXT NOT NULL DEFAULT '[]',
            remarks TEXT,
            updated_at TEXT NOT NULL
        );
        """,
    ),
    (
        2,
        """
        CREATE INDEX IF NOT EXISTS idx_rate_cards_lane ON rate_cards(mode, pol, pod);
        """,
    ),
]

# ChargeRow attribute -> JSON key.
_CHARGE_KEYS = {
    "id": "id",
    "charge_head": "chargeHead",
    "is_surcharge": "isSurcharge",
    "basis": "basis",
    "price_20dv": "price20DV",
    "price_40dv": "price40DV",
    "price_40hc": "price40HC",
    "price_40rf": "price40RF",
    "unit_price": "unitPrice",
    "min_price": "minPrice",
    "percentage": "percentage",
    "currency": "currency",
    "vat_rule": "vatRule",
}

_SCALAR_COLUMNS = [
    "reference",
    "carrier_id",
    "carrier_name",
    "mode",
    "rate_type",
    "status",
    "valid_from",
    "valid_to",
    "pol",
    "pod",
    "transit_time",
    "service_loop",
    "currency",
    "incoterm",
    "free_time",
    "payment_terms",
    "remarks",
]


class StorageError(RuntimeError):
    """A store round trip failed; the in-memory catalog must not change."""


class RateStore(Protocol):
    def fetch_all_rate_cards(self) -> list[RateCard]: ...

    def save_rate_card(self, card: RateCard) -> RateCard: ...

    def delete_rate_card(self, card_id: str) -> None: ...


def get_conn(db_path: Path | str | None = None) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path or DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def run_migrations(conn: sqlite3.Connection) -> None:
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version INTEGER PRIMARY KEY,
                applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        applied = {
            row["version"]
            for row in conn.execute("SELECT version FROM schema_migrations").fetchall()
        }
        for version, script in MIGRATIONS:
            if version in applied:
                continue
            conn.executescript(script)
            conn.execute("INSERT INTO schema_migrations(version) VALUES (?)", (version,))


def charge_to_record(row: ChargeRow) -> dict[str, Any]:
    return {key: getattr(row, attr) for attr, key in _CHARGE_KEYS.items()}


def charge_from_record(record: dict[str, Any], mode: str = "") -> ChargeRow:
    values = {attr: record[key] for attr, key in _CHARGE_KEYS.items() if record.get(key) is not None}
    values.setdefault("basis", default_basis(mode))
    values["id"] = str(values.get("id", ""))
    return ChargeRow(**values)


def card_to_row(card: RateCard) -> dict[str, Any]:
    row: dict[str, Any] = {col: getattr(card, col) for col in _SCALAR_COLUMNS}
    row["valid_from"] = card.valid_from.isoformat()
    row["valid_to"] = card.valid_to.isoformat()
    for section in CHARGE_SECTIONS:
        row[section] = json.dumps([charge_to_record(c) for c in getattr(card, section)])
    row["updated_at"] = card.updated_at.isoformat()
    return row


def card_from_row(row: sqlite3.Row | dict[str, Any]) -> RateCard:
    data = dict(row)
    mode = data.get("mode") or ""
    sections = {
        section: tuple(charge_from_record(rec, mode) for rec in json.loads(data.get(section) or "[]"))
        for section in CHARGE_SECTIONS
    }
    scalars = {col: data[col] for col in _SCALAR_COLUMNS if data.get(col) is not None}
    scalars["valid_from"] = date.fromisoformat(str(data["valid_from"])[:10])
    scalars["valid_to"] = date.fromisoformat(str(data["valid_to"])[:10])
    return RateCard(
        id=str(data["id"]),
        updated_at=datetime.fromisoformat(data["updated_at"]),
        **scalars,
        **sections,
    )


class SqliteRateStore:
    def __init__(self, db_path: Path | str | None = None) -> None:
        self.db_path = db_path or DB_PATH
        conn = get_conn(self.db_path)
        try:
            run_migrations(conn)
        except sqlite3.Error as exc:
            raise StorageError(f"Could not prepare rate store at {self.db_path}") from exc
        finally:
            conn.close()

    def fetch_all_rate_cards(self) -> list[RateCard]:
        conn = get_conn(self.db_path)
        try:
            rows = conn.execute("SELECT * FROM rate_cards ORDER BY updated_at DESC, id DESC").fetchall()
            return [card_from_row(r) for r in rows]
        except (sqlite3.Error, ValueError) as exc:
            raise StorageError("Failed to load rate cards") from exc
        finally:
            conn.close()

    def save_rate_card(self, card: RateCard) -> RateCard:
        row = card_to_row(card)
        row["updated_at"] = datetime.now().isoformat()
        columns = list(row.keys())
        conn = get_conn(self.db_path)
        try:
            with conn:
                if is_placeholder_id(card.id):
                    placeholders = ", ".join(["?"] * len(columns))
                    cur = conn.execute(
                        f"INSERT INTO rate_cards ({', '.join(columns)}) VALUES ({placeholders})",
                        [row[c] for c in columns],
                    )
                    card_id = cur.lastrowid
                else:
                    card_id = int(card.id)
                    update_stmt = ", ".join(f"{c} = ?" for c in columns)
                    cur = conn.execute(
                        f"UPDATE rate_cards SET {update_stmt} WHERE id = ?",
                        [row[c] for c in columns] + [card_id],
                    )
                    if cur.rowcount == 0:
                        raise StorageError(f"Rate card {card.id} does not exist")
            stored = conn.execute("SELECT * FROM rate_cards WHERE id = ?", (card_id,)).fetchone()
        except (sqlite3.Error, ValueError) as exc:
            raise StorageError(f"Failed to save rate card {card.reference}") from exc
        finally:
            conn.close()
        logger.info("Saved rate card %s as id %s", card.reference, card_id)
        return card_from_row(stored)

    def delete_rate_card(self, card_id: str) -> None:
        if is_placeholder_id(card_id):
            return
        conn = get_conn(self.db_path)
        try:
            with conn:
                conn.execute("DELETE FROM rate_cards WHERE id = ?", (int(card_id),))
        except (sqlite3.Error, ValueError) as exc:
            raise StorageError(f"Failed to delete rate card {card_id}") from exc
        finally:
            conn.close()
        logger.info("Deleted rate card %s", card_id)
