#!/usr/bin/env python3
"""
SQLite storage for alerts and favorite coins.
"""
import logging
from typing import List, Optional

import aiosqlite

from config import DB_PATH
from errors import InvalidInput, StoreError
from models import Alert

logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS alerts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        chat_id TEXT NOT NULL,
        coin TEXT NOT NULL,
        condition TEXT NOT NULL CHECK (condition IN ('>', '<', '=')),
        price REAL NOT NULL CHECK (price > 0)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS favorites (
        chat_id TEXT NOT NULL,
        coin TEXT NOT NULL,
        PRIMARY KEY (chat_id, coin)
    )
    """,
)

# Rows written by older versions without constraints
CLEANUP_INVALID_ALERTS = (
    "DELETE FROM alerts WHERE coin IS NULL OR trim(coin) = '' "
    "OR condition IS NULL OR condition NOT IN ('>', '<', '=') "
    "OR price IS NULL OR typeof(price) NOT IN ('real', 'integer') OR price <= 0"
)


class AlertStore:
    """Alerts and favorites, one statement per call."""

    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None

    async def open(self) -> None:
        try:
            self._db = await aiosqlite.connect(self.db_path)
            for statement in SCHEMA:
                await self._db.execute(statement)
            cursor = await self._db.execute(CLEANUP_INVALID_ALERTS)
            if cursor.rowcount:
                logger.warning(f"Removed {cursor.rowcount} invalid alert row(s)")
            await self._db.commit()
        except aiosqlite.Error as e:
            logger.error(f"Error opening database {self.db_path}: {e}")
            raise StoreError(f"Could not open database: {e}") from e
        logger.info(f"Connected to SQLite database {self.db_path}")

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("Database connection closed")

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreError("Store is not open")
        return self._db

    async def _write(self, sql: str, params: tuple = ()) -> aiosqlite.Cursor:
        try:
            cursor = await self.db.execute(sql, params)
            await self.db.commit()
            return cursor
        except aiosqlite.Error as e:
            logger.error(f"Database error on {sql.split()[0]}: {e}")
            raise StoreError(str(e)) from e

    async def _read(self, sql: str, params: tuple = ()) -> List[tuple]:
        try:
            async with self.db.execute(sql, params) as cursor:
                return list(await cursor.fetchall())
        except aiosqlite.Error as e:
            logger.error(f"Database error on {sql.split()[0]}: {e}")
            raise StoreError(str(e)) from e

    # ---- Alerts ----

    async def add_alert(self, alert: Alert) -> Alert:
        cursor = await self._write(
            "INSERT INTO alerts (chat_id, coin, condition, price) VALUES (?, ?, ?, ?)",
            (alert.owner, alert.coin, alert.condition.value, alert.price),
        )
        alert.id = cursor.lastrowid
        logger.info(f"Alert {alert.id} saved for {alert.owner}: {alert.describe()}")
        return alert

    async def list_alerts(self, owner: Optional[str] = None) -> List[Alert]:
        if owner is None:
            rows = await self._read("SELECT id, chat_id, coin, condition, price FROM alerts ORDER BY id")
        else:
            rows = await self._read(
                "SELECT id, chat_id, coin, condition, price FROM alerts WHERE chat_id = ? ORDER BY id",
                (str(owner),),
            )
        alerts = []
        for row in rows:
            try:
                alerts.append(Alert(id=row[0], owner=row[1], coin=row[2], condition=row[3], price=row[4]))
            except InvalidInput as e:
                logger.warning(f"Skipping invalid alert row {row[0]}: {e}")
        return alerts

    async def delete_alert(self, alert_id: int) -> bool:
        """Deletes an alert. Returns False if it was already gone."""
        cursor = await self._write("DELETE FROM alerts WHERE id = ?", (alert_id,))
        return cursor.rowcount > 0

    async def count_alerts(self) -> int:
        rows = await self._read("SELECT COUNT(*) FROM alerts")
        return rows[0][0]

    # ---- Favorites ----

    async def add_favorite(self, owner: str, coin: str) -> bool:
        """Adds a favorite coin. Returns False if the owner already had it."""
        cursor = await self._write(
            "INSERT OR IGNORE INTO favorites (chat_id, coin) VALUES (?, ?)",
            (str(owner), coin),
        )
        return cursor.rowcount > 0

    async def list_favorites(self, owner: str) -> List[str]:
        rows = await self._read(
            "SELECT coin FROM favorites WHERE chat_id = ? ORDER BY rowid",
            (str(owner),),
        )
        return [row[0] for row in rows]

    async def clear_favorites(self, owner: str) -> int:
        cursor = await self._write("DELETE FROM favorites WHERE chat_id = ?", (str(owner),))
        return cursor.rowcount

    async def count_favorites(self) -> int:
        rows = await self._read("SELECT COUNT(*) FROM favorites")
        return rows[0][0]
