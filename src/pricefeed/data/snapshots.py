"""Best-effort persistence of the latest price per asset.

Prices are stored as TEXT and restored as Decimal. save() never raises:
a failed snapshot write only costs a warm start after the next restart.
"""

import sqlite3
import time
from decimal import Decimal

from pricefeed.data.database import PriceDatabase
from pricefeed.exceptions import ValidationError
from pricefeed.logging import get_logger
from pricefeed.models import PricePoint

logger = get_logger(__name__)


class PriceSnapshotStore:
    """Latest-point snapshot table on top of PriceDatabase."""

    def __init__(self, database: PriceDatabase) -> None:
        self._database = database

    async def save(self, asset: str, point: PricePoint) -> bool:
        """Upsert the latest point for an asset, keeping the newer row on conflict.

        Returns False (and logs) instead of raising on any database error.
        """
        try:
            await self._database.db.execute(
                "INSERT INTO price_snapshots (asset, price, observed_at, saved_at) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT(asset) DO UPDATE SET "
                "price = excluded.price, "
                "observed_at = excluded.observed_at, "
                "saved_at = excluded.saved_at "
                "WHERE excluded.observed_at > price_snapshots.observed_at",
                (asset, str(point.value), point.observed_at, time.time()),
            )
            await self._database.db.commit()
        except (sqlite3.Error, RuntimeError, ValueError):
            logger.warning("snapshot_save_failed", asset=asset, exc_info=True)
            return False
        return True

    async def load_all(self) -> dict[str, PricePoint]:
        """Return every stored snapshot. Unparseable rows are skipped."""
        cursor = await self._database.db.execute(
            "SELECT asset, price, observed_at FROM price_snapshots"
        )
        rows = await cursor.fetchall()

        snapshots: dict[str, PricePoint] = {}
        for asset, price, observed_at in rows:
            try:
                snapshots[asset] = PricePoint(value=Decimal(price), observed_at=float(observed_at))
            except (ValidationError, ArithmeticError, ValueError):
                logger.warning("snapshot_row_invalid", asset=asset, price=price)
        return snapshots
