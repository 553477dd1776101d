"""Snapshot cache persistence layer (aiosqlite)."""

from pricefeed.data.database import PriceDatabase
from pricefeed.data.snapshots import PriceSnapshotStore

__all__ = ["PriceDatabase", "PriceSnapshotStore"]
