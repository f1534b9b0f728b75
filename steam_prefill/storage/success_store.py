"""
Stores which depot manifests have been fully downloaded, so up-to-date apps can be skipped.
"""

import asyncio
import json
import logging
import os
import sqlite3
from pathlib import Path
from typing import Any, Sequence

from steam_prefill.exceptions import SuccessStoreError
from steam_prefill.models.steam import DepotInfo

log = logging.getLogger(__name__)


class SqliteDepotSuccessStore:
    """
    A SQLite store of depot id -> manifest id for every depot whose last
    download completed. Written only after an app's whole queue succeeded.
    """

    def __init__(self, db_path: Path, pool_size: int = 5):
        self.db_path = db_path
        self._connection_semaphore = asyncio.Semaphore(pool_size)
        self._initialize_db()
        self._migrate_from_json_if_needed()

    def _get_connection(self) -> sqlite3.Connection:
        """Gets a new database connection with optimized PRAGMA settings."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            return conn
        except sqlite3.Error as e:
            raise SuccessStoreError(
                f"Failed to open depot success store '{self.db_path}': {e}"
            ) from e

    def _initialize_db(self) -> None:
        """Creates the database and table if they don't exist."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._get_connection() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS downloaded_depots (
                        depot_id INTEGER PRIMARY KEY NOT NULL,
                        manifest_id INTEGER,
                        app_id INTEGER,
                        downloaded_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                conn.commit()
        except (OSError, sqlite3.Error) as e:
            raise SuccessStoreError(
                f"Failed to initialize depot success store at '{self.db_path}': {e}"
            ) from e

    def _migrate_from_json_if_needed(self) -> None:
        """
        One-time import of the legacy JSON file, a map of depot id to manifest id.
        """
        json_path = self.db_path.with_suffix(".json")
        if not json_path.is_file():
            return

        log.info("[yellow]Migrating downloaded depots from legacy JSON file...[/yellow]")
        try:
            with open(json_path, encoding="utf-8") as f:
                legacy: dict[str, Any] = json.load(f)
            records = [(int(depot), int(manifest)) for depot, manifest in legacy.items()]
            if records:
                with self._get_connection() as conn:
                    conn.executemany(
                        "INSERT OR IGNORE INTO downloaded_depots (depot_id, manifest_id)"
                        " VALUES (?, ?)",
                        records,
                    )
                    conn.commit()
                log.info(f"[green]✓ Migrated {len(records)} depots.[/green]")
            os.rename(json_path, json_path.with_suffix(".json.migrated"))
        except (OSError, ValueError, AttributeError, sqlite3.Error) as e:
            log.error(f"[red]Migration from legacy depot file failed: {e}[/red]")

    async def _run_in_executor(self, func, *args):
        """Runs a synchronous database function within the connection pool semaphore."""
        async with self._connection_semaphore:
            return await asyncio.to_thread(func, *args)

    def _get_manifest_ids_sync(self, depot_ids: Sequence[int]) -> dict[int, int | None]:
        results: dict[int, int | None] = dict.fromkeys(depot_ids)
        if not depot_ids:
            return results

        BATCH_SIZE = 999  # SQLite's default limit on variables in a query prior to 3.32.0
        ids = list(depot_ids)
        try:
            with self._get_connection() as conn:
                for i in range(0, len(ids), BATCH_SIZE):
                    chunk = ids[i : i + BATCH_SIZE]
                    placeholders = ",".join("?" * len(chunk))
                    query = (
                        "SELECT depot_id, manifest_id FROM downloaded_depots"  # noqa: S608
                        f" WHERE depot_id IN ({placeholders})"
                    )
                    for depot_id, manifest_id in conn.execute(query, chunk):
                        results[depot_id] = manifest_id
            return results
        except sqlite3.Error as e:
            raise SuccessStoreError(f"Depot success lookup failed: {e}") from e

    async def get_manifest_ids(self, depot_ids: Sequence[int]) -> dict[int, int | None]:
        """Returns the last successfully downloaded manifest of each depot (None if never)."""
        return await self._run_in_executor(self._get_manifest_ids_sync, depot_ids)

    def _mark_successful_sync(self, app_id: int, depots: Sequence[DepotInfo]) -> None:
        records = [(d.depot_id, d.manifest_id, app_id) for d in depots]
        if not records:
            return
        try:
            with self._get_connection() as conn:
                conn.executemany(
                    "INSERT OR REPLACE INTO downloaded_depots "
                    "(depot_id, manifest_id, app_id) VALUES (?, ?, ?)",
                    records,
                )
                conn.commit()
        except sqlite3.Error as e:
            raise SuccessStoreError(
                f"Failed to record {len(records)} downloaded depots for app {app_id}: {e}"
            ) from e

    async def mark_successful(self, app_id: int, depots: Sequence[DepotInfo]) -> None:
        """Records the current manifest of every depot of an app that finished downloading."""
        await self._run_in_executor(self._mark_successful_sync, app_id, depots)

    def _clear_sync(self) -> bool:
        try:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM downloaded_depots;")
                conn.commit()
            return True
        except sqlite3.Error as e:
            log.error(f"Failed to clear depot success store: {e}")
            return False

    async def clear(self) -> bool:
        """Forgets every downloaded depot, so the next run re-downloads everything."""
        return await self._run_in_executor(self._clear_sync)

    def _count_sync(self) -> int:
        try:
            with self._get_connection() as conn:
                return conn.execute("SELECT COUNT(*) FROM downloaded_depots").fetchone()[0]
        except sqlite3.Error as e:
            raise SuccessStoreError(f"Failed to count downloaded depots: {e}") from e

    async def count(self) -> int:
        return await self._run_in_executor(self._count_sync)

    def _vacuum_sync(self) -> bool:
        """Synchronous implementation for optimizing the database."""
        try:
            with self._get_connection() as conn:
                conn.execute("VACUUM;")
                conn.execute("ANALYZE;")
                conn.commit()
            log.info("Depot success store optimized successfully.")
            return True
        except sqlite3.Error as e:
            log.error(f"Database vacuum failed: {e}")
            return False

    async def vacuum(self) -> bool:
        """Optimizes the database file by rebuilding it."""
        return await self._run_in_executor(self._vacuum_sync)


class InMemoryDepotSuccessStore:
    """A depot success store that lives for a single process. Used by tests."""

    def __init__(self, initial: dict[int, int | None] | None = None):
        self._manifests: dict[int, int | None] = dict(initial or {})

    async def get_manifest_ids(self, depot_ids: Sequence[int]) -> dict[int, int | None]:
        return {depot_id: self._manifests.get(depot_id) for depot_id in depot_ids}

    async def mark_successful(self, app_id: int, depots: Sequence[DepotInfo]) -> None:
        for depot in depots:
            self._manifests[depot.depot_id] = depot.manifest_id

    async def clear(self) -> bool:
        self._manifests.clear()
        return True

    async def count(self) -> int:
        return len(self._manifests)
