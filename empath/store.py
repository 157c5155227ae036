"""SQLite event log of path accesses, partitioned by repository."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .constants import BUSY_TIMEOUT_SECONDS, LEGACY_EVENT_TABLES, UNREADABLE_TABLE
from .errors import StorageError, StorageInitError, StorageWriteError
from .utils import coerce_timestamp, ensure_dir, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessEvent:
    path: str
    at: str


class EventStore:
    """Append-mostly log of (repository, path, timestamp) triples.

    Every operation opens its own connection, so one store file can be shared
    by concurrent invocations; SQLite's locking serializes the writers.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=BUSY_TIMEOUT_SECONDS)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def initialize(self) -> None:
        try:
            ensure_dir(self.db_path.parent)
            with closing(self._connect()) as conn, conn:
                conn.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS access_log (
                        repo TEXT NOT NULL,
                        path TEXT NOT NULL,
                        at TEXT NOT NULL,
                        UNIQUE (repo, path, at)
                    );
                    """
                )
                self._migrate_legacy(conn)
        except (OSError, sqlite3.Error) as exc:
            raise StorageInitError(f"Cannot open store at {self.db_path}: {exc}") from exc
        logger.debug("Store ready at %s", self.db_path)

    def _tables(self, conn: sqlite3.Connection) -> set[str]:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
        return {row["name"] for row in rows}

    def _migrate_legacy(self, conn: sqlite3.Connection) -> None:
        if not self._tables(conn) & LEGACY_EVENT_TABLES.keys():
            return
        conn.execute("BEGIN IMMEDIATE")
        # Another process may have finished the migration while we waited for the lock.
        tables = self._tables(conn)
        for table, time_column in LEGACY_EVENT_TABLES.items():
            if table not in tables:
                continue
            columns = {row["name"] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}
            if not {"repo", "path", time_column} <= columns:
                logger.warning("Leaving table %s in place: unexpected columns %s", table, sorted(columns))
                continue

            rows = []
            unreadable = []
            for row in conn.execute(f"SELECT repo, path, {time_column} AS at FROM {table}").fetchall():
                try:
                    at = format_timestamp(parse_timestamp(str(row["at"])))
                except ValueError:
                    unreadable.append((table, row["repo"], row["path"], row["at"]))
                    continue
                rows.append((row["repo"], row["path"], at))

            conn.executemany(
                "INSERT OR IGNORE INTO access_log(repo, path, at) VALUES (?, ?, ?)",
                rows,
            )
            if unreadable:
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {UNREADABLE_TABLE} (
                        source TEXT NOT NULL,
                        repo TEXT,
                        path TEXT,
                        at
                    )
                    """
                )
                conn.executemany(
                    f"INSERT INTO {UNREADABLE_TABLE}(source, repo, path, at) VALUES (?, ?, ?, ?)",
                    unreadable,
                )
                logger.warning(
                    "Kept %d events with unreadable timestamps from %s in %s",
                    len(unreadable),
                    table,
                    UNREADABLE_TABLE,
                )
            conn.execute(f"DROP TABLE IF EXISTS {table}")
            logger.info("Migrated %d events from legacy table %s", len(rows), table)

    def record(
        self,
        repository: str | Path,
        path: str | Path,
        timestamp: datetime | str | None = None,
    ) -> bool:
        """Insert one access event; returns False if the exact triple already existed."""
        at = coerce_timestamp(timestamp)
        try:
            with closing(self._connect()) as conn, conn:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO access_log(repo, path, at) VALUES (?, ?, ?)",
                    (str(repository), str(path), at),
                )
                inserted = cursor.rowcount == 1
        except (sqlite3.Error, UnicodeEncodeError) as exc:
            raise StorageWriteError(f"Failed to record {str(path)!r}: {exc}") from exc
        logger.debug("Recorded %s at %s in %s (new=%s)", path, at, repository, inserted)
        return inserted

    def forget(self, repository: str | Path, path: str | Path) -> int:
        """Delete every event for the pair; a missing pair is not an error."""
        try:
            with closing(self._connect()) as conn, conn:
                cursor = conn.execute(
                    "DELETE FROM access_log WHERE repo = ? AND path = ?",
                    (str(repository), str(path)),
                )
                deleted = cursor.rowcount
        except UnicodeEncodeError:
            # Only UTF-8 text is ever stored, so nothing can match.
            logger.debug("Nothing to forget for non-UTF-8 path %r", str(path))
            return 0
        except sqlite3.Error as exc:
            raise StorageWriteError(f"Failed to forget {str(path)!r}: {exc}") from exc
        logger.debug("Forgot %s in %s (%d events)", path, repository, deleted)
        return deleted

    def execute_read(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            with closing(self._connect()) as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read store at {self.db_path}: {exc}") from exc

    def events(self, repository: str | Path) -> list[AccessEvent]:
        rows = self.execute_read(
            "SELECT path, at FROM access_log WHERE repo = ? ORDER BY at, path",
            (str(repository),),
        )
        return [AccessEvent(path=row["path"], at=row["at"]) for row in rows]
