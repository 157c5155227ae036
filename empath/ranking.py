"""Recency, frequency and frecency orderings over the event log."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path

from .constants import HALF_LIFE_DAYS, SECONDS_PER_DAY
from .store import EventStore
from .utils import parse_timestamp, utc_now


def decay_weight(age_days: float, half_life_days: float = HALF_LIFE_DAYS) -> float:
    """Weight of one access that is ``age_days`` old; halves every ``half_life_days``."""
    return 2.0 ** (-age_days / half_life_days)


class RankingEngine:
    """Read-only views over one repository's events.

    Every ordering lists each path once. Ties fall back to the path string so
    repeated queries over the same data agree.
    """

    def __init__(self, store: EventStore, half_life_days: float = HALF_LIFE_DAYS):
        if half_life_days <= 0:
            raise ValueError("half_life_days must be positive")
        self.store = store
        self.half_life_days = half_life_days

    def recent(self, repository: str | Path) -> list[str]:
        rows = self.store.execute_read(
            """
            SELECT path
            FROM access_log
            WHERE repo = ?
            GROUP BY path
            ORDER BY MAX(at) DESC, path ASC
            """,
            (str(repository),),
        )
        return [row["path"] for row in rows]

    def frequent(self, repository: str | Path) -> list[str]:
        rows = self.store.execute_read(
            """
            SELECT path
            FROM access_log
            WHERE repo = ?
            GROUP BY path
            ORDER BY COUNT(*) DESC, path ASC
            """,
            (str(repository),),
        )
        return [row["path"] for row in rows]

    def frecency_scores(self, repository: str | Path, now: datetime | None = None) -> dict[str, float]:
        # One clock reading for the whole query.
        now = now or utc_now()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        scores: dict[str, float] = defaultdict(float)
        for event in self.store.events(repository):
            age_days = (now - parse_timestamp(event.at)).total_seconds() / SECONDS_PER_DAY
            scores[event.path] += decay_weight(age_days, self.half_life_days)
        return dict(scores)

    def frecent(self, repository: str | Path, now: datetime | None = None) -> list[str]:
        scores = self.frecency_scores(repository, now)
        return sorted(scores, key=lambda path: (-scores[path], path))
