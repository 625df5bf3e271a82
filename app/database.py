"""Read-only access to a playback-statistics SQLite file of unknown schema."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from .models import RecordBatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PlaybackQuery:
    """One candidate query; rows are mapped by their column labels."""

    label: str
    sql: str


# Tried in order until one returns rows. ``:offset`` is an SQLite datetime
# modifier such as ``-7 days``.
PLAYBACK_QUERIES: tuple[PlaybackQuery, ...] = (
    PlaybackQuery(
        "PlaybackActivity.DateCreated+item",
        "SELECT DateCreated AS timestamp, ItemName AS title, ItemType AS media_type "
        "FROM PlaybackActivity WHERE DateCreated >= datetime('now', :offset)",
    ),
    PlaybackQuery(
        "PlaybackActivity.DateCreated",
        "SELECT DateCreated AS timestamp FROM PlaybackActivity "
        "WHERE DateCreated >= datetime('now', :offset)",
    ),
    PlaybackQuery(
        "PlaybackActivity.DatePlayed",
        "SELECT DatePlayed AS timestamp FROM PlaybackActivity "
        "WHERE DatePlayed >= datetime('now', :offset)",
    ),
    PlaybackQuery(
        "PlaybackReporting_PlaybackActivity.DateCreated",
        "SELECT DateCreated AS timestamp FROM PlaybackReporting_PlaybackActivity "
        "WHERE DateCreated >= datetime('now', :offset)",
    ),
    PlaybackQuery(
        "PlaybackReporting_PlaybackActivity.DatePlayed",
        "SELECT DatePlayed AS timestamp FROM PlaybackReporting_PlaybackActivity "
        "WHERE DatePlayed >= datetime('now', :offset)",
    ),
)

NO_EVENTS_WARNING = "No playback events found in playback database"


class PlaybackStore:
    """Runs a fallback chain of queries against a foreign playback database.

    The file is opened read-only and without pooling, so each call opens and
    closes its own connection.
    """

    def __init__(
        self,
        database_path: str | None,
        queries: tuple[PlaybackQuery, ...] = PLAYBACK_QUERIES,
    ):
        self._path = database_path
        self._queries = queries

    @property
    def configured(self) -> bool:
        return bool(self._path)

    @property
    def path(self) -> str | None:
        return self._path

    def _create_engine(self) -> AsyncEngine:
        url = URL.create(
            "sqlite+aiosqlite",
            database=f"file:{self._path}",
            query={"mode": "ro", "uri": "true"},
        )
        return create_async_engine(url, poolclass=NullPool)

    async def fetch_events(self, days_back: int) -> RecordBatch:
        """Return playback rows from the last ``days_back`` days."""

        if not self._path:
            return RecordBatch(warning="PLAYBACK_DB_PATH not configured", fetched=False)
        if not Path(self._path).is_file():
            return RecordBatch(
                warning=f"Database error: playback database {self._path} not found",
                fetched=False,
            )

        params = {"offset": f"-{int(days_back)} days"}
        engine = self._create_engine()
        try:
            async with engine.connect() as connection:
                for query in self._queries:
                    try:
                        result = await connection.execute(text(query.sql), params)
                        rows = [dict(row._mapping) for row in result]
                    except SQLAlchemyError as exc:
                        logger.debug("Playback query %s failed: %s", query.label, exc)
                        await connection.rollback()
                        continue
                    if rows:
                        logger.info(
                            "Playback query %s returned %d events", query.label, len(rows)
                        )
                        return RecordBatch(items=rows, local_times=True)

                tables = await connection.execute(
                    text("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
                )
                names = [row[0] for row in tables]
        except SQLAlchemyError as exc:
            logger.warning("Unable to read playback database %s: %s", self._path, exc)
            reason = getattr(exc, "orig", None) or exc
            return RecordBatch(warning=f"Database error: {reason}", fetched=False)
        finally:
            await engine.dispose()

        logger.info("No playback rows found; available tables: %s", ", ".join(names))
        listed = ", ".join(names) or "none"
        return RecordBatch(items=[], warning=f"{NO_EVENTS_WARNING} (tables: {listed})")
