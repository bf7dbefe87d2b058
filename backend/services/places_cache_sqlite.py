"""
SQLite-backed cache for provider place details, keyed by provider + place id.
"""
from __future__ import annotations

import json
import logging
import os
import sqlite3
import time
from typing import Callable, Optional

from domain.models import PlaceDetails

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 24 * 3600


class PlacesCache:
    def __init__(
        self,
        db_path: str,
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.db_path = db_path
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        if os.path.dirname(self.db_path):
            os.makedirs(os.path.dirname(self.db_path), exist_ok=True)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._init_schema()

    def _init_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS place_details_cache (
                provider TEXT NOT NULL,
                place_id TEXT NOT NULL,
                response_json TEXT NOT NULL,
                created_at INTEGER NOT NULL,
                ttl_seconds INTEGER NOT NULL,
                PRIMARY KEY (provider, place_id)
            )
            """
        )
        self._conn.commit()

    def get_details(self, provider: str, place_id: str) -> Optional[PlaceDetails]:
        """Return cached details if a non-expired entry exists for the key."""
        try:
            row = self._conn.execute(
                """
                SELECT response_json, created_at, ttl_seconds FROM place_details_cache
                WHERE provider=? AND place_id=?
                """,
                (provider, place_id),
            ).fetchone()
        except sqlite3.Error as exc:
            logger.warning("Places cache read failed for %s/%s: %s", provider, place_id, exc)
            return None
        if not row:
            return None
        response_json, created_at, ttl_seconds = row
        if ttl_seconds > 0 and (self._clock() - created_at) > ttl_seconds:
            return None
        try:
            return PlaceDetails.from_api(json.loads(response_json))
        except (ValueError, TypeError) as exc:
            logger.warning("Discarding unreadable cache entry for %s/%s: %s", provider, place_id, exc)
            return None

    def put_details(
        self,
        provider: str,
        details: PlaceDetails,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        try:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO place_details_cache
                (provider, place_id, response_json, created_at, ttl_seconds)
                VALUES (?, ?, ?, ?, ?)
                """,
                (provider, details.place_id, json.dumps(details.to_api()), int(self._clock()), ttl),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            logger.warning("Places cache write failed for %s/%s: %s", provider, details.place_id, exc)

    def close(self) -> None:
        self._conn.close()
