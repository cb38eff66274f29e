"""SQLite cache for places search responses."""
from __future__ import annotations

import hashlib
import json
import sqlite3
import time
from typing import Any, Callable, Dict, Optional

from . import config

# Request fields that never change the response.
_NON_KEY_FIELDS = ("bypassCache",)


def make_request_cache_key(kind: str, url: str, body: Dict[str, Any]) -> str:
    keyed = {k: v for k, v in body.items() if k not in _NON_KEY_FIELDS}
    location = keyed.get("location")
    if isinstance(location, dict):
        # Nearby viewports share a cache entry.
        keyed["location"] = {
            "latitude": round(float(location["latitude"]), config.LOCATION_KEY_PRECISION),
            "longitude": round(float(location["longitude"]), config.LOCATION_KEY_PRECISION),
        }
    payload = json.dumps(keyed, sort_keys=True, separators=(",", ":"))
    raw = f"{kind}|{url}|{payload}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


class Cache:
    def __init__(
        self,
        db_path: str = ":memory:",
        ttl_seconds: float = config.CACHE_EXPIRATION_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db_path = db_path
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self._configure_conn()
        self._init_db()

    def _configure_conn(self) -> None:
        cur = self.conn.cursor()
        try:
            cur.execute("PRAGMA journal_mode=WAL")
            cur.fetchone()
        except sqlite3.DatabaseError:
            pass

    def _init_db(self) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS places_search_cache (
                key TEXT PRIMARY KEY,
                kind TEXT,
                response_json TEXT,
                created_at REAL
            )
            """
        )
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def get_search_cache(self, key: str) -> Optional[Dict[str, Any]]:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT response_json, created_at FROM places_search_cache WHERE key = ?", (key,)
        )
        row = cur.fetchone()
        if not row:
            return None
        if self.clock() - float(row["created_at"]) >= self.ttl_seconds:
            cur.execute("DELETE FROM places_search_cache WHERE key = ?", (key,))
            self.conn.commit()
            return None
        return json.loads(row["response_json"])

    def set_search_cache(self, key: str, kind: str, response: Dict[str, Any]) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            INSERT OR REPLACE INTO places_search_cache (key, kind, response_json, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (key, kind, json.dumps(response), self.clock()),
        )
        self.conn.commit()

    def clear(self) -> None:
        cur = self.conn.cursor()
        cur.execute("DELETE FROM places_search_cache")
        self.conn.commit()

    def count(self) -> int:
        cur = self.conn.cursor()
        cur.execute("SELECT COUNT(*) AS n FROM places_search_cache")
        return int(cur.fetchone()["n"])
