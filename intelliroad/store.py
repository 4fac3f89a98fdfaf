"""
ObservationStore: append-only SQLite persistence for verified observations.

Rows are written by a single INSERT inside one transaction, so a reader never
sees a partial record. No update or delete path exists.
"""

import json
import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from intelliroad import config
from intelliroad.canonical import canonical_features
from intelliroad.models import Feature, Observation, StoredObservation

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS observations (
  id TEXT PRIMARY KEY,
  created_at TEXT NOT NULL,
  lat REAL NOT NULL,
  lng REAL NOT NULL,
  timestamp TEXT NOT NULL,
  features_json TEXT NOT NULL,
  hash_hex TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS observations_created_at_idx ON observations(created_at);
CREATE INDEX IF NOT EXISTS observations_hash_idx ON observations(hash_hex);
"""

_COLUMNS = "id, created_at, lat, lng, timestamp, features_json, hash_hex"


def utc_now_iso() -> str:
    """Server clock as ISO-8601 UTC with milliseconds, e.g. 2024-01-01T00:00:00.000Z."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def clamp_limit(limit: Optional[int], maximum: int = None, default: int = None) -> int:
    maximum = config.MAX_LIST_LIMIT if maximum is None else maximum
    default = config.DEFAULT_LIST_LIMIT if default is None else default
    if limit is None:
        limit = default
    return max(1, min(int(limit), maximum))


def _row_to_stored(row: sqlite3.Row) -> StoredObservation:
    features = tuple(Feature.from_wire(f) for f in json.loads(row["features_json"]))
    return StoredObservation(
        id=row["id"],
        created_at=row["created_at"],
        observation=Observation(
            lat=row["lat"],
            lng=row["lng"],
            timestamp=row["timestamp"],
            features=features,
            digest=row["hash_hex"],
        ),
    )


class ObservationStore:
    """
    Append-mostly store keyed by a server-assigned id.

    Parameters
    ----------
    db_path : str
        SQLite file path, or ``":memory:"`` for an ephemeral store.
    max_limit : int
        Hard cap on ``list_recent`` result size.
    """

    def __init__(self, db_path: str = None, max_limit: int = None) -> None:
        self.db_path = db_path or config.DB_PATH
        self.max_limit = max_limit or config.MAX_LIST_LIMIT
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._con = sqlite3.connect(self.db_path, check_same_thread=False)
        self._con.row_factory = sqlite3.Row
        self._con.execute("PRAGMA journal_mode = WAL")
        self._con.executescript(SCHEMA)
        logger.info("[STORE] Opened %s", self.db_path)

    def append(self, observation: Observation) -> StoredObservation:
        """Persist a verified observation under a fresh id. Never touches existing rows."""
        if not observation.digest:
            raise ValueError("only observations with a verified digest can be stored")

        stored = StoredObservation(
            id=str(uuid.uuid4()),
            created_at=utc_now_iso(),
            observation=observation,
        )
        with self._lock, self._con:
            self._con.execute(
                f"INSERT INTO observations ({_COLUMNS}) "
                "VALUES (:id, :created_at, :lat, :lng, :timestamp, :features_json, :hash_hex)",
                {
                    "id": stored.id,
                    "created_at": stored.created_at,
                    "lat": observation.lat,
                    "lng": observation.lng,
                    "timestamp": observation.timestamp,
                    "features_json": canonical_features(observation.features),
                    "hash_hex": observation.digest,
                },
            )
        logger.info("[STORE] Saved observation %s (%s...)", stored.id, observation.digest[:10])
        return stored

    def list_recent(self, limit: Optional[int] = None) -> List[StoredObservation]:
        """Newest first, never more than ``max_limit`` rows."""
        n = clamp_limit(limit, maximum=self.max_limit)
        with self._lock:
            rows = self._con.execute(
                f"SELECT {_COLUMNS} FROM observations "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (n,),
            ).fetchall()
        return [_row_to_stored(r) for r in rows]

    def get(self, observation_id: str) -> Optional[StoredObservation]:
        with self._lock:
            row = self._con.execute(
                f"SELECT {_COLUMNS} FROM observations WHERE id = ?",
                (observation_id,),
            ).fetchone()
        return _row_to_stored(row) if row else None

    def find_by_digest(self, digest: str) -> List[StoredObservation]:
        """All records carrying ``digest``, oldest first. Identical submissions share a digest."""
        with self._lock:
            rows = self._con.execute(
                f"SELECT {_COLUMNS} FROM observations WHERE hash_hex = ? "
                "ORDER BY created_at ASC, rowid ASC",
                (digest.lower(),),
            ).fetchall()
        return [_row_to_stored(r) for r in rows]

    def count(self) -> int:
        with self._lock:
            return self._con.execute("SELECT COUNT(*) FROM observations").fetchone()[0]

    def close(self) -> None:
        self._con.close()
