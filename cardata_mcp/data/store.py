"""CatalogStore protocol and SQLite implementation for vehicle reference data."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import (
    Any,
    Protocol,
    runtime_checkable,
)

logger = logging.getLogger(__name__)

MAKE_COLUMNS = "id, name"
MODEL_COLUMNS = "id, name, make_id, year_start, year_end"
TRIM_COLUMNS = "id, name, year, model_id, specs"

INSERT_MODEL_SQL = (
    "INSERT INTO models (make_id, name, year_start, year_end, created_at) "
    "VALUES (?, ?, ?, ?, ?) ON CONFLICT DO NOTHING"
)
INSERT_TRIM_SQL = (
    "INSERT INTO trims (model_id, name, year, specs, created_at) "
    "VALUES (?, ?, ?, ?, ?) ON CONFLICT DO NOTHING"
)


# ── Protocol ────────────────────────────────────────────────────────


@runtime_checkable
class CatalogStore(Protocol):
    """Minimal interface for catalog and VIN-decode persistence."""

    def list_makes(self) -> list[dict[str, Any]]: ...
    def find_make(self, name: str) -> dict[str, Any] | None: ...
    def get_or_create_make(self, name: str) -> dict[str, Any]: ...
    def insert_makes(self, names: Iterable[str]) -> int: ...
    def count_makes(self) -> int: ...
    def list_models(self, make_id: int) -> list[dict[str, Any]]: ...
    def find_model(self, make_id: int, name: str) -> dict[str, Any] | None: ...
    def get_or_create_model(
        self,
        make_id: int,
        name: str,
        *,
        year_start: int | None = None,
        year_end: int | None = None,
    ) -> dict[str, Any]: ...
    def insert_models(self, make_id: int, models: Iterable[dict[str, Any]]) -> int: ...
    def list_trims(self, model_id: int, *, year: int | None = None) -> list[dict[str, Any]]: ...
    def insert_trims(self, model_id: int, trims: Iterable[dict[str, Any]]) -> int: ...
    def get_vin_decode(self, vin: str) -> dict[str, Any] | None: ...
    def save_vin_decode(
        self, vin: str, payload: Any, *, created_at: datetime | None = None
    ) -> None: ...
    def get_vincario_decode(self, vin: str) -> dict[str, Any] | None: ...
    def save_vincario_decode(
        self, vin: str, payload: Any, *, created_at: datetime | None = None
    ) -> None: ...


class SqliteCatalogStore:
    """SQLite-backed catalog store with WAL mode and NOCASE unique indexes.

    Uniqueness is enforced by the indexes, never by a read-then-write check:
    population inserts first and treats a conflict as "already exists".
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._lock:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._create_schema()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ── Schema ─────────────────────────────────────────────────────

    def _create_schema(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS makes (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                name        TEXT NOT NULL COLLATE NOCASE,
                created_at  TEXT NOT NULL
            );
            CREATE UNIQUE INDEX IF NOT EXISTS uq_makes_name
                ON makes(name);

            CREATE TABLE IF NOT EXISTS models (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                make_id     INTEGER NOT NULL REFERENCES makes(id),
                name        TEXT NOT NULL COLLATE NOCASE,
                year_start  INTEGER,
                year_end    INTEGER,
                created_at  TEXT NOT NULL
            );
            CREATE UNIQUE INDEX IF NOT EXISTS uq_models_make_name
                ON models(make_id, name);

            CREATE TABLE IF NOT EXISTS trims (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                model_id    INTEGER NOT NULL REFERENCES models(id),
                name        TEXT NOT NULL COLLATE NOCASE,
                year        INTEGER NOT NULL DEFAULT 0,
                specs       TEXT NOT NULL DEFAULT '{}',
                created_at  TEXT NOT NULL
            );
            CREATE UNIQUE INDEX IF NOT EXISTS uq_trims_model_year_name
                ON trims(model_id, year, name);

            CREATE TABLE IF NOT EXISTS vin_decodes (
                vin         TEXT PRIMARY KEY,
                payload     TEXT NOT NULL,
                created_at  TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS vin_decodes_vincario (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                vin         TEXT NOT NULL UNIQUE CHECK (length(vin) = 17),
                payload     TEXT NOT NULL,
                created_at  TEXT NOT NULL
            );
        """)

    # ── Helpers ────────────────────────────────────────────────────

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _timestamp(created_at: datetime | None) -> str:
        if created_at is None:
            return datetime.now(timezone.utc).isoformat()
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return created_at.isoformat()

    @staticmethod
    def _loads(raw: str | None, default: Any) -> Any:
        if not raw:
            return default
        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return default

    @classmethod
    def _trim_to_dict(cls, row: sqlite3.Row) -> dict[str, Any]:
        d = dict(row)
        d["specs"] = cls._loads(d["specs"], {})
        return d

    @classmethod
    def _decode_to_dict(cls, row: sqlite3.Row) -> dict[str, Any]:
        d = dict(row)
        d["payload"] = cls._loads(d["payload"], {})
        return d

    def _insert_ignoring_conflict(self, sql: str, params: tuple[Any, ...], what: str) -> None:
        try:
            with self._conn:
                self._conn.execute(sql, params)
        except sqlite3.IntegrityError:
            logger.debug("%s already exists, re-reading", what)

    # ── Makes ──────────────────────────────────────────────────────

    def list_makes(self) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {MAKE_COLUMNS} FROM makes ORDER BY name"
            ).fetchall()
        return [dict(r) for r in rows]

    def find_make(self, name: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {MAKE_COLUMNS} FROM makes WHERE name = ?",
                (name.strip(),),
            ).fetchone()
        return dict(row) if row else None

    def get_or_create_make(self, name: str) -> dict[str, Any]:
        name = name.strip()
        with self._lock:
            self._insert_ignoring_conflict(
                "INSERT INTO makes (name, created_at) VALUES (?, ?)",
                (name, self._now()),
                f"make {name!r}",
            )
            make = self.find_make(name)
        if make is None:  # pragma: no cover
            raise RuntimeError(f"make {name!r} missing after insert")
        return make

    def insert_makes(self, names: Iterable[str]) -> int:
        """Insert makes that are not present yet. Returns the number inserted."""
        now = self._now()
        rows = [(n.strip(), now) for n in names if n and n.strip()]
        if not rows:
            return 0
        with self._lock:
            before = self._conn.total_changes
            with self._conn:
                self._conn.executemany(
                    "INSERT INTO makes (name, created_at) VALUES (?, ?) "
                    "ON CONFLICT DO NOTHING",
                    rows,
                )
            return self._conn.total_changes - before

    def count_makes(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) FROM makes").fetchone()
        return row[0]

    # ── Models ─────────────────────────────────────────────────────

    def list_models(self, make_id: int) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {MODEL_COLUMNS} FROM models WHERE make_id = ? ORDER BY name",
                (make_id,),
            ).fetchall()
        return [dict(r) for r in rows]

    def find_model(self, make_id: int, name: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {MODEL_COLUMNS} FROM models WHERE make_id = ? AND name = ?",
                (make_id, name.strip()),
            ).fetchone()
        return dict(row) if row else None

    def get_or_create_model(
        self,
        make_id: int,
        name: str,
        *,
        year_start: int | None = None,
        year_end: int | None = None,
    ) -> dict[str, Any]:
        name = name.strip()
        with self._lock:
            self._insert_ignoring_conflict(
                "INSERT INTO models (make_id, name, year_start, year_end, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (make_id, name, year_start, year_end, self._now()),
                f"model {name!r}",
            )
            model = self.find_model(make_id, name)
        if model is None:  # pragma: no cover
            raise RuntimeError(f"model {name!r} missing after insert")
        return model

    def insert_models(self, make_id: int, models: Iterable[dict[str, Any]]) -> int:
        """Insert models under *make_id* that are not present yet."""
        now = self._now()
        rows = [
            (make_id, m["name"], m.get("year_start"), m.get("year_end"), now)
            for m in models
            if m.get("name")
        ]
        if not rows:
            return 0
        with self._lock:
            before = self._conn.total_changes
            with self._conn:
                self._conn.executemany(INSERT_MODEL_SQL, rows)
            return self._conn.total_changes - before

    # ── Trims ──────────────────────────────────────────────────────

    def list_trims(self, model_id: int, *, year: int | None = None) -> list[dict[str, Any]]:
        sql = f"SELECT {TRIM_COLUMNS} FROM trims WHERE model_id = ?"
        params: list[Any] = [model_id]
        if year is not None:
            sql += " AND year = ?"
            params.append(year)
        sql += " ORDER BY year, name"
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [self._trim_to_dict(r) for r in rows]

    def insert_trims(self, model_id: int, trims: Iterable[dict[str, Any]]) -> int:
        """Insert trims under *model_id* that are not present yet."""
        now = self._now()
        rows = [
            (model_id, t["name"], int(t.get("year") or 0), json.dumps(t.get("specs") or {}), now)
            for t in trims
            if t.get("name")
        ]
        if not rows:
            return 0
        with self._lock:
            before = self._conn.total_changes
            with self._conn:
                self._conn.executemany(INSERT_TRIM_SQL, rows)
            return self._conn.total_changes - before

    # ── VIN decodes ────────────────────────────────────────────────

    def get_vin_decode(self, vin: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT vin, payload, created_at FROM vin_decodes WHERE vin = ?",
                (vin,),
            ).fetchone()
        return self._decode_to_dict(row) if row else None

    def save_vin_decode(
        self, vin: str, payload: Any, *, created_at: datetime | None = None
    ) -> None:
        """Insert or refresh the decode row for *vin*."""
        with self._lock:
            with self._conn:
                self._conn.execute(
                    """INSERT INTO vin_decodes (vin, payload, created_at)
                       VALUES (?, ?, ?)
                       ON CONFLICT(vin) DO UPDATE SET
                           payload = excluded.payload,
                           created_at = excluded.created_at""",
                    (vin, json.dumps(payload), self._timestamp(created_at)),
                )

    def get_vincario_decode(self, vin: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT id, vin, payload, created_at FROM vin_decodes_vincario "
                "WHERE vin = ?",
                (vin,),
            ).fetchone()
        return self._decode_to_dict(row) if row else None

    def save_vincario_decode(
        self, vin: str, payload: Any, *, created_at: datetime | None = None
    ) -> None:
        with self._lock:
            with self._conn:
                self._conn.execute(
                    """INSERT INTO vin_decodes_vincario (vin, payload, created_at)
                       VALUES (?, ?, ?)
                       ON CONFLICT(vin) DO UPDATE SET
                           payload = excluded.payload,
                           created_at = excluded.created_at""",
                    (vin, json.dumps(payload), self._timestamp(created_at)),
                )
