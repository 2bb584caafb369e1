"""
Local SQLite backend.

Stands in for the hosted Postgres backend when running offline or in
development. Mirrors the pieces of the hosted behaviour that the app relies
on: row scoping by rider, foreign keys from rides to bikes, UUID ids, server
timestamps, and the two ride RPCs.
"""

import json
import logging
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import Any, Iterable

from ..core.errors import BackendError, NotAuthenticatedError
from ..core.models import isoformat, utcnow
from .base import USER_SCOPED_TABLES, Filters, Ordering, check_table

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS bikes (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    make TEXT NOT NULL,
    model TEXT NOT NULL,
    year INTEGER,
    current_odo INTEGER NOT NULL DEFAULT 0,
    nick_name TEXT,
    image_url TEXT,
    specs_engine TEXT,
    specs_power TEXT,
    avg_mileage REAL,
    last_fuel_price REAL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS rides (
    id TEXT PRIMARY KEY,
    bike_id TEXT NOT NULL REFERENCES bikes(id),
    user_id TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT,
    distance_km REAL NOT NULL DEFAULT 0,
    max_lean_left REAL NOT NULL DEFAULT 0,
    max_lean_right REAL NOT NULL DEFAULT 0,
    route_path TEXT,
    ride_name TEXT,
    notes TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS fuel_logs (
    id TEXT PRIMARY KEY,
    bike_id TEXT NOT NULL REFERENCES bikes(id) ON DELETE CASCADE,
    odometer INTEGER NOT NULL,
    litres REAL NOT NULL CHECK (litres > 0),
    price_per_litre REAL NOT NULL CHECK (price_per_litre >= 0),
    total_cost REAL NOT NULL CHECK (total_cost >= 0),
    is_full_tank INTEGER NOT NULL DEFAULT 0,
    date TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS maintenance_logs (
    id TEXT PRIMARY KEY,
    bike_id TEXT NOT NULL REFERENCES bikes(id) ON DELETE CASCADE,
    user_id TEXT NOT NULL,
    service_type TEXT NOT NULL,
    odo_at_service INTEGER NOT NULL,
    date_performed TEXT NOT NULL,
    notes TEXT,
    receipt_url TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS maintenance_schedules (
    id TEXT PRIMARY KEY,
    bike_id TEXT NOT NULL REFERENCES bikes(id) ON DELETE CASCADE,
    part_name TEXT NOT NULL,
    interval_km INTEGER NOT NULL DEFAULT 0,
    interval_months INTEGER NOT NULL DEFAULT 0,
    last_service_date TEXT,
    last_service_odo INTEGER,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS service_history (
    id TEXT PRIMARY KEY,
    bike_id TEXT NOT NULL REFERENCES bikes(id) ON DELETE CASCADE,
    schedule_id TEXT REFERENCES maintenance_schedules(id) ON DELETE SET NULL,
    service_date TEXT NOT NULL,
    service_odo INTEGER NOT NULL,
    cost REAL,
    notes TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS notifications (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    bike_id TEXT REFERENCES bikes(id) ON DELETE CASCADE,
    schedule_id TEXT,
    type TEXT NOT NULL DEFAULT 'info',
    title TEXT,
    message TEXT NOT NULL,
    source TEXT,
    read_at TEXT,
    dismissed_at TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_rides_bike ON rides(bike_id);
CREATE INDEX IF NOT EXISTS idx_fuel_logs_bike ON fuel_logs(bike_id);
CREATE INDEX IF NOT EXISTS idx_schedules_bike ON maintenance_schedules(bike_id);
"""

_BOOLEAN_COLUMNS = {"is_full_tank", "is_active"}
_JSON_COLUMNS = {"route_path"}

# Postgres SQLSTATE codes, so callers can treat both backends alike.
FOREIGN_KEY_VIOLATION = "23503"
CHECK_VIOLATION = "23514"
RLS_VIOLATION = "42501"
FUNCTION_NOT_FOUND = "PGRST202"


class SQLiteBackend:
    """
    Backend implementation on a local SQLite file.

    Rows are scoped to ``user_id`` the way row-level security scopes them on
    the hosted backend: reads and writes only ever see the current rider's
    bikes and the rows hanging off those bikes.
    """

    def __init__(self, path: str | Path = ":memory:", user_id: str | None = None):
        """
        Initialize the backend.

        Args:
            path: Database file, or ":memory:"
            user_id: Rider the session is signed in as (None = signed out)
        """
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._user_id = user_id
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(SCHEMA)
        self._conn.commit()

        self._columns = {
            table: {row["name"] for row in self._conn.execute(f"PRAGMA table_info({table})")}
            for table in (
                "bikes",
                "rides",
                "fuel_logs",
                "maintenance_logs",
                "maintenance_schedules",
                "service_history",
                "notifications",
            )
        }
        logger.info(f"SQLite backend opened: {self.path}")

    # Session

    def get_user_id(self) -> str | None:
        return self._user_id

    def sign_in(self, user_id: str) -> None:
        self._user_id = user_id
        logger.info(f"Signed in as {user_id}")

    def sign_out(self) -> None:
        self._user_id = None

    def _require_user(self) -> str:
        if not self._user_id:
            raise NotAuthenticatedError()
        return self._user_id

    # Query helpers

    def _check_columns(self, table: str, columns: Iterable[str]) -> None:
        unknown = set(columns) - self._columns[table]
        if unknown:
            raise BackendError(
                f"Could not find the '{sorted(unknown)[0]}' column of '{table}'",
                code="PGRST204",
            )

    def _where(self, table: str, filters: Filters | None) -> tuple[str, list[Any]]:
        """Build a WHERE clause: caller filters plus rider scoping."""
        user_id = self._require_user()
        clauses: list[str] = []
        params: list[Any] = []

        if table in USER_SCOPED_TABLES:
            clauses.append("user_id = ?")
            params.append(user_id)
        else:
            clauses.append("bike_id IN (SELECT id FROM bikes WHERE user_id = ?)")
            params.append(user_id)

        filters = filters or {}
        self._check_columns(table, filters.keys())
        for column, value in filters.items():
            if isinstance(value, (list, tuple, set)):
                values = list(value)
                if not values:
                    clauses.append("0")
                    continue
                clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
                params.extend(self._encode_value(column, v) for v in values)
            elif value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = ?")
                params.append(self._encode_value(column, value))

        return " WHERE " + " AND ".join(clauses), params

    def _encode_value(self, column: str, value: Any) -> Any:
        if column in _JSON_COLUMNS and value is not None and not isinstance(value, str):
            return json.dumps(value)
        if column in _BOOLEAN_COLUMNS and value is not None:
            return int(bool(value))
        return value

    def _decode_row(self, row: sqlite3.Row) -> dict[str, Any]:
        data = dict(row)
        for column in _BOOLEAN_COLUMNS & data.keys():
            if data[column] is not None:
                data[column] = bool(data[column])
        for column in _JSON_COLUMNS & data.keys():
            if isinstance(data[column], str):
                data[column] = json.loads(data[column])
        return data

    def _execute(self, sql: str, params: list[Any] | tuple = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.IntegrityError as e:
            self._conn.rollback()
            message = str(e)
            if "FOREIGN KEY" in message:
                raise BackendError(
                    "update or delete violates foreign key constraint",
                    code=FOREIGN_KEY_VIOLATION,
                    details=message,
                ) from e
            if "CHECK" in message:
                raise BackendError(
                    "new row violates check constraint", code=CHECK_VIOLATION, details=message
                ) from e
            raise BackendError(message, code="23000") from e
        except sqlite3.Error as e:
            self._conn.rollback()
            raise BackendError(str(e)) from e

    # Backend protocol

    def select(
        self,
        table: str,
        filters: Filters | None = None,
        order: Ordering | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        check_table(table)
        where, params = self._where(table, filters)
        sql = f"SELECT * FROM {table}{where}"

        if order:
            self._check_columns(table, (column for column, _ in order))
            parts = [f"{column} {'DESC' if desc else 'ASC'}" for column, desc in order]
            sql += " ORDER BY " + ", ".join(parts)
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([int(limit), int(offset)])

        with self._lock:
            rows = self._execute(sql, params).fetchall()
        return [self._decode_row(row) for row in rows]

    def insert(self, table: str, rows: dict[str, Any] | Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        check_table(table)
        user_id = self._require_user()
        batch = [rows] if isinstance(rows, dict) else list(rows)
        inserted_ids: list[str] = []

        with self._lock:
            for row in batch:
                data = dict(row)
                data.setdefault("id", str(uuid.uuid4()))
                data.setdefault("created_at", isoformat(utcnow()))
                if table in USER_SCOPED_TABLES:
                    if data.setdefault("user_id", user_id) != user_id:
                        self._rls_violation(table)
                if "bike_id" in self._columns[table] and data.get("bike_id") is not None:
                    if not self._owns_bike(data["bike_id"], user_id):
                        self._rls_violation(table)

                self._check_columns(table, data.keys())
                columns = list(data.keys())
                sql = (
                    f"INSERT INTO {table} ({', '.join(columns)}) "
                    f"VALUES ({', '.join('?' for _ in columns)})"
                )
                self._execute(sql, [self._encode_value(c, data[c]) for c in columns])
                inserted_ids.append(data["id"])
            self._conn.commit()

        return self.select(table, {"id": inserted_ids})

    def update(self, table: str, values: dict[str, Any], filters: Filters) -> list[dict[str, Any]]:
        check_table(table)
        if not values:
            return self.select(table, filters)
        self._check_columns(table, values.keys())
        if "user_id" in values and values["user_id"] != self._require_user():
            self._rls_violation(table)

        with self._lock:
            matched = [row["id"] for row in self.select(table, filters)]
            if not matched:
                return []
            assignments = ", ".join(f"{column} = ?" for column in values)
            params = [self._encode_value(c, v) for c, v in values.items()]
            params.extend(matched)
            sql = f"UPDATE {table} SET {assignments} WHERE id IN ({', '.join('?' for _ in matched)})"
            self._execute(sql, params)
            self._conn.commit()

        return self.select(table, {"id": matched})

    def delete(self, table: str, filters: Filters) -> list[dict[str, Any]]:
        check_table(table)
        with self._lock:
            doomed = self.select(table, filters)
            if not doomed:
                return []
            ids = [row["id"] for row in doomed]
            self._execute(
                f"DELETE FROM {table} WHERE id IN ({', '.join('?' for _ in ids)})", ids
            )
            self._conn.commit()
        return doomed

    def rpc(self, name: str, params: dict[str, Any] | None = None) -> Any:
        params = params or {}
        if name == "get_rides_with_geojson":
            return self._rpc_get_rides_with_geojson(params)
        if name == "insert_ride_with_geometry":
            return self._rpc_insert_ride_with_geometry(params)
        raise BackendError(
            f"Could not find the function public.{name} in the schema cache",
            code=FUNCTION_NOT_FOUND,
        )

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.info("SQLite backend closed")

    # Internals

    def _owns_bike(self, bike_id: str, user_id: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM bikes WHERE id = ? AND user_id = ?", (bike_id, user_id)
        ).fetchone()
        return row is not None

    def _rls_violation(self, table: str) -> None:
        raise BackendError(
            f'new row violates row-level security policy for table "{table}"',
            code=RLS_VIOLATION,
        )

    def _rpc_get_rides_with_geojson(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        if params.get("p_user_id") not in (None, self._require_user()):
            return []
        filters: Filters = {}
        if params.get("p_bike_id"):
            filters["bike_id"] = params["p_bike_id"]
        return self.select(
            "rides",
            filters,
            order=[("start_time", True)],
            limit=params.get("p_limit", 50),
            offset=params.get("p_offset", 0),
        )

    def _rpc_insert_ride_with_geometry(self, params: dict[str, Any]) -> dict[str, Any]:
        row = {
            "bike_id": params["p_bike_id"],
            "user_id": params.get("p_user_id") or self._require_user(),
            "start_time": params["p_start_time"],
            "end_time": params.get("p_end_time"),
            "distance_km": params.get("p_distance_km", 0),
            "max_lean_left": params.get("p_max_lean_left", 0),
            "max_lean_right": params.get("p_max_lean_right", 0),
            "route_path": params.get("p_route_path_geojson"),
        }
        return self.insert("rides", row)[0]
