"""
Backend facade — table client, remote procedures and auth subsystem.

Views never write SQL themselves: they go through ``get_backend()`` and issue
table-style calls against the named tables::

    backend.table("chapters").select("*").order("order_index").execute()
    backend.table("lessons").delete().eq("id", lesson_id).execute()
    backend.rpc("promote_user_to_admin", {"user_email": email})

Every failure surfaces as :class:`BackendError` carrying a human-readable
message, so callers can flash it directly.
"""

from __future__ import annotations

import inspect
import logging
import sqlite3
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from flask import g

from database import get_db

logger = logging.getLogger(__name__)

# Tables reachable through the client; views are read-only.
WRITABLE_TABLES = {"chapters", "lessons", "exercises", "user_profiles"}
READONLY_TABLES = {"user_management"}


class BackendError(Exception):
    """A failed backend call. ``message`` is safe to show to the user."""

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.message = message
        self.code = code


@dataclass
class BackendResponse:
    data: Any
    count: int | None = None


def _now() -> str:
    return datetime.now().isoformat()


def _translate_integrity_error(exc: sqlite3.IntegrityError) -> BackendError:
    msg = str(exc)
    lowered = msg.lower()
    if "unique" in lowered:
        return BackendError(f"Duplicate value violates unique constraint ({msg})", "unique_violation")
    if "foreign key" in lowered:
        return BackendError("Referenced row does not exist", "foreign_key_violation")
    if "check constraint" in lowered:
        return BackendError(f"Value violates check constraint ({msg})", "check_violation")
    if "not null" in lowered:
        return BackendError(f"Missing required value ({msg})", "not_null_violation")
    return BackendError(msg, "integrity_error")


class QueryBuilder:
    """Chainable query against one table, run by :meth:`execute`."""

    def __init__(self, backend: Backend, table: str):
        if table not in WRITABLE_TABLES and table not in READONLY_TABLES:
            raise BackendError(f"Unknown table: {table}", "unknown_table")
        self._backend = backend
        self._table = table
        self._op = "select"
        self._columns: list[str] | None = None
        self._filters: list[tuple[str, Any]] = []
        self._order: list[tuple[str, bool]] = []
        self._limit: int | None = None
        self._payload: list[dict] = []
        self._on_conflict = "id"
        self._single = False
        self._maybe_single = False
        self._count = False

    # ── building ────────────────────────────────────────────

    def select(self, columns: str = "*", count: str | None = None) -> QueryBuilder:
        self._op = "select"
        if columns.strip() != "*":
            self._columns = [c.strip() for c in columns.split(",") if c.strip()]
        self._count = count == "exact"
        return self

    def eq(self, column: str, value: Any) -> QueryBuilder:
        self._filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False) -> QueryBuilder:
        self._order.append((column, desc))
        return self

    def limit(self, n: int) -> QueryBuilder:
        self._limit = n
        return self

    def single(self) -> QueryBuilder:
        self._single = True
        return self

    def maybe_single(self) -> QueryBuilder:
        self._maybe_single = True
        return self

    def insert(self, rows: dict | list[dict]) -> QueryBuilder:
        self._require_writable()
        self._op = "insert"
        self._payload = [dict(r) for r in (rows if isinstance(rows, list) else [rows])]
        return self

    def upsert(self, rows: dict | list[dict], on_conflict: str = "id") -> QueryBuilder:
        self._require_writable()
        self._op = "upsert"
        self._payload = [dict(r) for r in (rows if isinstance(rows, list) else [rows])]
        self._on_conflict = on_conflict
        return self

    def update(self, fields: dict) -> QueryBuilder:
        self._require_writable()
        self._op = "update"
        self._payload = [dict(fields)]
        return self

    def delete(self) -> QueryBuilder:
        self._require_writable()
        self._op = "delete"
        return self

    def _require_writable(self) -> None:
        if self._table not in WRITABLE_TABLES:
            raise BackendError(f"Table {self._table} is read-only", "read_only")

    # ── execution ───────────────────────────────────────────

    def execute(self) -> BackendResponse:
        columns = self._backend.columns(self._table)
        for col, _ in self._filters:
            self._check_column(col, columns)
        for col, _ in self._order:
            self._check_column(col, columns)
        for row in self._payload:
            for col in row:
                self._check_column(col, columns)

        try:
            if self._op == "select":
                return self._run_select(columns)
            if self._op == "insert":
                return self._run_insert(columns, upsert=False)
            if self._op == "upsert":
                self._check_column(self._on_conflict, columns)
                return self._run_insert(columns, upsert=True)
            if self._op == "update":
                return self._run_update(columns)
            return self._run_delete()
        except sqlite3.IntegrityError as e:
            self._backend.db.rollback()
            raise _translate_integrity_error(e) from e
        except sqlite3.OperationalError as e:
            self._backend.db.rollback()
            logger.error("Backend query on %s failed: %s", self._table, e)
            raise BackendError(f"Service unavailable: {e}", "unavailable") from e

    def _check_column(self, column: str, known: list[str]) -> None:
        if column not in known:
            raise BackendError(f"Unknown column {column} on {self._table}", "unknown_column")

    def _where(self) -> tuple[str, list]:
        if not self._filters:
            return "", []
        clause = " AND ".join(f"{col} = ?" for col, _ in self._filters)
        return f" WHERE {clause}", [v for _, v in self._filters]

    def _fetch(self, columns: list[str] | None = None) -> list[dict]:
        cols = ", ".join(columns) if columns else "*"
        where, params = self._where()
        sql = f"SELECT {cols} FROM {self._table}{where}"
        if self._order:
            sql += " ORDER BY " + ", ".join(
                f"{col} {'DESC' if desc else 'ASC'}" for col, desc in self._order
            )
        if self._limit is not None:
            sql += " LIMIT ?"
            params = [*params, self._limit]
        rows = self._backend.db.execute(sql, params).fetchall()
        return [dict(r) for r in rows]

    def _shape(self, rows: list[dict]) -> BackendResponse:
        count = len(rows) if self._count else None
        if self._single or self._maybe_single:
            if len(rows) > 1:
                raise BackendError("Multiple rows returned for a single-row query", "multiple_rows")
            if not rows:
                if self._single:
                    raise BackendError("Row not found", "not_found")
                return BackendResponse(data=None, count=count)
            return BackendResponse(data=rows[0], count=count)
        return BackendResponse(data=rows, count=count)

    def _run_select(self, columns: list[str]) -> BackendResponse:
        if self._columns:
            for col in self._columns:
                self._check_column(col, columns)
        return self._shape(self._fetch(self._columns))

    def _run_insert(self, columns: list[str], upsert: bool) -> BackendResponse:
        db = self._backend.db
        now = _now()
        ids = []
        for row in self._payload:
            if "id" in columns and not row.get("id"):
                row["id"] = str(uuid.uuid4())
            if "created_at" in columns and not row.get("created_at"):
                row["created_at"] = now
            if "updated_at" in columns:
                row["updated_at"] = now
            cols = list(row)
            placeholders = ", ".join("?" for _ in cols)
            sql = f"INSERT INTO {self._table} ({', '.join(cols)}) VALUES ({placeholders})"
            if upsert:
                updates = [c for c in cols if c not in (self._on_conflict, "id", "created_at")]
                if updates:
                    sql += f" ON CONFLICT({self._on_conflict}) DO UPDATE SET " + ", ".join(
                        f"{c} = excluded.{c}" for c in updates
                    )
                else:
                    sql += f" ON CONFLICT({self._on_conflict}) DO NOTHING"
            db.execute(sql, [row[c] for c in cols])
            ids.append((self._on_conflict, row[self._on_conflict]) if upsert else ("id", row["id"]))
        db.commit()

        inserted = []
        for key, value in ids:
            found = db.execute(f"SELECT * FROM {self._table} WHERE {key} = ?", (value,)).fetchone()
            if found:
                inserted.append(dict(found))
        return self._shape(inserted)

    def _run_update(self, columns: list[str]) -> BackendResponse:
        if not self._filters:
            raise BackendError("UPDATE requires a filter", "missing_filter")
        db = self._backend.db
        fields = dict(self._payload[0])
        fields.pop("id", None)
        if "updated_at" in columns:
            fields["updated_at"] = _now()
        targets = [r["id"] for r in self._fetch(["id"])]
        if targets and fields:
            assignments = ", ".join(f"{c} = ?" for c in fields)
            db.executemany(
                f"UPDATE {self._table} SET {assignments} WHERE id = ?",
                [[*fields.values(), target] for target in targets],
            )
            db.commit()
        updated = [
            dict(db.execute(f"SELECT * FROM {self._table} WHERE id = ?", (t,)).fetchone())
            for t in targets
        ]
        return self._shape(updated)

    def _run_delete(self) -> BackendResponse:
        if not self._filters:
            raise BackendError("DELETE requires a filter", "missing_filter")
        db = self._backend.db
        doomed = self._fetch()
        where, params = self._where()
        db.execute(f"DELETE FROM {self._table}{where}", params)
        db.commit()
        return self._shape(doomed)


# ── Remote procedures ─────────────────────────────────────────

RPC_REGISTRY: dict[str, Callable[..., Any]] = {}


def procedure(name: str) -> Callable:
    """Register a function as a remote procedure callable via Backend.rpc."""
    def decorator(fn: Callable) -> Callable:
        RPC_REGISTRY[name] = fn
        return fn
    return decorator


@procedure("promote_user_to_admin")
def promote_user_to_admin(backend: Backend, user_email: str) -> dict:
    """Give the account with ``user_email`` the admin role.

    Writes both the auth metadata role and the profile role so the two
    stay aligned. An existing profile only has its role changed; a missing
    one is created with the metadata names.
    """
    email = (user_email or "").strip().lower()
    user = backend.auth.admin.get_user_by_email(email)
    if user is None:
        raise BackendError(f"Utilisateur introuvable: {email}", "not_found")

    existing = backend.table("user_profiles").select("id").eq("user_id", user["id"]).maybe_single().execute()
    if existing.data:
        backend.table("user_profiles").update({"role": "admin"}).eq("user_id", user["id"]).execute()
    else:
        metadata = user["user_metadata"]
        backend.table("user_profiles").insert({
            "user_id": user["id"],
            "first_name": metadata.get("first_name", ""),
            "last_name": metadata.get("last_name", ""),
            "role": "admin",
        }).execute()
    # Announces USER_UPDATED, so listeners must see the profile already written.
    backend.auth.admin.update_user_by_id(user["id"], {"role": "admin"})
    logger.info("Promoted %s to admin", email)
    return {"user_id": user["id"], "role": "admin"}


class Backend:
    """Entry point bound to one DB connection (one request)."""

    def __init__(self, db: sqlite3.Connection, config: dict | None = None):
        from auth_service import AuthService

        self.db = db
        self.config = config or {}
        self.auth = AuthService(self)
        self._columns: dict[str, list[str]] = {}

    def columns(self, table: str) -> list[str]:
        if table not in self._columns:
            rows = self.db.execute(f"PRAGMA table_info({table})").fetchall()
            self._columns[table] = [r["name"] for r in rows]
        return self._columns[table]

    def table(self, name: str) -> QueryBuilder:
        return QueryBuilder(self, name)

    def rpc(self, name: str, params: dict | None = None) -> BackendResponse:
        fn = RPC_REGISTRY.get(name)
        if fn is None:
            raise BackendError(f"Unknown procedure: {name}", "unknown_procedure")
        params = params or {}
        try:
            inspect.signature(fn).bind(self, **params)
        except TypeError as e:
            raise BackendError(f"Invalid arguments for {name}: {e}", "invalid_arguments") from e
        return BackendResponse(data=fn(self, **params))


def get_backend() -> Backend:
    """Return the request-scoped Backend, creating it on first use."""
    if "backend" not in g:
        from flask import current_app
        g.backend = Backend(get_db(), current_app.config)
    return g.backend
