"""SQLite storage implementation."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import RemoteEvent, TraceEvent, UserDetails, event_from_payload


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class IStorage(Protocol):
    """Persistent storage for trace events, bus events and users (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        ...

    # Bus events
    async def save_bus_event(self, event: RemoteEvent) -> None:
        """Save a bus event."""
        ...

    async def get_bus_events(
        self, event_type: str | None = None, limit: int = 100
    ) -> list[RemoteEvent]:
        """Get bus events (newest first)."""
        ...

    # Users
    async def save_user(self, user: UserDetails) -> None:
        """Insert or replace a user together with its roles."""
        ...

    async def get_user(self, username: str) -> UserDetails | None:
        """Get a user with its roles, matching the name case-insensitively."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO trace_events (id, event_type, actor, data, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.id or str(uuid.uuid4()),
                event.event_type,
                event.actor,
                json.dumps(event.data, ensure_ascii=False, default=str),
                event.timestamp.isoformat(),
            ),
        )
        await conn.commit()

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        conn = self._require_conn()

        conditions = []
        params: list = []

        if after:
            if after.tzinfo is None:
                after = after.replace(tzinfo=timezone.utc)
            conditions.append("timestamp > ?")
            params.append(after.isoformat())
        if event_types:
            placeholders = ",".join("?" * len(event_types))
            conditions.append(f"event_type IN ({placeholders})")
            params.extend(event_types)
        if actor:
            conditions.append("actor = ?")
            params.append(actor)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, event_type, actor, data, timestamp
            FROM trace_events
            {where_clause}
            ORDER BY timestamp DESC
            LIMIT ?
        """
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            TraceEvent(
                id=row[0],
                event_type=row[1],
                actor=row[2],
                data=json.loads(row[3]),
                timestamp=_parse_timestamp(row[4]),
            )
            for row in rows
        ]

    # Bus events
    async def save_bus_event(self, event: RemoteEvent) -> None:
        """Save a bus event."""
        conn = self._require_conn()
        timestamp = event.timestamp or datetime.now(timezone.utc)

        await conn.execute(
            """
            INSERT OR REPLACE INTO bus_events
                (id, type, origin_service, destination_service, payload, timestamp)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                event.id or str(uuid.uuid4()),
                event.type,
                event.origin_service,
                event.destination_service,
                json.dumps(event.payload(), ensure_ascii=False),
                timestamp.isoformat(),
            ),
        )
        await conn.commit()

    async def get_bus_events(
        self, event_type: str | None = None, limit: int = 100
    ) -> list[RemoteEvent]:
        """Get bus events (newest first)."""
        conn = self._require_conn()

        if event_type:
            cursor = await conn.execute(
                """
                SELECT id, type, origin_service, destination_service, payload, timestamp
                FROM bus_events
                WHERE type = ?
                ORDER BY timestamp DESC
                LIMIT ?
                """,
                (event_type, limit),
            )
        else:
            cursor = await conn.execute(
                """
                SELECT id, type, origin_service, destination_service, payload, timestamp
                FROM bus_events
                ORDER BY timestamp DESC
                LIMIT ?
                """,
                (limit,),
            )
        rows = await cursor.fetchall()

        return [
            event_from_payload(
                row[1],
                json.loads(row[4]),
                id=row[0],
                origin_service=row[2],
                destination_service=row[3],
                timestamp=_parse_timestamp(row[5]),
            )
            for row in rows
        ]

    # Users
    async def save_user(self, user: UserDetails) -> None:
        """Insert or replace a user together with its roles."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO users (username, password, enabled)
            VALUES (?, ?, ?)
            """,
            (user.username, user.password, int(user.enabled)),
        )
        await conn.execute("DELETE FROM user_roles WHERE username = ?", (user.username,))
        for role in user.roles:
            await conn.execute("INSERT OR IGNORE INTO roles (role_name) VALUES (?)", (role,))
            await conn.execute(
                """
                INSERT OR IGNORE INTO user_roles (username, role_id)
                SELECT ?, id FROM roles WHERE role_name = ?
                """,
                (user.username, role),
            )
        await conn.commit()

    async def get_user(self, username: str) -> UserDetails | None:
        """Get a user with its roles, matching the name case-insensitively."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "SELECT username, password, enabled FROM users WHERE username = ?",
            (username,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None

        cursor = await conn.execute(
            """
            SELECT r.role_name
            FROM user_roles ur JOIN roles r ON r.id = ur.role_id
            WHERE ur.username = ?
            ORDER BY r.id
            """,
            (row[0],),
        )
        roles = [r[0] for r in await cursor.fetchall()]
        return UserDetails(username=row[0], password=row[1], roles=roles, enabled=bool(row[2]))

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        for table in ["trace_events", "bus_events", "user_roles", "users", "roles"]:
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()
