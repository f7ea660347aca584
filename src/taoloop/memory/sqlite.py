"""SQLite conversation memory backend.

Provides persistent conversation storage using SQLite database.
Uses aiosqlite for async access.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

import aiosqlite

from ..llm.models import ChatMessage, FunctionCall, MessageRole
from .base import ConversationMemory
from .models import ConversationState


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_message(row: tuple) -> ChatMessage:
    role, content, name, function_call_json = row
    function_call = None
    if function_call_json:
        function_call = FunctionCall(**json.loads(function_call_json))
    return ChatMessage(
        role=MessageRole(role),
        content=content,
        name=name,
        function_call=function_call,
    )


class SQLiteConversationMemory(ConversationMemory):
    """SQLite-backed conversation memory.

    Stores one row per message, ordered by insertion. Supports persistent
    storage across sessions.
    """

    def __init__(
        self,
        path: str | Path = "./conversation_memory.db",
        default_session_id: str | None = None,
        max_messages: int | None = None
    ):
        if max_messages is not None and max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self._db_path = Path(path)
        self._default_session_id = default_session_id or str(uuid4())
        self._max_messages = max_messages
        self._connection: aiosqlite.Connection | None = None

    @property
    def _conn(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("SQLite memory is not connected; call connect() first")
        return self._connection

    async def connect(self) -> None:
        """Open the database and create the schema."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self._db_path)
        await self._connection.execute("PRAGMA foreign_keys = ON")
        await self._create_schema()
        await self._ensure_session(self._default_session_id)

    async def _create_schema(self) -> None:
        await self._conn.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                session_id TEXT PRIMARY KEY,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        await self._conn.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id TEXT NOT NULL,
                role TEXT NOT NULL,
                content TEXT,
                name TEXT,
                function_call TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (session_id) REFERENCES sessions(session_id) ON DELETE CASCADE
            )
        """)

        await self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_session
            ON messages(session_id, id)
        """)

        await self._conn.commit()

    async def _ensure_session(self, session_id: str) -> None:
        now = _now()
        await self._conn.execute("""
            INSERT OR IGNORE INTO sessions (session_id, created_at, updated_at)
            VALUES (?, ?, ?)
        """, (session_id, now, now))
        await self._conn.commit()

    async def _insert_message(self, session_id: str, message: ChatMessage) -> None:
        function_call = (
            message.function_call.model_dump_json() if message.function_call else None
        )
        await self._conn.execute("""
            INSERT INTO messages (session_id, role, content, name, function_call, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (
            session_id,
            message.role.value,
            message.content,
            message.name,
            function_call,
            _now()
        ))

    async def _trim(self, session_id: str) -> None:
        """Delete the oldest non-system rows beyond max_messages."""
        async with self._conn.execute(
            "SELECT COUNT(*) FROM messages WHERE session_id = ? AND role = ?",
            (session_id, MessageRole.SYSTEM.value)
        ) as cursor:
            (system_count,) = await cursor.fetchone()

        keep = max(self._max_messages - system_count, 0)
        await self._conn.execute("""
            DELETE FROM messages
            WHERE session_id = ? AND role != ? AND id NOT IN (
                SELECT id FROM messages
                WHERE session_id = ? AND role != ?
                ORDER BY id DESC
                LIMIT ?
            )
        """, (
            session_id,
            MessageRole.SYSTEM.value,
            session_id,
            MessageRole.SYSTEM.value,
            keep
        ))

    async def disconnect(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def get_state(self, session_id: str | None = None) -> ConversationState:
        sid = session_id or self._default_session_id

        async with self._conn.execute(
            "SELECT created_at, updated_at FROM sessions WHERE session_id = ?",
            (sid,)
        ) as cursor:
            row = await cursor.fetchone()

        if row is None:
            await self._ensure_session(sid)
            return ConversationState(session_id=sid)

        created_at, updated_at = row

        async with self._conn.execute(
            """
            SELECT role, content, name, function_call
            FROM messages
            WHERE session_id = ?
            ORDER BY id ASC
            """,
            (sid,)
        ) as cursor:
            rows = await cursor.fetchall()

        return ConversationState(
            session_id=sid,
            messages=[_row_to_message(r) for r in rows],
            created_at=datetime.fromisoformat(created_at),
            updated_at=datetime.fromisoformat(updated_at),
        )

    async def save_state(self, state: ConversationState) -> None:
        """Replace the stored history of the session with ``state``."""
        await self._conn.execute("""
            INSERT INTO sessions (session_id, created_at, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(session_id) DO UPDATE SET updated_at = excluded.updated_at
        """, (state.session_id, state.created_at.isoformat(), _now()))

        await self._conn.execute(
            "DELETE FROM messages WHERE session_id = ?",
            (state.session_id,)
        )

        for message in state.messages:
            await self._insert_message(state.session_id, message)

        if self._max_messages is not None:
            await self._trim(state.session_id)

        await self._conn.commit()

    async def add_message(
        self,
        message: ChatMessage,
        session_id: str | None = None
    ) -> None:
        sid = session_id or self._default_session_id
        await self._ensure_session(sid)
        await self._insert_message(sid, message)

        if self._max_messages is not None:
            await self._trim(sid)

        await self._conn.execute(
            "UPDATE sessions SET updated_at = ? WHERE session_id = ?",
            (_now(), sid)
        )
        await self._conn.commit()

    async def get_recent_messages(
        self,
        limit: int | None = None,
        session_id: str | None = None
    ) -> list[ChatMessage]:
        state = await self.get_state(session_id)
        return state.window(limit)

    async def clear_history(self, session_id: str | None = None) -> None:
        sid = session_id or self._default_session_id
        await self._conn.execute(
            "DELETE FROM messages WHERE session_id = ?",
            (sid,)
        )
        await self._conn.commit()

    @property
    def backend_type(self) -> str:
        return "sqlite"

    @property
    def default_session_id(self) -> str:
        return self._default_session_id

    @property
    def db_path(self) -> Path:
        return self._db_path
