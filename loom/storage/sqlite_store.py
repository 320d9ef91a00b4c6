"""SQLite store for sessions, the current-session pointer, teaching directives and chat history"""

import json
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional, Union

import aiosqlite
from loguru import logger

from loom.core.errors import StorageFailure
from loom.core.models import (
    ChatMessage,
    ChatRole,
    Conversation,
    Session,
    TeachingDirective,
)


class LoomStore:
    """
    Keyed persistent store backing the session pipeline.

    Logical keyspaces, one table each:
    - sessions: session id -> Session (JSON blob, one row per session)
    - current_session: client key -> active session id
    - teaching_directives: session id -> full directive list (overwritten, never merged)
    - conversations / messages: chat history

    Every mutating method ends in exactly one commit, so each call is a single
    logical write. aiosqlite errors surface as StorageFailure with the
    original exception chained.
    """

    def __init__(self, db_path: Union[Path, str]) -> None:
        self.db_path = Path(db_path)
        self._conn: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        """Establish database connection"""
        # Create parent directory if needed
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = await aiosqlite.connect(str(self.db_path))
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._setup_schema()
        except aiosqlite.Error as e:
            raise StorageFailure(f"Could not open database {self.db_path}: {e}") from e

        logger.info(f"Connected to database: {self.db_path}")

    async def close(self) -> None:
        """Close database connection"""
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("Database connection closed")

    @property
    def conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise StorageFailure("Database not connected")
        return self._conn

    async def _setup_schema(self) -> None:
        """Create tables for every keyspace"""
        await self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS sessions (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                phase TEXT NOT NULL,
                data TEXT NOT NULL,
                last_activity TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS current_session (
                client_key TEXT PRIMARY KEY,
                session_id TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS teaching_directives (
                session_id TEXT PRIMARY KEY,
                directives TEXT NOT NULL,
                updated_at REAL NOT NULL
            );

            CREATE TABLE IF NOT EXISTS conversations (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                last_message TEXT NOT NULL,
                updated_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                conversation_id TEXT NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                timestamp INTEGER NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_messages_conversation
            ON messages(conversation_id, id);
        """)
        await self.conn.commit()
        logger.debug("Database schema initialized")

    @asynccontextmanager
    async def _write(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Run statements as one transaction: commit on success, roll back on error"""
        conn = self.conn
        try:
            yield conn
            await conn.commit()
        except aiosqlite.Error as e:
            await conn.rollback()
            logger.error(f"Storage write failed during {operation}: {e}")
            raise StorageFailure(f"{operation} failed: {e}") from e

    async def _fetchone(self, sql: str, params: tuple = ()) -> Optional[aiosqlite.Row]:
        try:
            cursor = await self.conn.execute(sql, params)
            return await cursor.fetchone()
        except aiosqlite.Error as e:
            logger.error(f"Storage read failed: {e}")
            raise StorageFailure(f"read failed: {e}") from e

    async def _fetchall(self, sql: str, params: tuple = ()) -> List[aiosqlite.Row]:
        try:
            cursor = await self.conn.execute(sql, params)
            return list(await cursor.fetchall())
        except aiosqlite.Error as e:
            logger.error(f"Storage read failed: {e}")
            raise StorageFailure(f"read failed: {e}") from e

    # ── Sessions ─────────────────────────────────────────────────────────────

    @staticmethod
    def _session_row(session: Session) -> tuple:
        # Directives are owned by the teaching_directives table, never inline
        data = session.model_dump_json(exclude={"teaching_directives"})
        return (session.id, session.user_id, session.phase.value, data, session.last_activity)

    async def insert_session(self, session: Session, client_key: str) -> None:
        """Persist a new session and point the client's current session at it"""
        async with self._write("insert_session") as conn:
            await conn.execute(
                """
                INSERT INTO sessions (id, user_id, phase, data, last_activity)
                VALUES (?, ?, ?, ?, ?)
                """,
                self._session_row(session),
            )
            await conn.execute(
                "INSERT OR REPLACE INTO current_session (client_key, session_id) VALUES (?, ?)",
                (client_key, session.id),
            )
        logger.debug(f"Inserted session {session.id[:8]} (client={client_key})")

    async def save_session(self, session: Session) -> None:
        """Overwrite an existing session record"""
        async with self._write("save_session") as conn:
            await conn.execute(
                "UPDATE sessions SET user_id = ?, phase = ?, data = ?, last_activity = ? WHERE id = ?",
                (session.user_id, session.phase.value,
                 session.model_dump_json(exclude={"teaching_directives"}),
                 session.last_activity, session.id),
            )

    async def get_session(self, session_id: str) -> Optional[Session]:
        """Retrieve session by ID (without directives attached)"""
        row = await self._fetchone("SELECT data FROM sessions WHERE id = ?", (session_id,))
        if not row:
            return None
        return Session.model_validate_json(row["data"])

    async def set_current_session(self, client_key: str, session_id: str) -> None:
        async with self._write("set_current_session") as conn:
            await conn.execute(
                "INSERT OR REPLACE INTO current_session (client_key, session_id) VALUES (?, ?)",
                (client_key, session_id),
            )

    async def get_current_session_id(self, client_key: str) -> Optional[str]:
        row = await self._fetchone(
            "SELECT session_id FROM current_session WHERE client_key = ?",
            (client_key,),
        )
        return row["session_id"] if row else None

    async def count_sessions(self) -> int:
        row = await self._fetchone("SELECT COUNT(*) AS n FROM sessions")
        return row["n"] if row else 0

    # ── Teaching directives ──────────────────────────────────────────────────

    async def replace_directives(
        self,
        session_id: str,
        directives: List[TeachingDirective],
        session: Optional[Session] = None,
    ) -> None:
        """
        Overwrite the session's directive list.

        When `session` is given it is saved in the same transaction, so the
        directives and the chain block recording them co-persist.
        """
        payload = json.dumps([d.model_dump(mode="json") for d in directives])
        async with self._write("replace_directives") as conn:
            await conn.execute(
                """
                INSERT OR REPLACE INTO teaching_directives (session_id, directives, updated_at)
                VALUES (?, ?, ?)
                """,
                (session_id, payload, time.time()),
            )
            if session is not None:
                await conn.execute(
                    "UPDATE sessions SET phase = ?, data = ?, last_activity = ? WHERE id = ?",
                    (session.phase.value, session.model_dump_json(exclude={"teaching_directives"}),
                     session.last_activity, session.id),
                )
        logger.debug(f"Stored {len(directives)} directives for session {session_id[:8]}")

    async def get_directives(self, session_id: str) -> List[TeachingDirective]:
        row = await self._fetchone(
            "SELECT directives FROM teaching_directives WHERE session_id = ?",
            (session_id,),
        )
        if not row:
            return []
        return [TeachingDirective.model_validate(d) for d in json.loads(row["directives"])]

    # ── Chat history ─────────────────────────────────────────────────────────

    async def append_message(self, conversation_id: str, message: ChatMessage) -> None:
        """Store a message and refresh its conversation summary"""
        async with self._write("append_message") as conn:
            await conn.execute(
                "INSERT INTO messages (conversation_id, role, content, timestamp) VALUES (?, ?, ?, ?)",
                (conversation_id, message.role.value, message.content, message.timestamp),
            )
            await conn.execute(
                """
                INSERT INTO conversations (id, title, last_message, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    last_message = excluded.last_message,
                    updated_at = excluded.updated_at
                """,
                (conversation_id, message.content[:40], message.content, message.timestamp),
            )

    async def get_messages(self, conversation_id: str) -> List[ChatMessage]:
        rows = await self._fetchall(
            "SELECT role, content, timestamp FROM messages WHERE conversation_id = ? ORDER BY id",
            (conversation_id,),
        )
        return [
            ChatMessage(role=ChatRole(row["role"]), content=row["content"], timestamp=row["timestamp"])
            for row in rows
        ]

    async def list_conversations(self) -> List[Conversation]:
        """Conversations, most recently active first"""
        rows = await self._fetchall(
            "SELECT id, title, last_message, updated_at FROM conversations ORDER BY updated_at DESC"
        )
        return [
            Conversation(
                id=row["id"],
                title=row["title"],
                last_message=row["last_message"],
                timestamp=row["updated_at"],
            )
            for row in rows
        ]

    # ── Maintenance ──────────────────────────────────────────────────────────

    async def clear_all(self) -> None:
        """Delete every record in every keyspace"""
        async with self._write("clear_all") as conn:
            for table in ("sessions", "current_session", "teaching_directives",
                          "conversations", "messages"):
                await conn.execute(f"DELETE FROM {table}")
        logger.info("All Loom data cleared")
