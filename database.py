import aiosqlite
import logging
import re
import secrets
from contextlib import asynccontextmanager
from typing import List, Dict, Optional, Any, Tuple
from datetime import datetime, timezone
from aggregation import (THREAD_FIELDS, REPLY_FIELDS, match_clause, parents_query,
                         children_query, embed_children)
from config import THREADS_COLLECTION, REPLIES_COLLECTION, DB_TIMEOUT, OBJECT_ID_LENGTH
from exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

OBJECT_ID_PATTERN = re.compile(rf"^[0-9a-f]{{{OBJECT_ID_LENGTH}}}$")
COLLECTION_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def timestamp() -> float:
    return datetime.now(timezone.utc).timestamp()


def new_object_id() -> str:
    """24 hex characters, the identifier format handed to callers"""
    return secrets.token_hex(OBJECT_ID_LENGTH // 2)


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and OBJECT_ID_PATTERN.match(value) is not None


def _document(row) -> Dict[str, Any]:
    document = dict(row)
    if "reported" in document:
        document["reported"] = bool(document["reported"])
    return document


class DatabaseManager:
    def __init__(self, db_path: str, threads_collection: str = THREADS_COLLECTION,
                 replies_collection: str = REPLIES_COLLECTION, timeout: float = DB_TIMEOUT):
        for name in (threads_collection, replies_collection):
            if not COLLECTION_NAME_PATTERN.match(name):
                raise ValueError(f"Invalid collection name: {name!r}")
        self.db_path = db_path
        self.threads = threads_collection
        self.replies = replies_collection
        self.timeout = timeout

    @asynccontextmanager
    async def connect(self):
        """Open a connection; any driver error surfaces as StoreUnavailable"""
        try:
            async with aiosqlite.connect(self.db_path, timeout=self.timeout) as conn:
                conn.row_factory = aiosqlite.Row
                yield conn
        except aiosqlite.Error as e:
            logger.error("store error on %s: %s", self.db_path, e)
            raise StoreUnavailable(str(e)) from e

    async def init_schema(self):
        """Create both collections and their indexes if missing"""
        async with self.connect() as conn:
            await conn.executescript(f"""
                CREATE TABLE IF NOT EXISTS {self.threads} (
                    _id TEXT PRIMARY KEY,
                    board TEXT NOT NULL,
                    text TEXT NOT NULL,
                    delete_password TEXT NOT NULL,
                    created_on REAL NOT NULL,
                    bumped_on REAL NOT NULL,
                    deleted_on REAL,
                    reported BOOLEAN NOT NULL DEFAULT FALSE
                );
                CREATE INDEX IF NOT EXISTS idx_{self.threads}_board_bumped
                    ON {self.threads} (board, deleted_on, bumped_on);

                CREATE TABLE IF NOT EXISTS {self.replies} (
                    _id TEXT PRIMARY KEY,
                    thread_id TEXT NOT NULL,
                    text TEXT NOT NULL,
                    delete_password TEXT NOT NULL,
                    created_on REAL NOT NULL,
                    deleted_on REAL,
                    reported BOOLEAN NOT NULL DEFAULT FALSE
                );
                CREATE INDEX IF NOT EXISTS idx_{self.replies}_thread_created
                    ON {self.replies} (thread_id, deleted_on, created_on);
            """)
            await conn.commit()

    async def execute_query(self, query: str, params: tuple = (), fetch_one: bool = False):
        async with self.connect() as conn:
            cursor = await conn.execute(query, params)
            if fetch_one:
                result = await cursor.fetchone()
            else:
                result = await cursor.fetchall()
            await cursor.close()
            return result

    async def execute_write(self, query: str, params: tuple = ()) -> int:
        """Run an INSERT or UPDATE and return the number of rows it touched"""
        async with self.connect() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            rowcount = cursor.rowcount
            await cursor.close()
            return rowcount

    @staticmethod
    def _insert_statement(collection: str, document: Dict[str, Any]) -> Tuple[str, tuple]:
        fields = list(document.keys())
        placeholders = ", ".join("?" for _ in fields)
        return (f"INSERT INTO {collection} ({', '.join(fields)}) VALUES ({placeholders})",
                tuple(document.values()))

    @staticmethod
    def _update_statement(collection: str, filter: Dict[str, Any],
                          changes: Dict[str, Any]) -> Tuple[str, tuple]:
        field_updates = [f"{field} = ?" for field in changes]
        where, where_params = match_clause(filter)
        return (f"UPDATE {collection} SET {', '.join(field_updates)} {where}",
                tuple(changes.values()) + where_params)

    async def insert_one(self, collection: str, document: Dict[str, Any]) -> Tuple[int, str]:
        """Insert a document under a fresh id. Returns (inserted count, id)"""
        document = {"_id": new_object_id(), **document}
        query, params = self._insert_statement(collection, document)
        inserted = await self.execute_write(query, params)
        return inserted, document["_id"]

    async def find_one(self, collection: str, filter: Dict[str, Any]) -> Optional[Dict]:
        where, params = match_clause(filter)
        row = await self.execute_query(
            f"SELECT * FROM {collection} {where} LIMIT 1", params, fetch_one=True
        )
        return _document(row) if row else None

    async def update_one(self, collection: str, filter: Dict[str, Any], changes: Dict[str, Any]) -> int:
        """
        Conditional update: the change only lands if the document still matches
        the filter at write time. Returns the modified count (0 or 1).
        """
        query, params = self._update_statement(collection, filter, changes)
        return await self.execute_write(query, params)

    async def insert_one_and_update_one(self, insert_collection: str, document: Dict[str, Any],
                                        update_collection: str, filter: Dict[str, Any],
                                        changes: Dict[str, Any]) -> Tuple[int, int, Optional[str]]:
        """
        Insert one document and update another in a single transaction.

        Commits only when exactly one row was inserted and exactly one was
        modified; otherwise rolls back. Returns (inserted, modified, id) with
        id None when nothing was committed.
        """
        document = {"_id": new_object_id(), **document}
        insert_query, insert_params = self._insert_statement(insert_collection, document)
        update_query, update_params = self._update_statement(update_collection, filter, changes)

        async with self.connect() as conn:
            cursor = await conn.execute(insert_query, insert_params)
            inserted = cursor.rowcount
            await cursor.close()

            cursor = await conn.execute(update_query, update_params)
            modified = cursor.rowcount
            await cursor.close()

            if inserted != 1 or modified != 1:
                await conn.rollback()
                return inserted, modified, None

            await conn.commit()
            return inserted, modified, document["_id"]

    async def aggregate_with_replies(self, thread_filter: Dict[str, Any],
                                     thread_limit: Optional[int] = None,
                                     reply_limit: Optional[int] = None) -> List[Dict]:
        """
        Active threads matching the filter, most recently bumped first, each
        with its active replies (newest first) and their total count.
        """
        filter = {**thread_filter, "deleted_on": None}
        async with self.connect() as conn:
            query, params = parents_query(self.threads, filter, THREAD_FIELDS, "bumped_on", thread_limit)
            cursor = await conn.execute(query, params)
            threads = [dict(row) for row in await cursor.fetchall()]
            await cursor.close()
            if not threads:
                return []

            query, params = children_query(
                self.replies, [thread["_id"] for thread in threads], REPLY_FIELDS,
                "thread_id", "created_on", reply_limit
            )
            cursor = await conn.execute(query, params)
            replies = [dict(row) for row in await cursor.fetchall()]
            await cursor.close()

        return embed_children(threads, replies, "replies", "replycount", "thread_id", reply_limit)
