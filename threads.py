import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Optional
from config import THREAD_LIST_LIMIT, REPLY_PREVIEW_LIMIT
from database import DatabaseManager, timestamp, is_object_id
from exceptions import Exceptions, NotFound, InvalidCredential, WriteFailed
from models import ThreadSummary
from security import CredentialVerifier

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Thread:
    board: str
    text: str
    delete_password: str
    created_on: float = field(default_factory=timestamp)
    bumped_on: Optional[float] = None
    deleted_on: Optional[float] = None
    reported: bool = False

    def __post_init__(self) -> None:
        if self.bumped_on is None:
            self.bumped_on = self.created_on


class ThreadRepository:
    def __init__(self, db: DatabaseManager, verifier: CredentialVerifier) -> None:
        self.db = db
        self.verifier = verifier

    def _query(self, board: str, thread_id: str) -> dict:
        return {"board": board, "_id": thread_id, "deleted_on": None}

    async def _get_active(self, board: str, thread_id: str) -> dict:
        """Load an active thread or raise NotFound."""
        if not is_object_id(thread_id):
            logger.info("not found: malformed thread id %r on board %r", thread_id, board)
            raise NotFound(Exceptions.THREAD_NOT_FOUND)
        thread = await self.db.find_one(self.db.threads, self._query(board, thread_id))
        if not thread:
            logger.info("not found: thread %s on board %r", thread_id, board)
            raise NotFound(Exceptions.THREAD_NOT_FOUND)
        return thread

    async def create(self, board: str, text: str, password: str) -> str:
        """Start a new thread on a board and return its id."""
        pass_hash = await asyncio.to_thread(self.verifier.hash_password, password)
        thread = Thread(board, text, pass_hash)

        inserted, thread_id = await self.db.insert_one(self.db.threads, asdict(thread))
        if inserted != 1 or not thread_id:
            logger.warning("create thread fail: inserted=%s board=%r", inserted, board)
            raise WriteFailed(Exceptions.THREAD_NOT_CREATED)

        logger.debug("created thread %s on board %r", thread_id, board)
        return thread_id

    async def list_recent(self, board: str, thread_limit: int = THREAD_LIST_LIMIT,
                          reply_limit: int = REPLY_PREVIEW_LIMIT) -> list[ThreadSummary]:
        """
        The most recently bumped active threads of a board.

        Each thread carries at most `reply_limit` of its newest active replies,
        while `replycount` counts all of them.
        """
        threads = await self.db.aggregate_with_replies({"board": board}, thread_limit, reply_limit)
        return [ThreadSummary.model_validate(thread) for thread in threads]

    async def flag(self, board: str, thread_id: str) -> bool:
        """Report a thread for moderation. It stays listed."""
        await self._get_active(board, thread_id)

        modified = await self.db.update_one(self.db.threads, self._query(board, thread_id), {"reported": True})
        if modified != 1:
            logger.warning("flag thread fail: thread %s modified=%s", thread_id, modified)
            raise WriteFailed(Exceptions.THREAD_NOT_FLAGGED)
        return True

    async def delete(self, board: str, thread_id: str, password: str) -> bool:
        """Soft-delete a thread if the password matches."""
        thread = await self._get_active(board, thread_id)

        pass_match = await asyncio.to_thread(self.verifier.verify_password, password, thread["delete_password"])
        if not pass_match:
            raise InvalidCredential(Exceptions.INCORRECT_PASSWORD)

        modified = await self.db.update_one(self.db.threads, self._query(board, thread_id),
                                            {"deleted_on": timestamp()})
        if modified != 1:
            logger.warning("delete thread fail: thread %s modified=%s", thread_id, modified)
            raise WriteFailed(Exceptions.THREAD_NOT_DELETED)
        return True
