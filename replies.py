import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Optional
from config import DELETED_TEXT
from database import DatabaseManager, timestamp, is_object_id
from exceptions import Exceptions, NotFound, InvalidCredential, WriteFailed
from models import FullThread
from security import CredentialVerifier

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Reply:
    thread_id: str
    text: str
    delete_password: str
    created_on: float = field(default_factory=timestamp)
    deleted_on: Optional[float] = None
    reported: bool = False


class ReplyRepository:
    def __init__(self, db: DatabaseManager, verifier: CredentialVerifier) -> None:
        self.db = db
        self.verifier = verifier

    def _query(self, thread_id: str, reply_id: str) -> dict:
        return {"thread_id": thread_id, "_id": reply_id, "deleted_on": None}

    async def _get_active(self, thread_id: str, reply_id: str) -> dict:
        if not (is_object_id(thread_id) and is_object_id(reply_id)):
            logger.info("not found: malformed ids thread=%r reply=%r", thread_id, reply_id)
            raise NotFound(Exceptions.REPLY_NOT_FOUND)
        reply = await self.db.find_one(self.db.replies, self._query(thread_id, reply_id))
        if not reply:
            logger.info("not found: reply %s in thread %s", reply_id, thread_id)
            raise NotFound(Exceptions.REPLY_NOT_FOUND)
        return reply

    async def create(self, board: str, thread_id: str, text: str, password: str) -> str:
        """
        Reply to an active thread and bump it.

        The reply insert and the bump of the thread's bumped_on to the reply's
        created_on are committed together or not at all.
        """
        thread_query = {"board": board, "_id": thread_id, "deleted_on": None}
        if not is_object_id(thread_id) or not await self.db.find_one(self.db.threads, thread_query):
            logger.info("not found: thread %r on board %r", thread_id, board)
            raise NotFound(Exceptions.THREAD_NOT_FOUND)

        pass_hash = await asyncio.to_thread(self.verifier.hash_password, password)
        reply = Reply(thread_id, text, pass_hash)

        inserted, modified, reply_id = await self.db.insert_one_and_update_one(
            self.db.replies, asdict(reply),
            self.db.threads, thread_query, {"bumped_on": reply.created_on}
        )
        if inserted != 1 or modified != 1 or not reply_id:
            logger.warning("create reply fail: thread %s inserted=%s modified=%s", thread_id, inserted, modified)
            raise WriteFailed(Exceptions.REPLY_NOT_CREATED)

        return reply_id

    async def get_full_thread(self, board: str, thread_id: str) -> Optional[FullThread]:
        """An active thread with all of its active replies, or None."""
        if not is_object_id(thread_id):
            return None
        threads = await self.db.aggregate_with_replies({"board": board, "_id": thread_id})
        if not threads:
            return None
        return FullThread.model_validate(threads[0])

    async def flag(self, thread_id: str, reply_id: str) -> bool:
        await self._get_active(thread_id, reply_id)

        modified = await self.db.update_one(self.db.replies, self._query(thread_id, reply_id), {"reported": True})
        if modified != 1:
            logger.warning("flag reply fail: reply %s modified=%s", reply_id, modified)
            raise WriteFailed(Exceptions.REPLY_NOT_FLAGGED)
        return True

    async def delete(self, thread_id: str, reply_id: str, password: str) -> bool:
        """Soft-delete a reply and replace its text with a tombstone."""
        reply = await self._get_active(thread_id, reply_id)

        pass_match = await asyncio.to_thread(self.verifier.verify_password, password, reply["delete_password"])
        if not pass_match:
            raise InvalidCredential(Exceptions.INCORRECT_PASSWORD)

        modified = await self.db.update_one(self.db.replies, self._query(thread_id, reply_id),
                                            {"deleted_on": timestamp(), "text": DELETED_TEXT})
        if modified != 1:
            logger.warning("delete reply fail: reply %s modified=%s", reply_id, modified)
            raise WriteFailed(Exceptions.REPLY_NOT_DELETED)
        return True
