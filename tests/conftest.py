import os
import tempfile

# Must be set before config is imported anywhere
os.environ.setdefault("BOARD_ENV", "test")
os.environ.setdefault("DB_PATH", os.path.join(tempfile.mkdtemp(prefix="board-tests-"), "board.db"))

import pytest
import pytest_asyncio

from database import DatabaseManager
from replies import ReplyRepository
from security import CredentialVerifier
from threads import ThreadRepository


@pytest.fixture
def verifier():
    return CredentialVerifier(test_mode=True)


@pytest_asyncio.fixture
async def db(tmp_path):
    manager = DatabaseManager(str(tmp_path / "board.db"))
    await manager.init_schema()
    return manager


@pytest.fixture
def threads(db, verifier):
    return ThreadRepository(db, verifier)


@pytest.fixture
def replies(db, verifier):
    return ReplyRepository(db, verifier)


@pytest.fixture
def client(tmp_path, monkeypatch, verifier):
    """HTTP client bound to a fresh database; schema is created by the startup hook."""
    from fastapi.testclient import TestClient
    import app as app_module

    manager = DatabaseManager(str(tmp_path / "api.db"))
    monkeypatch.setattr(app_module, "db", manager)
    monkeypatch.setattr(app_module, "thread_repository", ThreadRepository(manager, verifier))
    monkeypatch.setattr(app_module, "reply_repository", ReplyRepository(manager, verifier))

    with TestClient(app_module.app) as test_client:
        yield test_client
