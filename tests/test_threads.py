import pytest

from database import is_object_id
from exceptions import NotFound, InvalidCredential, WriteFailed


async def _create_threads(threads, board, count):
    return [await threads.create(board, f"{board}-thread-{n}", f"pass-{n}") for n in range(count)]


@pytest.mark.asyncio
async def test_create_returns_object_id(threads, db):
    thread_id = await threads.create("b", "hello", "pw")

    assert is_object_id(thread_id)
    stored = await db.find_one(db.threads, {"_id": thread_id})
    assert stored["board"] == "b"
    assert stored["created_on"] == stored["bumped_on"]
    assert stored["deleted_on"] is None
    assert stored["reported"] is False
    assert stored["delete_password"] != "pw"


@pytest.mark.asyncio
async def test_list_recent_is_bounded_and_newest_first(threads):
    ids = await _create_threads(threads, "b", 12)

    listed = await threads.list_recent("b")

    assert len(listed) == 10
    assert [t.id for t in listed] == list(reversed(ids))[:10]


@pytest.mark.asyncio
async def test_list_recent_hides_private_fields(threads, replies):
    thread_id = await threads.create("b", "hello", "pw")
    await replies.create("b", thread_id, "reply", "pw")

    dumped = (await threads.list_recent("b"))[0].model_dump(by_alias=True)

    for hidden in ("board", "reported", "delete_password"):
        assert hidden not in dumped
        assert hidden not in dumped["replies"][0]
    assert dumped["_id"] == thread_id


@pytest.mark.asyncio
async def test_reply_preview_is_bounded_but_count_is_total(threads, replies):
    thread_id = await threads.create("b", "hello", "pw")
    reply_ids = [await replies.create("b", thread_id, f"reply {n}", "pw") for n in range(5)]

    summary = (await threads.list_recent("b"))[0]

    assert summary.replycount == 5
    assert [r.id for r in summary.replies] == list(reversed(reply_ids))[:3]


@pytest.mark.asyncio
async def test_custom_limits(threads, replies):
    ids = await _create_threads(threads, "b", 4)
    await replies.create("b", ids[0], "one", "pw")
    await replies.create("b", ids[0], "two", "pw")

    listed = await threads.list_recent("b", thread_limit=2, reply_limit=1)

    assert [t.id for t in listed] == [ids[0], ids[3]]
    assert len(listed[0].replies) == 1
    assert listed[0].replycount == 2


@pytest.mark.asyncio
async def test_bumping_moves_replied_threads_to_front(threads, replies):
    ids = await _create_threads(threads, "b", 6)

    for thread_id in ids[:3]:
        await replies.create("b", thread_id, "bump", "pw")

    listed = [t.id for t in await threads.list_recent("b")]
    assert listed == [ids[2], ids[1], ids[0], ids[5], ids[4], ids[3]]


@pytest.mark.asyncio
async def test_boards_are_isolated(threads):
    thread_id = await threads.create("a", "on a", "pw")

    assert await threads.list_recent("b") == []
    with pytest.raises(NotFound):
        await threads.flag("b", thread_id)
    with pytest.raises(NotFound):
        await threads.delete("b", thread_id, "pw")


@pytest.mark.asyncio
async def test_flag_keeps_thread_listed(threads, db):
    thread_id = await threads.create("b", "hello", "pw")

    assert await threads.flag("b", thread_id) is True

    assert [t.id for t in await threads.list_recent("b")] == [thread_id]
    assert (await db.find_one(db.threads, {"_id": thread_id}))["reported"] is True


@pytest.mark.asyncio
async def test_flag_twice_succeeds(threads):
    thread_id = await threads.create("b", "hello", "pw")
    await threads.flag("b", thread_id)
    assert await threads.flag("b", thread_id) is True


@pytest.mark.asyncio
@pytest.mark.parametrize("thread_id", ["0" * 24, "not-an-id", "", "ABCDEF" * 4])
async def test_flag_unknown_or_malformed_id(threads, thread_id):
    with pytest.raises(NotFound):
        await threads.flag("b", thread_id)


@pytest.mark.asyncio
async def test_delete_with_wrong_password_keeps_thread(threads):
    thread_id = await threads.create("b", "hello", "right")

    with pytest.raises(InvalidCredential):
        await threads.delete("b", thread_id, "wrong")

    assert [t.id for t in await threads.list_recent("b")] == [thread_id]


@pytest.mark.asyncio
async def test_delete_with_overlong_password_is_rejected(threads):
    thread_id = await threads.create("b", "hello", "right")

    with pytest.raises(InvalidCredential):
        await threads.delete("b", thread_id, "x" * 100)

    assert [t.id for t in await threads.list_recent("b")] == [thread_id]


@pytest.mark.asyncio
async def test_delete_is_terminal(threads, db):
    thread_id = await threads.create("b", "hello", "right")

    assert await threads.delete("b", thread_id, "right") is True

    assert await threads.list_recent("b") == []
    assert (await db.find_one(db.threads, {"_id": thread_id}))["deleted_on"] is not None
    with pytest.raises(NotFound):
        await threads.delete("b", thread_id, "right")
    with pytest.raises(NotFound):
        await threads.flag("b", thread_id)


@pytest.mark.asyncio
async def test_deleted_thread_does_not_disturb_others(threads, replies):
    ids = await _create_threads(threads, "b", 12)
    await replies.create("b", ids[5], "reply", "pw")

    await threads.delete("b", ids[11], "pass-11")

    listed = await threads.list_recent("b")
    assert [t.id for t in listed] == [ids[5], ids[10], ids[9], ids[8], ids[7], ids[6],
                                      ids[4], ids[3], ids[2], ids[1]]
    assert listed[0].replycount == 1


@pytest.mark.asyncio
async def test_lost_update_is_reported(threads, db, monkeypatch):
    thread_id = await threads.create("b", "hello", "pw")

    # Another writer deletes the thread between the load and the write
    original_find_one = db.find_one

    async def find_then_race(collection, filter):
        found = await original_find_one(collection, filter)
        await db.update_one(db.threads, {"_id": thread_id}, {"deleted_on": 1.0})
        return found

    monkeypatch.setattr(db, "find_one", find_then_race)

    with pytest.raises(WriteFailed):
        await threads.flag("b", thread_id)
    monkeypatch.undo()
    assert (await db.find_one(db.threads, {"_id": thread_id}))["reported"] is False


@pytest.mark.asyncio
async def test_board_scenario(threads, replies):
    first = await threads.create("b", "T1", "secret")
    others = await _create_threads(threads, "b", 11)

    listed = await threads.list_recent("b")
    assert len(listed) == 10
    assert listed[0].id == others[-1]
    assert first not in [t.id for t in listed]

    await replies.create("b", first, "bump", "pw")
    assert (await threads.list_recent("b"))[0].id == first

    await threads.flag("b", first)
    assert (await threads.list_recent("b"))[0].id == first

    await threads.delete("b", first, "secret")
    assert first not in [t.id for t in await threads.list_recent("b")]
    assert await replies.get_full_thread("b", first) is None
