from datetime import timedelta

from models.security import Session
from security.sessions import SessionStore


async def _create(store, clock, index, user_id="42", lifetime=timedelta(days=7)):
    return await store.create(
        user_id=user_id,
        access_token_hash=f"access-{index}",
        refresh_token_hash=f"refresh-{index}",
        expires_at=clock() + lifetime,
        ip_address="10.0.0.1",
        user_agent="pytest",
    )


async def test_create_and_find_by_digests(db, session_store, clock):
    session = await _create(session_store, clock, 1)

    assert (await session_store.find_by_refresh_digest("refresh-1")).id == session.id
    assert (await session_store.find_by_access_digest("access-1")).id == session.id
    assert await session_store.find_by_refresh_digest("refresh-2") is None


async def test_long_user_agent_is_truncated(db, session_store, clock):
    session = await session_store.create(
        user_id="42",
        access_token_hash="a",
        refresh_token_hash="r",
        expires_at=clock() + timedelta(days=1),
        user_agent="x" * 2000,
    )

    assert len(session.user_agent) == 512


async def test_sixth_session_evicts_the_least_recently_active(db, session_store, clock):
    for index in range(1, 7):
        await _create(session_store, clock, index)
        clock.advance(seconds=1)

    sessions = await session_store.list_active("42")

    assert len(sessions) == 5
    assert [s.refresh_token_hash for s in sessions] == [f"refresh-{i}" for i in (6, 5, 4, 3, 2)]
    assert await session_store.find_by_refresh_digest("refresh-1") is None


async def test_eviction_follows_activity_not_creation(db, session_store, clock):
    sessions = []
    for index in range(1, 6):
        sessions.append(await _create(session_store, clock, index))
        clock.advance(seconds=1)

    await session_store.touch(sessions[0])
    clock.advance(seconds=1)
    await _create(session_store, clock, 6)

    remaining = {s.refresh_token_hash for s in await session_store.list_active("42")}
    assert remaining == {"refresh-1", "refresh-3", "refresh-4", "refresh-5", "refresh-6"}


async def test_cap_is_per_user(db, session_store, clock):
    for index in range(5):
        await _create(session_store, clock, f"a{index}", user_id="1")
        await _create(session_store, clock, f"b{index}", user_id="2")
        clock.advance(seconds=1)

    assert len(await session_store.list_active("1")) == 5
    assert len(await session_store.list_active("2")) == 5


async def test_custom_cap(db, clock):
    store = SessionStore(max_sessions=2, clock=clock)
    for index in range(3):
        await _create(store, clock, index)
        clock.advance(seconds=1)

    assert len(await store.list_active("42")) == 2


async def test_expired_session_is_treated_as_absent(db, session_store, clock):
    await _create(session_store, clock, 1, lifetime=timedelta(minutes=1))

    clock.advance(minutes=1)

    assert await session_store.find_by_refresh_digest("refresh-1") is None
    assert await session_store.find_by_access_digest("access-1") is None
    assert await session_store.list_active("42") == []
    # Still stored until purged
    assert await Session.find_all().count() == 1


async def test_touch_rotates_access_digest(db, session_store, clock):
    session = await _create(session_store, clock, 1)
    clock.advance(minutes=5)

    await session_store.touch(session, access_token_hash="access-rotated")

    stored = await session_store.find_by_refresh_digest("refresh-1")
    assert stored.access_token_hash == "access-rotated"
    assert stored.last_activity == clock()
    assert await session_store.find_by_access_digest("access-1") is None


async def test_revoke_single_session(db, session_store, clock):
    first = await _create(session_store, clock, 1)
    await _create(session_store, clock, 2)

    assert await session_store.revoke(first.id) is True
    assert await session_store.revoke(first.id) is False
    assert [s.refresh_token_hash for s in await session_store.list_active("42")] == ["refresh-2"]


async def test_revoke_all_only_touches_one_user(db, session_store, clock):
    await _create(session_store, clock, 1)
    await _create(session_store, clock, 2)
    await _create(session_store, clock, 3, user_id="7")

    assert await session_store.revoke_all("42") == 2
    assert await session_store.list_active("42") == []
    assert len(await session_store.list_active("7")) == 1


async def test_purge_expired(db, session_store, clock):
    await _create(session_store, clock, 1, lifetime=timedelta(minutes=1))
    await _create(session_store, clock, 2)
    clock.advance(minutes=2)

    assert await session_store.purge_expired() == 1
    assert await Session.find_all().count() == 1


async def test_newest_session_survives_timestamp_ties(db, session_store, clock):
    for index in range(1, 7):
        await _create(session_store, clock, index)

    remaining = [s.refresh_token_hash for s in await session_store.list_active("42")]

    assert len(remaining) == 5
    assert "refresh-6" in remaining
    assert "refresh-1" not in remaining


async def test_enforce_limit_never_evicts_the_kept_session(db, clock):
    store = SessionStore(max_sessions=1, clock=clock)
    first = await _create(store, clock, 1)
    clock.advance(seconds=1)
    await Session(
        user_id="42",
        access_token_hash="access-2",
        refresh_token_hash="refresh-2",
        expires_at=clock() + timedelta(days=1),
        last_activity=clock(),
        created_at=clock(),
    ).insert()

    assert await store.enforce_limit("42", keep=first.id) == 1
    assert [s.id for s in await store.list_active("42")] == [first.id]
