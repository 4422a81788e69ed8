"""CredentialPool tests — least-used selection, fairness, administration."""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from auratask.db.models import PoolKey
from auratask.events.store import EventStore
from auratask.services.credential_pool import (
    CredentialPool,
    DuplicatePoolKeyError,
    PoolKeyNotFoundError,
)


async def _seed(db, *specs):
    """specs: (api_key, usage_count, is_active)"""
    keys = [
        PoolKey(api_key=api_key, label=api_key, usage_count=usage, is_active=active)
        for api_key, usage, active in specs
    ]
    db.add_all(keys)
    await db.commit()
    return keys


async def _usage(db) -> dict[str, int]:
    result = await db.execute(select(PoolKey.api_key, PoolKey.usage_count))
    return dict(result.all())


# ═══════════════════════════════════════════════════════════
# Selection
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_selects_least_used_active_key(db_session):
    """A(3), B(1), C(1, inactive): B is chosen and bumped to 2, C untouched."""
    await _seed(db_session, ("key-a", 3, True), ("key-b", 1, True), ("key-c", 1, False))

    reserved = await CredentialPool(db_session).select_and_reserve()

    assert reserved is not None
    assert reserved.api_key == "key-b"
    assert reserved.usage_before == 1
    assert await _usage(db_session) == {"key-a": 3, "key-b": 2, "key-c": 1}


@pytest.mark.asyncio
async def test_inactive_key_never_selected(db_session):
    await _seed(db_session, ("key-a", 5, True), ("key-c", 0, False))
    pool = CredentialPool(db_session)

    for _ in range(5):
        reserved = await pool.select_and_reserve()
        assert reserved.api_key == "key-a"

    assert (await _usage(db_session))["key-c"] == 0


@pytest.mark.asyncio
async def test_selected_key_was_minimum_before_reservation(db_session):
    await _seed(
        db_session, ("k1", 4, True), ("k2", 2, True), ("k3", 7, True), ("k4", 2, True)
    )
    pool = CredentialPool(db_session)

    for _ in range(10):
        before = await _usage(db_session)
        reserved = await pool.select_and_reserve()
        assert reserved.usage_before == before[reserved.api_key]
        assert reserved.usage_before == min(before.values())


@pytest.mark.asyncio
async def test_sequential_reservations_stay_balanced(db_session):
    """With equal starting counts, max - min never exceeds 1."""
    await _seed(db_session, ("k1", 0, True), ("k2", 0, True), ("k3", 0, True))
    pool = CredentialPool(db_session)

    for _ in range(11):
        assert await pool.select_and_reserve() is not None
        counts = (await _usage(db_session)).values()
        assert max(counts) - min(counts) <= 1

    assert sum((await _usage(db_session)).values()) == 11


@pytest.mark.asyncio
async def test_empty_pool_returns_none(db_session):
    assert await CredentialPool(db_session).select_and_reserve() is None


@pytest.mark.asyncio
async def test_all_inactive_returns_none(db_session):
    await _seed(db_session, ("k1", 0, False), ("k2", 3, False))

    assert await CredentialPool(db_session).select_and_reserve() is None
    assert await _usage(db_session) == {"k1": 0, "k2": 3}


@pytest.mark.asyncio
async def test_failed_increment_still_returns_key(db_session, monkeypatch):
    """A write failure costs the count, not the caller's key."""
    await _seed(db_session, ("key-a", 0, True))
    real_commit = db_session.commit

    async def broken_commit():
        raise OperationalError("UPDATE pool_keys", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", broken_commit)
    reserved = await CredentialPool(db_session).select_and_reserve()
    monkeypatch.setattr(db_session, "commit", real_commit)

    assert reserved is not None
    assert reserved.api_key == "key-a"
    assert await _usage(db_session) == {"key-a": 0}


@pytest.mark.asyncio
async def test_failed_select_returns_none(db_session, monkeypatch):
    await _seed(db_session, ("key-a", 0, True))

    async def broken_execute(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection reset"))

    monkeypatch.setattr(db_session, "execute", broken_execute)

    assert await CredentialPool(db_session).select_and_reserve() is None


# ═══════════════════════════════════════════════════════════
# Administration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_add_key_starts_active_with_zero_usage(db_session):
    key = await CredentialPool(db_session).add_key("  AIzaNewKey123  ", label="ci")

    assert key.api_key == "AIzaNewKey123"
    assert key.is_active is True
    assert key.usage_count == 0
    assert key.label == "ci"


@pytest.mark.asyncio
async def test_add_duplicate_key_rejected(db_session):
    pool = CredentialPool(db_session)
    await pool.add_key("AIzaDup")

    with pytest.raises(DuplicatePoolKeyError):
        await pool.add_key("AIzaDup")

    assert len(await pool.list_keys()) == 1


@pytest.mark.asyncio
async def test_add_blank_key_rejected(db_session):
    with pytest.raises(ValueError):
        await CredentialPool(db_session).add_key("   ")


@pytest.mark.asyncio
async def test_toggle_key(db_session):
    pool = CredentialPool(db_session)
    key = await pool.add_key("AIzaToggle")

    assert (await pool.toggle_key(key.id)).is_active is False
    assert await pool.select_and_reserve() is None

    assert (await pool.toggle_key(key.id)).is_active is True
    assert (await pool.select_and_reserve()).pool_key_id == key.id


@pytest.mark.asyncio
async def test_reset_usage_is_the_only_decrement(db_session):
    (key,) = await _seed(db_session, ("key-a", 9, True))
    pool = CredentialPool(db_session)

    await pool.toggle_key(key.id)
    await pool.toggle_key(key.id)
    assert (await _usage(db_session))["key-a"] == 9

    reset = await pool.reset_usage(key.id)
    assert reset.usage_count == 0


@pytest.mark.asyncio
async def test_delete_key(db_session):
    pool = CredentialPool(db_session)
    key = await pool.add_key("AIzaGone")

    await pool.delete_key(key.id)

    assert await pool.get_key(key.id) is None
    with pytest.raises(PoolKeyNotFoundError):
        await pool.delete_key(key.id)


@pytest.mark.asyncio
async def test_unknown_key_raises(db_session):
    pool = CredentialPool(db_session)
    with pytest.raises(PoolKeyNotFoundError):
        await pool.toggle_key(999)
    with pytest.raises(PoolKeyNotFoundError):
        await pool.reset_usage(999)


@pytest.mark.asyncio
async def test_admin_actions_are_audited_without_key_material(db_session):
    pool = CredentialPool(db_session)
    key = await pool.add_key("AIzaSecretValue", label="shared", actor_id="admin-1")
    await pool.toggle_key(key.id, actor_id="admin-1")

    events = await EventStore(db_session).read_stream(f"pool_key:{key.id}")

    assert [e.type for e in events] == ["pool_key.added", "pool_key.toggled"]
    assert events[0].meta == {"actor_id": "admin-1"}
    assert all("AIzaSecretValue" not in str(e.data) for e in events)
