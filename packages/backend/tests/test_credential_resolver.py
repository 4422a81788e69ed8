"""CredentialResolver tests — personal key first, pool second, else nothing."""

import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from auratask.db.models import PoolKey, UserSettings
from auratask.services.credential_pool import CredentialPool
from auratask.services.credential_resolver import (
    SOURCE_PERSONAL,
    SOURCE_POOL,
    CredentialResolver,
)


def _resolver(db) -> CredentialResolver:
    return CredentialResolver(db, CredentialPool(db))


async def _pool_usage(db) -> list[int]:
    result = await db.execute(select(PoolKey.usage_count).order_by(PoolKey.id))
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_personal_key_never_touches_pool(db_session):
    user_id = uuid.uuid4()
    db_session.add(UserSettings(user_id=user_id, gemini_api_key="AIzaPersonal"))
    db_session.add(PoolKey(api_key="AIzaPooled", usage_count=0))
    await db_session.commit()
    resolver = _resolver(db_session)

    for _ in range(3):
        credential = await resolver.resolve(user_id)
        assert credential.api_key == "AIzaPersonal"
        assert credential.source == SOURCE_PERSONAL
        assert credential.pool_key_id is None

    assert await _pool_usage(db_session) == [0]


@pytest.mark.asyncio
async def test_no_personal_key_uses_pool(db_session):
    pooled = PoolKey(api_key="AIzaPooled", usage_count=0)
    db_session.add(pooled)
    await db_session.commit()

    credential = await _resolver(db_session).resolve(uuid.uuid4())

    assert credential.api_key == "AIzaPooled"
    assert credential.source == SOURCE_POOL
    assert credential.pool_key_id == pooled.id
    assert await _pool_usage(db_session) == [1]


@pytest.mark.asyncio
async def test_blank_personal_key_falls_back_to_pool(db_session):
    user_id = uuid.uuid4()
    db_session.add(UserSettings(user_id=user_id, gemini_api_key="   "))
    db_session.add(PoolKey(api_key="AIzaPooled", usage_count=0))
    await db_session.commit()

    credential = await _resolver(db_session).resolve(user_id)

    assert credential.source == SOURCE_POOL


@pytest.mark.asyncio
async def test_nothing_available(db_session):
    db_session.add(PoolKey(api_key="AIzaOff", is_active=False))
    await db_session.commit()

    assert await _resolver(db_session).resolve(uuid.uuid4()) is None


@pytest.mark.asyncio
async def test_new_personal_key_applies_on_next_call(db_session):
    """Nothing is cached between calls."""
    user_id = uuid.uuid4()
    db_session.add(PoolKey(api_key="AIzaPooled", usage_count=0))
    await db_session.commit()
    resolver = _resolver(db_session)

    assert (await resolver.resolve(user_id)).source == SOURCE_POOL

    db_session.add(UserSettings(user_id=user_id, gemini_api_key="AIzaMine"))
    await db_session.commit()

    assert (await resolver.resolve(user_id)).api_key == "AIzaMine"


@pytest.mark.asyncio
async def test_personal_lookup_failure_degrades_to_pool(db_session, monkeypatch):
    db_session.add(PoolKey(api_key="AIzaPooled", usage_count=0))
    await db_session.commit()

    resolver = _resolver(db_session)
    real_execute = db_session.execute
    calls = {"n": 0}

    async def flaky_execute(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise OperationalError("SELECT user_settings", {}, Exception("timeout"))
        return await real_execute(*args, **kwargs)

    monkeypatch.setattr(db_session, "execute", flaky_execute)
    credential = await resolver.resolve(uuid.uuid4())

    assert credential is not None
    assert credential.source == SOURCE_POOL


def test_credential_repr_hides_key():
    from auratask.services.credential_resolver import Credential

    credential = Credential(api_key="AIzaTopSecret", source=SOURCE_POOL, pool_key_id=4)
    assert "AIzaTopSecret" not in repr(credential)
