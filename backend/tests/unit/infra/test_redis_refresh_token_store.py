"""Redis refresh token store on fakeredis: key layout and optimistic locking."""

from __future__ import annotations

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta

import fakeredis
import pytest
from readlog.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore
from readlog.services._shared.ports import RotationResult


@pytest.fixture()
def r():
    return fakeredis.FakeRedis()


@pytest.fixture()
def store(r):
    return RedisRefreshTokenStore(r=r)


@pytest.fixture()
def now():
    return datetime.now(UTC)


def test_layout_has_no_ttl(store, r, now):
    user_id = uuid.uuid4()
    store.add(token="abc", user_id=user_id, created_at=now, expires_at=now + timedelta(days=7))

    assert r.hget("rt:abc", "revoked") == b"0"
    assert r.smembers(f"rt:u:{user_id}") == {b"abc"}
    # Retained past expiry for replay detection
    assert r.ttl("rt:abc") == -1


def test_concurrent_rotation_single_winner(now):
    server = fakeredis.FakeServer()
    seed = RedisRefreshTokenStore(r=fakeredis.FakeRedis(server=server))
    user_id = uuid.uuid4()
    seed.add(token="shared", user_id=user_id, created_at=now, expires_at=now + timedelta(days=7))

    workers = 8
    barrier = threading.Barrier(workers)

    def redeem(i):
        store = RedisRefreshTokenStore(r=fakeredis.FakeRedis(server=server))
        barrier.wait()
        return store.rotate(
            old_token="shared", new_token=f"next-{i}", now=now, new_expires_at=now + timedelta(days=7)
        )

    with ThreadPoolExecutor(max_workers=workers) as pool:
        outcomes = list(pool.map(redeem, range(workers)))

    assert outcomes.count(RotationResult.OK) == 1
    assert set(outcomes) == {RotationResult.OK, RotationResult.REVOKED}
    assert len(seed.list_active_for_user(user_id, now=now)) == 1


def test_rotate_rejects_existing_new_value(store, now):
    user_id = uuid.uuid4()
    for token in ("old", "clash"):
        store.add(token=token, user_id=user_id, created_at=now, expires_at=now + timedelta(days=1))

    with pytest.raises(ValueError):
        store.rotate(old_token="old", new_token="clash", now=now, new_expires_at=now + timedelta(days=1))
    assert store.get("old").revoked is False


def test_concurrent_add_of_same_value_keeps_first_owner(now):
    server = fakeredis.FakeServer()
    r = fakeredis.FakeRedis(server=server)
    owners = [uuid.uuid4() for _ in range(8)]
    barrier = threading.Barrier(len(owners))

    def add(owner):
        store = RedisRefreshTokenStore(r=fakeredis.FakeRedis(server=server))
        barrier.wait()
        try:
            store.add(token="dup", user_id=owner, created_at=now, expires_at=now + timedelta(days=7))
        except ValueError:
            return False
        return True

    with ThreadPoolExecutor(max_workers=len(owners)) as pool:
        outcomes = list(pool.map(add, owners))

    assert outcomes.count(True) == 1
    winner = owners[outcomes.index(True)]
    assert RedisRefreshTokenStore(r=r).get("dup").user_id == winner
    assert [o for o in owners if r.sismember(f"rt:u:{o}", "dup")] == [winner]


def test_add_existing_value_is_rejected(store, now):
    user_id = uuid.uuid4()
    store.add(token="once", user_id=user_id, created_at=now, expires_at=now + timedelta(days=1))

    with pytest.raises(ValueError, match="already exists"):
        store.add(token="once", user_id=uuid.uuid4(), created_at=now, expires_at=now + timedelta(days=2))
    assert store.get("once").user_id == user_id
