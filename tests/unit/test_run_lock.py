import pytest

from franchise_ops.infrastructure.locks.run_lock import KEY_PREFIX, RunLock


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.keys: dict[str, str] = {}
        self.fail = fail

    async def set_if_absent(self, key, value, ttl_s):
        if self.fail:
            raise ConnectionError("redis down")
        if key in self.keys:
            return False
        self.keys[key] = value
        return True

    async def delete_if_value(self, key, value):
        if self.fail:
            raise ConnectionError("redis down")
        if self.keys.get(key) == value:
            del self.keys[key]
            return True
        return False


@pytest.mark.asyncio
async def test_hold_claims_and_releases():
    redis = FakeRedis()
    lock = RunLock(client=redis, ttl_seconds=30, enabled=True)

    async with lock.hold("action-engine:location:loc-1") as acquired:
        assert acquired is True
        assert KEY_PREFIX + "action-engine:location:loc-1" in redis.keys

    assert redis.keys == {}


@pytest.mark.asyncio
async def test_second_holder_is_refused():
    redis = FakeRedis()
    lock = RunLock(client=redis, ttl_seconds=30, enabled=True)

    async with lock.hold("automation:enrollment:enr-1") as first:
        async with lock.hold("automation:enrollment:enr-1") as second:
            assert first is True
            assert second is False

        # the refused holder must not release the owner's key
        assert KEY_PREFIX + "automation:enrollment:enr-1" in redis.keys


@pytest.mark.asyncio
async def test_release_never_deletes_another_owners_key():
    redis = FakeRedis()
    lock = RunLock(client=redis, ttl_seconds=30, enabled=True)

    token = await lock.acquire("unit")
    redis.keys[KEY_PREFIX + "unit"] = "someone-else"
    await lock.release("unit", token)

    assert redis.keys[KEY_PREFIX + "unit"] == "someone-else"


@pytest.mark.asyncio
async def test_redis_outage_degrades_to_unlocked():
    lock = RunLock(client=FakeRedis(fail=True), ttl_seconds=30, enabled=True)

    async with lock.hold("unit") as acquired:
        assert acquired is True


@pytest.mark.asyncio
async def test_disabled_lock_never_touches_redis():
    redis = FakeRedis(fail=True)
    lock = RunLock(client=redis, ttl_seconds=30, enabled=False)

    async with lock.hold("unit") as acquired:
        assert acquired is True
