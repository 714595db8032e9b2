"""
Tests de los backends de la caché de horarios y del helper read_through.
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from classbook.schemas.schedule import ClassOccurrence
from classbook.services.schedule_cache import (
    InMemoryScheduleCache,
    NullScheduleCache,
    RedisScheduleCache,
    build_schedule_cache,
    occurrence_detail_key,
    occurrence_list_key,
    read_through
)


def _occurrence(occurrence_id=1, available_slots=10):
    return ClassOccurrence(
        id=occurrence_id,
        template_id=1,
        name="Yoga",
        category="yoga",
        duration=45,
        capacity=10,
        trainer_id=7,
        start_time=datetime(2024, 1, 1, 6, 0, tzinfo=timezone.utc),
        end_time=datetime(2024, 1, 1, 6, 45, tzinfo=timezone.utc),
        weekdays=[0],
        is_active=True,
        available_slots=available_slots
    )


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestCacheKeys:

    def test_detail_key(self):
        assert occurrence_detail_key(42) == "schedule:occurrence:detail:42"

    def test_list_key_is_canonical(self):
        a = occurrence_list_key({"trainer_id": 3, "category": "yoga", "start_date": None}, 1, 10)
        b = occurrence_list_key({"category": "yoga", "trainer_id": 3}, 1, 10)
        assert a == b
        assert a.startswith("schedule:occurrence:list:")

    def test_list_key_depends_on_pagination(self):
        assert occurrence_list_key({}, 1, 10) != occurrence_list_key({}, 2, 10)


class TestInMemoryScheduleCache:

    @pytest.mark.asyncio
    async def test_set_and_get(self):
        cache = InMemoryScheduleCache()
        await cache.set("k", {"a": 1}, ttl=60)
        assert await cache.get("k") == {"a": 1}
        assert cache.get_stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = InMemoryScheduleCache(clock=clock)
        await cache.set("k", {"a": 1}, ttl=60)

        clock.now += 59
        assert await cache.get("k") == {"a": 1}
        clock.now += 1
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_values_are_copies(self):
        cache = InMemoryScheduleCache()
        value = {"items": [1]}
        await cache.set("k", value, ttl=60)
        value["items"].append(2)
        assert await cache.get("k") == {"items": [1]}

    @pytest.mark.asyncio
    async def test_invalidate_listings_keeps_details(self):
        cache = InMemoryScheduleCache()
        await cache.set(occurrence_list_key({}, 1, 10), {"x": 1}, ttl=60)
        await cache.set(occurrence_list_key({}, 2, 10), {"x": 2}, ttl=60)
        await cache.set(occurrence_detail_key(1), {"id": 1}, ttl=60)

        assert await cache.invalidate_listings() == 2
        assert await cache.get(occurrence_detail_key(1)) == {"id": 1}

    @pytest.mark.asyncio
    async def test_invalidate_occurrence(self):
        cache = InMemoryScheduleCache()
        await cache.set(occurrence_detail_key(1), {"id": 1}, ttl=60)
        await cache.invalidate_occurrence(1)
        assert await cache.get(occurrence_detail_key(1)) is None


class TestRedisScheduleCache:

    @pytest.mark.asyncio
    async def test_set_uses_json_and_ttl(self):
        redis_client = MagicMock()
        redis_client.set = AsyncMock()
        cache = RedisScheduleCache(redis_client)

        await cache.set("k", {"a": 1}, ttl=900)

        redis_client.set.assert_awaited_once_with("k", '{"a": 1}', ex=900)

    @pytest.mark.asyncio
    async def test_redis_errors_are_misses(self):
        redis_client = MagicMock()
        redis_client.get = AsyncMock(side_effect=ConnectionError("redis caído"))
        cache = RedisScheduleCache(redis_client)

        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_corrupt_payload_is_deleted(self):
        redis_client = MagicMock()
        redis_client.get = AsyncMock(return_value="{no-json")
        redis_client.delete = AsyncMock()
        cache = RedisScheduleCache(redis_client)

        assert await cache.get("k") is None
        redis_client.delete.assert_awaited_once_with("k")

    @pytest.mark.asyncio
    async def test_invalidate_listings_scans_pattern(self):
        keys = ["schedule:occurrence:list:a", "schedule:occurrence:list:b"]

        async def scan_iter(match):
            assert match == "schedule:occurrence:list:*"
            for key in keys:
                yield key

        redis_client = MagicMock()
        redis_client.scan_iter = scan_iter
        redis_client.delete = AsyncMock(return_value=2)
        cache = RedisScheduleCache(redis_client)

        assert await cache.invalidate_listings() == 2
        redis_client.delete.assert_awaited_once_with(*keys)


class TestReadThrough:

    @pytest.mark.asyncio
    async def test_miss_fetches_and_stores(self):
        cache = InMemoryScheduleCache()
        fetch = AsyncMock(return_value=_occurrence())

        result = await read_through(cache, "k", fetch, ClassOccurrence, ttl=60)

        assert result == _occurrence()
        assert await cache.get("k") is not None
        fetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_hit_skips_fetch(self):
        cache = InMemoryScheduleCache()
        await read_through(cache, "k", AsyncMock(return_value=_occurrence()), ClassOccurrence, ttl=60)
        fetch = AsyncMock(return_value=_occurrence(available_slots=0))

        result = await read_through(cache, "k", fetch, ClassOccurrence, ttl=60)

        # Lectura obsoleta aceptada hasta que venza el TTL
        assert result.available_slots == 10
        fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_none_is_not_cached(self):
        cache = InMemoryScheduleCache()
        fetch = AsyncMock(return_value=None)

        assert await read_through(cache, "k", fetch, ClassOccurrence, ttl=60) is None
        assert await read_through(cache, "k", fetch, ClassOccurrence, ttl=60) is None
        assert fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_invalid_cached_value_is_refetched(self):
        cache = InMemoryScheduleCache()
        await cache.set("k", {"unexpected": True}, ttl=60)
        fetch = AsyncMock(return_value=_occurrence())

        result = await read_through(cache, "k", fetch, ClassOccurrence, ttl=60)

        assert result == _occurrence()
        fetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_null_cache_always_fetches(self):
        cache = NullScheduleCache()
        fetch = AsyncMock(return_value=_occurrence())

        await read_through(cache, "k", fetch, ClassOccurrence, ttl=60)
        await read_through(cache, "k", fetch, ClassOccurrence, ttl=60)

        assert fetch.await_count == 2


class TestBuildScheduleCache:

    def test_backends(self):
        assert isinstance(build_schedule_cache("memory"), InMemoryScheduleCache)
        assert isinstance(build_schedule_cache("none"), NullScheduleCache)
        assert isinstance(build_schedule_cache("redis", MagicMock()), RedisScheduleCache)

    def test_redis_without_client_disables_cache(self):
        assert isinstance(build_schedule_cache("redis", None), NullScheduleCache)
