"""
Tests for the cached location listing: invalidation by the reservation
service and generation-keyed writes.
"""

import asyncio

import pytest
from httpx import AsyncClient

from parkspot.core.errors import ConflictError, IndeterminateError
from parkspot.services import cache_service, spot_store
from parkspot.services.reservation_service import book_spot, cancel_booking


class FakeCacheRedis:
    """Key/value subset of redis.asyncio with decode_responses=True."""

    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value
        return True

    async def incr(self, key):
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    async def delete(self, *keys):
        return sum(self.store.pop(key, None) is not None for key in keys)


@pytest.fixture
def cache_redis(monkeypatch) -> FakeCacheRedis:
    fake = FakeCacheRedis()

    async def fake_get_redis():
        return fake

    monkeypatch.setattr(cache_service, "get_redis", fake_get_redis)
    return fake


async def prime_listing(data: dict) -> None:
    _, generation = await cache_service.get_cached_listing()
    await cache_service.set_cached_listing(data, generation)
    cached, _ = await cache_service.get_cached_listing()
    assert cached == data


@pytest.mark.asyncio
async def test_booking_and_cancel_invalidate_listing(db_session, downtown, channel, cache_redis):
    await prime_listing({"locations": [], "total": 0})
    await book_spot(db_session, downtown.id, 1, "alice", channel)
    assert (await cache_service.get_cached_listing())[0] is None

    await prime_listing({"locations": [], "total": 0})
    await cancel_booking(db_session, downtown.id, 1, "alice", channel)
    assert (await cache_service.get_cached_listing())[0] is None


@pytest.mark.asyncio
async def test_rejected_booking_keeps_listing(db_session, downtown, channel, cache_redis):
    await book_spot(db_session, downtown.id, 1, "alice", channel)
    await prime_listing({"locations": [], "total": 0})

    with pytest.raises(ConflictError):
        await book_spot(db_session, downtown.id, 1, "bob", channel)

    assert (await cache_service.get_cached_listing())[0] is not None


@pytest.mark.asyncio
async def test_listing_computed_before_commit_is_never_served(db_session, downtown, channel, cache_redis):
    """A reader that started before a booking writes back under a retired generation."""
    _, generation = await cache_service.get_cached_listing()

    await book_spot(db_session, downtown.id, 2, "alice", channel)
    await cache_service.set_cached_listing({"locations": [], "total": 0, "stale": True}, generation)

    cached, current = await cache_service.get_cached_listing()
    assert cached is None
    assert current == generation + 1


@pytest.mark.asyncio
async def test_listing_invalidated_before_viewers_are_notified(db_session, downtown, channel, cache_redis):
    await prime_listing({"locations": [], "total": 0})
    seen_by_viewer = []

    async def viewer(change):
        seen_by_viewer.append((await cache_service.get_cached_listing())[0])

    await channel.subscribe(downtown.id, viewer)
    await book_spot(db_session, downtown.id, 3, "alice", channel)

    for _ in range(100):
        if seen_by_viewer:
            break
        await asyncio.sleep(0.01)
    assert seen_by_viewer == [None]


@pytest.mark.asyncio
async def test_indeterminate_booking_invalidates_listing(db_session, downtown, channel, cache_redis, monkeypatch):
    await prime_listing({"locations": [], "total": 0})
    real_try_occupy = spot_store.try_occupy

    async def commits_then_stalls(db, *args, **kwargs):
        changed = await real_try_occupy(db, *args, **kwargs)
        await db.commit()
        await asyncio.sleep(5)
        return changed

    monkeypatch.setattr(spot_store, "try_occupy", commits_then_stalls)
    with pytest.raises(IndeterminateError):
        await book_spot(db_session, downtown.id, 4, "alice", channel, timeout=1.0)

    assert (await cache_service.get_cached_listing())[0] is None


@pytest.mark.asyncio
async def test_listing_endpoint_serves_fresh_data_after_booking(
    client: AsyncClient, alice_headers, downtown, cache_redis
):
    first = (await client.get("/api/v1/locations/")).json()
    assert first["cached"] is False

    second = (await client.get("/api/v1/locations/")).json()
    assert second["cached"] is True
    assert second["locations"][0]["availability"]["available"] == 50

    booked = await client.post(f"/api/v1/locations/{downtown.id}/spots/5/booking", headers=alice_headers)
    assert booked.status_code == 201

    third = (await client.get("/api/v1/locations/")).json()
    assert third["cached"] is False
    assert third["locations"][0]["availability"]["available"] == 49
