import threading

import pytest

from app.schemas.analytics import VolumeByGrade
from app.services.cache_service import CacheService, InProcessRemoteCache, decode_payload, encode_payload
from tests.helpers import BrokenRemote


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(clock):
    return CacheService(remote=InProcessRemoteCache(clock=clock), default_ttl=600, sliding_expiration=120, clock=clock)


def test_fresh_service_reports_zero_hit_rate(service):
    stats = service.get_statistics()
    assert (stats.hits, stats.misses, stats.total, stats.hit_rate_percent) == (0, 0, 0, 0)


def test_miss_then_hit_counts(service):
    assert service.get("k") is None
    service.set("k", 42)
    assert service.get("k") == 42

    stats = service.get_statistics()
    assert stats.hits == 1
    assert stats.misses == 1
    assert stats.total == 2
    assert stats.hit_rate_percent == 50.0


def test_hit_rate_rounded_to_two_places(service):
    service.set("k", "v")
    service.get("k")
    service.get("k")
    service.get("missing")
    assert service.get_statistics().hit_rate_percent == 66.67


def test_counters_exact_under_concurrent_gets(service):
    service.set("present", "v")
    rounds = 500

    def worker():
        for _ in range(rounds):
            service.get("present")
            service.get("absent")

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    stats = service.get_statistics()
    assert stats.hits == 8 * rounds
    assert stats.misses == 8 * rounds
    assert stats.total == 16 * rounds


def test_statistics_serialize_camel_case_rate(service):
    service.get("missing")
    dumped = service.get_statistics().model_dump(by_alias=True)
    assert dumped == {"hits": 0, "misses": 1, "total": 1, "hitRatePercent": 0.0}


def test_entry_expires_after_idle_window(service, clock):
    service.set("k", "v")
    clock.advance(121)
    assert service.get("k") is None
    assert service.get_statistics().misses == 1


def test_access_refreshes_sliding_window(service, clock):
    service.set("k", "v")
    for _ in range(4):
        clock.advance(100)
        assert service.get("k") == "v"


def test_sliding_never_extends_past_absolute_ttl(service, clock):
    service.set("k", "v")
    # Keep the entry warm; it still dies at the 600s ceiling
    for _ in range(5):
        clock.advance(100)
        assert service.get("k") == "v"
    clock.advance(100)
    assert service.get("k") is None


def test_custom_ttl_shorter_than_sliding(service, clock):
    service.set("k", "v", ttl=30)
    clock.advance(31)
    assert service.get("k") is None


def test_last_set_wins(service):
    service.set("k", 1)
    service.set("k", 2)
    assert service.get("k") == 2


def test_remove_is_idempotent(service):
    service.set("k", "v")
    service.remove("k")
    service.remove("k")
    assert service.get("k") is None


def test_clear_keeps_counters(service):
    service.set("a", 1)
    service.get("a")
    service.clear()
    assert service.get("a") is None
    stats = service.get_statistics()
    assert (stats.hits, stats.misses) == (1, 1)


def test_payload_has_big_endian_length_prefix():
    payload = encode_payload({"a": 1})
    body = b'{"a":1}'
    assert payload[:4] == len(body).to_bytes(4, "big")
    assert payload[4:] == body


def test_decode_rejects_truncated_payload():
    payload = encode_payload([1, 2, 3])
    with pytest.raises(ValueError):
        decode_payload(payload[:-1])
    with pytest.raises(ValueError):
        decode_payload(b"\x00\x00")


@pytest.mark.asyncio
async def test_remote_round_trip_with_declared_type(service):
    stats = VolumeByGrade(crude_grade="Brent", total_volume_bbls=1000.0, parcel_count=2, average_volume_bbls=500.0)
    await service.set_remote("grade:brent", stats)

    value = await service.get_remote("grade:brent", VolumeByGrade)
    assert value == stats
    assert await service.get_remote("grade:wti", VolumeByGrade) is None

    counters = service.get_statistics()
    assert (counters.hits, counters.misses) == (1, 1)


@pytest.mark.asyncio
async def test_remote_entry_uses_absolute_ttl(service, clock):
    await service.set_remote("k", {"x": 1}, ttl=60)
    clock.advance(61)
    assert await service.get_remote("k") is None


@pytest.mark.asyncio
async def test_remote_corrupt_payload_is_a_miss(service):
    await service.remote.set("k", b"\x00\x00\x00\x10{}", 60)
    assert await service.get_remote("k") is None


@pytest.mark.asyncio
async def test_remote_outage_never_raises():
    service = CacheService(remote=BrokenRemote(), default_ttl=600, sliding_expiration=120)

    assert await service.get_remote("k") is None
    await service.set_remote("k", {"x": 1})
    await service.remove_remote("k")
    await service.invalidate("k", "j")

    # Local tier keeps working
    service.set("k", 1)
    assert service.get("k") == 1


@pytest.mark.asyncio
async def test_invalidate_drops_both_tiers(service):
    service.set("k", 1)
    await service.set_remote("k", 1)
    await service.invalidate("k")
    assert service.get("k") is None
    assert await service.get_remote("k") is None
