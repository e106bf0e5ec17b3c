"""Tests for per-host request pacing."""
import asyncio

from ordersync.fetch.rate_limit import RequestPacer


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(round(seconds, 3))
        self.now += seconds


def test_same_host_requests_are_spaced():
    """Test back-to-back requests to one host wait out the interval."""
    clock = FakeClock()
    pacer = RequestPacer(2.0, clock=clock, sleep=clock.sleep)

    async def go():
        for _ in range(3):
            await pacer.wait("https://api.opensea.io/v2/orders/ethereum/seaport/listings")

    asyncio.run(go())

    assert clock.sleeps == [0.5, 0.5]


def test_hosts_are_paced_independently():
    """Test the indexer doesn't wait on the feed."""
    clock = FakeClock()
    pacer = RequestPacer(2.0, clock=clock, sleep=clock.sleep)

    async def go():
        await pacer.wait("https://api.opensea.io/a")
        return await pacer.wait("https://indexer.test/collections/v5")

    assert asyncio.run(go()) == 0.0
    assert clock.sleeps == []


def test_elapsed_interval_needs_no_wait():
    clock = FakeClock()
    pacer = RequestPacer(2.0, clock=clock, sleep=clock.sleep)

    async def go():
        await pacer.wait("https://api.opensea.io/a")
        clock.now += 1.0
        return await pacer.wait("https://api.opensea.io/b")

    assert asyncio.run(go()) == 0.0


def test_zero_rate_disables_pacing():
    clock = FakeClock()
    pacer = RequestPacer(0, clock=clock, sleep=clock.sleep)

    async def go():
        for _ in range(5):
            await pacer.wait("https://api.opensea.io/a")

    asyncio.run(go())
    assert clock.sleeps == []
