from assisads.infra import timings
from assisads.infra.timings import record_timing, snapshot, timeit


async def test_timeit_records_one_sample_per_block():
    timings.reset()
    async with timeit("inventory.claim"):
        pass
    async with timeit("inventory.claim"):
        pass

    snap = snapshot()
    assert snap["inventory.claim"]["n"] == 2
    assert snap["inventory.claim"]["mean"] >= 0.0


def test_snapshot_stats():
    timings.reset()
    for v in (1.0, 2.0, 3.0):
        record_timing("ledger.append", v)
    record_timing("single", 0.5)

    snap = snapshot()
    assert snap["ledger.append"] == {"n": 3, "mean": 2.0, "std": 1.0}
    assert snap["single"] == {"n": 1, "mean": 0.5, "std": 0.0}

    timings.reset()
    assert snapshot() == {}
