import asyncio
import math

import pytest

from landing_page_builder.scheduler import GenerationReport, batched, run_batches


def test_batched_splits_in_order() -> None:
    assert [list(batch) for batch in batched([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]
    assert list(batched([], 4)) == []
    with pytest.raises(ValueError):
        list(batched([1], 0))


@pytest.mark.parametrize("count", [0, 1, 4, 5, 9, 12])
def test_batch_count_and_concurrency_cap(count) -> None:
    in_flight = 0
    peak = 0

    async def worker(item: int) -> int:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.001)
        in_flight -= 1
        return item * 10

    run = asyncio.run(run_batches(list(range(count)), worker, max_parallel=4))

    assert run.batches == math.ceil(count / 4)
    assert run.results == [item * 10 for item in range(count)]
    assert peak <= 4


def test_next_batch_waits_for_the_slowest_call() -> None:
    events = []

    async def worker(item: tuple[str, float]) -> str:
        name, delay = item
        events.append(f"start {name}")
        await asyncio.sleep(delay)
        events.append(f"end {name}")
        return name

    items = [("a", 0.02), ("b", 0.0), ("c", 0.0)]
    asyncio.run(run_batches(items, worker, max_parallel=2))

    assert events.index("start c") > events.index("end a")


def test_worker_exception_stops_later_batches() -> None:
    started = []

    async def worker(item: int) -> int:
        started.append(item)
        if item == 1:
            raise RuntimeError("fatal")
        return item

    with pytest.raises(RuntimeError, match="fatal"):
        asyncio.run(run_batches([0, 1, 2, 3], worker, max_parallel=2))

    assert sorted(started) == [0, 1]


def test_generation_report_summary() -> None:
    report = GenerationReport(
        plan_id="plan-1",
        generated=["s1", "s2"],
        generated_names=["Header", "Hero"],
        failed=["s3"],
        failed_names=["Pricing"],
        batches=1,
    )

    assert report.total == 3
    assert report.has_failures
    assert "Sections created: Header, Hero." in report.summary()
    assert "Pricing" in report.summary()
