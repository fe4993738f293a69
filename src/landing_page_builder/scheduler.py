from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterator, Sequence, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_MAX_PARALLEL = 4

T = TypeVar("T")
R = TypeVar("R")


def batched(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    if size < 1:
        raise ValueError("batch size must be at least 1")
    for start in range(0, len(items), size):
        yield items[start : start + size]


@dataclass
class BatchRun:
    results: list = field(default_factory=list)
    batches: int = 0


async def run_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    max_parallel: int = DEFAULT_MAX_PARALLEL,
) -> BatchRun:
    """Run ``worker`` over ``items``, ``max_parallel`` at a time.

    Batches are barrier-synchronized: batch N+1 starts only after every call
    in batch N has finished. The first exception raised by a worker is
    re-raised once its batch has settled, and no further batch is started.
    """
    run = BatchRun()
    total_batches = (len(items) + max_parallel - 1) // max_parallel

    for index, batch in enumerate(batched(items, max_parallel)):
        logger.debug(
            "Starting batch %s/%s",
            index + 1,
            total_batches,
            extra={"batch_index": index, "batch_size": len(batch)},
        )
        results = await asyncio.gather(*(worker(item) for item in batch), return_exceptions=True)
        run.batches += 1

        for result in results:
            if isinstance(result, BaseException):
                raise result
        run.results.extend(results)

    return run


@dataclass
class GenerationReport:
    plan_id: str
    generated: list[str] = field(default_factory=list)
    generated_names: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    failed_names: list[str] = field(default_factory=list)
    batches: int = 0

    @property
    def total(self) -> int:
        return len(self.generated) + len(self.failed)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    def summary(self) -> str:
        lines = [f"Sections created: {', '.join(self.generated_names) or 'none'}."]
        if self.failed_names:
            lines.append(f"Some sections failed to generate: {', '.join(self.failed_names)}.")
            lines.append("You can try regenerating these sections individually.")
        return "\n".join(lines)


__all__ = ["batched", "run_batches", "BatchRun", "GenerationReport", "DEFAULT_MAX_PARALLEL"]
