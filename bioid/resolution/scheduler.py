from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import AsyncGenerator, Callable, Sequence

from bioid.models.entities import ResolutionContext, ResolutionOutcome, ResultRecord
from bioid.resolution import resolver as resolver_task
from bioid.resolution.aggregator import ResultSet, merge
from bioid.resolution.resolver import Resolver


class CancellationToken:
    """Cooperative stop flag checked by the scheduler between windows."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass(slots=True)
class WindowReport:
    index: int
    entities: list[str]
    outcomes: list[ResolutionOutcome]
    completed: int
    total: int
    snapshot: tuple[ResultRecord, ...] = field(default_factory=tuple)

    @property
    def is_last(self) -> bool:
        return self.completed >= self.total


def partition_windows(entities: Sequence[str], size: int) -> list[list[str]]:
    """Split entities into consecutive windows; the last one may be shorter."""
    if size <= 0:
        raise ValueError("concurrency_limit must be greater than zero")
    return [list(entities[i : i + size]) for i in range(0, len(entities), size)]


async def run_batch(
    entities: Sequence[str],
    resolver: Resolver,
    *,
    context: ResolutionContext,
    is_deep_search: bool,
    result_set: ResultSet,
    concurrency_limit: int,
    window_delay_seconds: float = 0.0,
    cancel_token: CancellationToken | None = None,
    timeout: float | None = None,
    on_entity_started: Callable[[str, int], None] | None = None,
) -> AsyncGenerator[WindowReport, None]:
    """Resolve entities window by window, yielding a report after each merge.

    Tasks inside a window run concurrently and are merged in launch order.
    The cancel token is only consulted before a window starts, so a window
    that is already running always finishes and is merged.
    """
    windows = partition_windows(entities, concurrency_limit)
    total = len(entities)

    for index, window in enumerate(windows):
        if cancel_token is not None and cancel_token.cancelled:
            return

        if on_entity_started is not None:
            for offset, entity in enumerate(window):
                on_entity_started(entity, index * concurrency_limit + offset + 1)

        outcomes = await asyncio.gather(
            *(
                resolver_task.resolve(
                    resolver,
                    entity,
                    is_deep_search=is_deep_search,
                    context=context,
                    timeout=timeout,
                )
                for entity in window
            )
        )
        merge(result_set, outcomes, is_deep_search=is_deep_search)

        yield WindowReport(
            index=index,
            entities=window,
            outcomes=list(outcomes),
            completed=min(total, (index + 1) * concurrency_limit),
            total=total,
            snapshot=result_set.snapshot(),
        )

        if index < len(windows) - 1 and window_delay_seconds > 0:
            await asyncio.sleep(window_delay_seconds)


async def run_batch_to_completion(
    entities: Sequence[str],
    resolver: Resolver,
    *,
    context: ResolutionContext,
    is_deep_search: bool = False,
    result_set: ResultSet | None = None,
    concurrency_limit: int = 3,
    window_delay_seconds: float = 0.0,
    cancel_token: CancellationToken | None = None,
    timeout: float | None = None,
) -> ResultSet:
    """Convenience: drain run_batch and return the merged result set."""
    results = result_set if result_set is not None else ResultSet()
    async for _ in run_batch(
        entities,
        resolver,
        context=context,
        is_deep_search=is_deep_search,
        result_set=results,
        concurrency_limit=concurrency_limit,
        window_delay_seconds=window_delay_seconds,
        cancel_token=cancel_token,
        timeout=timeout,
    ):
        pass
    return results
