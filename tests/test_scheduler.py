from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from bioid.models.entities import ResolutionContext
from bioid.resolution.aggregator import ResultSet
from bioid.resolution.scheduler import (
    CancellationToken,
    partition_windows,
    run_batch,
    run_batch_to_completion,
)
from fakes import ScriptedResolver

ENTITIES = ["TP53", "BRCA1", "aspirin", "EGFR", "glucose", "insulin", "MYC"]


def test_partition_windows_sizes():
    windows = partition_windows(ENTITIES, 3)
    assert [len(w) for w in windows] == [3, 3, 1]
    assert windows[2] == ["MYC"]


def test_partition_windows_rejects_non_positive_limit():
    with pytest.raises(ValueError):
        partition_windows(ENTITIES, 0)


@pytest.mark.asyncio
async def test_run_batch_reports_progress_per_window():
    results = ResultSet()
    reports = [
        report
        async for report in run_batch(
            ENTITIES,
            ScriptedResolver(),
            context=ResolutionContext(),
            is_deep_search=False,
            result_set=results,
            concurrency_limit=3,
        )
    ]

    assert [len(r.entities) for r in reports] == [3, 3, 1]
    assert [r.completed for r in reports] == [3, 6, 7]
    assert [len(r.snapshot) for r in reports] == [3, 6, 7]
    assert reports[-1].is_last


@pytest.mark.asyncio
async def test_results_follow_input_order_not_completion_order():
    # First entity in each window finishes last.
    delays = {"TP53": 0.03, "BRCA1": 0.02, "aspirin": 0.01, "EGFR": 0.03, "glucose": 0.01}
    results = await run_batch_to_completion(
        ENTITIES,
        ScriptedResolver(delays=delays),
        context=ResolutionContext(),
        concurrency_limit=3,
    )

    assert len(results) == len(ENTITIES)
    assert [record.input_entity for record in results] == ENTITIES


@pytest.mark.asyncio
async def test_window_concurrency_is_bounded():
    resolver = ScriptedResolver(delays={name: 0.01 for name in ENTITIES})
    await run_batch_to_completion(
        ENTITIES, resolver, context=ResolutionContext(), concurrency_limit=3
    )
    assert resolver.max_in_flight == 3


@pytest.mark.asyncio
async def test_cancel_during_second_window_skips_the_rest():
    token = CancellationToken()

    def cancel_on_egfr(entity: str) -> None:
        if entity == "EGFR":
            token.cancel()

    resolver = ScriptedResolver(on_call=cancel_on_egfr)
    results = await run_batch_to_completion(
        ENTITIES,
        resolver,
        context=ResolutionContext(),
        concurrency_limit=3,
        cancel_token=token,
    )

    # Window 2 still runs to completion; window 3 never launches.
    assert [record.input_entity for record in results] == ENTITIES[:6]
    assert "MYC" not in [call[0] for call in resolver.calls]


@pytest.mark.asyncio
async def test_failure_does_not_abort_the_batch():
    entities = ["A", "B", "C", "D", "E"]
    resolver = ScriptedResolver({"C": RuntimeError("provider exploded")})
    results = await run_batch_to_completion(
        entities, resolver, context=ResolutionContext(), concurrency_limit=3
    )

    records = list(results)
    assert len(records) == 5
    assert records[2].validation_issues == "Resolution error: provider exploded"
    for index in (0, 1, 3, 4):
        assert records[index].validation_issues == ""
        assert records[index].resolved_name == entities[index].upper()


@pytest.mark.asyncio
async def test_inter_window_delay_only_between_windows():
    with patch("bioid.resolution.scheduler.asyncio.sleep", new=AsyncMock()) as sleep:
        await run_batch_to_completion(
            ENTITIES,
            ScriptedResolver(),
            context=ResolutionContext(),
            concurrency_limit=3,
            window_delay_seconds=0.8,
        )

    delays = [c.args[0] for c in sleep.await_args_list]
    assert delays == [0.8, 0.8]
