from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable

from loguru import logger

from bioid.config import settings
from bioid.llm_client import has_credential, requires_credential
from bioid.models.entities import Phase, ResolutionContext, ResultRecord
from bioid.models.events import SSEEvent
from bioid.models.session import SessionState
from bioid.resolution.aggregator import PhaseMetrics, ResultSet, compute_metrics, record_from_outcome
from bioid.resolution.resolver import GatewayResolver, Resolver
from bioid.resolution.scheduler import CancellationToken, run_batch
from bioid.services import streaming


class OrchestrationError(Exception):
    """Base class for errors raised to callers of the orchestrator."""


class InputError(OrchestrationError):
    """Rejected before any batch starts; orchestration state is unchanged."""


class PhaseError(OrchestrationError):
    """Command is not allowed in the current phase."""


@dataclass(frozen=True)
class OrchestratorSnapshot:
    results: tuple[ResultRecord, ...]
    phase: Phase
    progress: int
    total_for_progress: int

    @property
    def metrics(self) -> PhaseMetrics:
        return compute_metrics(self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "progress": self.progress,
            "total_for_progress": self.total_for_progress,
            "metrics": self.metrics.to_dict(),
            "results": [record.to_row() for record in self.results],
        }


SnapshotListener = Callable[[OrchestratorSnapshot], None]


class ResolutionOrchestrator:
    """Owns one analysis session: result set, phase, progress and logs.

    Lifecycle:
      idle -> running_initial -> (deep_search_pending | complete)
      deep_search_pending -> running_deep_search -> complete
      complete -> idle (reset)

    ``start`` and ``start_deep_search`` validate synchronously and return
    the asyncio task running the phase. ``stop`` is honoured between
    windows. Subscribers receive SSE events; listeners receive a snapshot
    after every window and every phase transition.
    """

    def __init__(
        self,
        resolver: Resolver | None = None,
        *,
        concurrency_limit: int | None = None,
        window_delay_seconds: float | None = None,
        timeout_seconds: float | None = None,
    ):
        self.resolver = resolver or GatewayResolver()
        self.concurrency_limit = (
            concurrency_limit if concurrency_limit is not None else settings.resolution_concurrency
        )
        if self.concurrency_limit <= 0:
            raise ValueError("concurrency_limit must be greater than zero")
        self.window_delay_seconds = (
            window_delay_seconds
            if window_delay_seconds is not None
            else settings.window_delay_seconds
        )
        timeout = timeout_seconds if timeout_seconds is not None else settings.resolution_timeout_seconds
        self.timeout_seconds = timeout or None

        self.context = ResolutionContext()
        self.entity_list: list[str] = []
        self.file_name = ""
        self.results = ResultSet()
        self.phase = Phase.IDLE
        self.progress = 0
        self.total_for_progress = 0
        self.logs: list[str] = []
        self.last_phase_metrics: PhaseMetrics | None = None

        self._cancel_token = CancellationToken()
        self._task: asyncio.Task | None = None
        self._subscribers: list[asyncio.Queue[SSEEvent]] = []
        self._listeners: list[SnapshotListener] = []

        self.add_log("System initialized. Awaiting data configuration...")

    # --- Observation ---

    def snapshot(self) -> OrchestratorSnapshot:
        return OrchestratorSnapshot(
            results=self.results.snapshot(),
            phase=self.phase,
            progress=self.progress,
            total_for_progress=self.total_for_progress,
        )

    @property
    def metrics(self) -> PhaseMetrics:
        return compute_metrics(self.results)

    @property
    def is_processing(self) -> bool:
        return self.phase.is_running

    def subscribe(self) -> asyncio.Queue[SSEEvent]:
        queue: asyncio.Queue[SSEEvent] = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[SSEEvent]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def add_log(self, message: str) -> None:
        line = f"[{datetime.now().strftime('%H:%M:%S')}] {message}"
        self.logs.append(line)
        logger.info(message)
        self._publish(streaming.log(line))

    async def wait(self) -> None:
        """Wait for the running phase, if any, to finish."""
        if self._task is not None:
            await self._task

    # --- Commands ---

    def start(
        self,
        entities: Iterable[str],
        context: ResolutionContext | None = None,
        *,
        file_name: str = "",
    ) -> asyncio.Task:
        if self.phase != Phase.IDLE:
            raise PhaseError(f"Cannot start an analysis while phase is '{self.phase.value}'.")

        cleaned = [entity.strip() for entity in entities if entity and entity.strip()]
        if not cleaned:
            self.add_log("Error: Input list is empty.")
            raise InputError("Input list is empty.")

        context = context or ResolutionContext()
        if requires_credential(context.provider) and not has_credential(
            context.provider, context.api_key
        ):
            self.add_log(f"Error: API credentials missing for {context.provider.value}.")
            raise InputError(f"API credentials missing for {context.provider.value}.")

        self.entity_list = cleaned
        self.context = context
        self.file_name = file_name
        self.results = ResultSet()
        self.progress = 0
        self.total_for_progress = len(cleaned)
        self._cancel_token = CancellationToken()
        self._set_phase(Phase.RUNNING_INITIAL)
        self.add_log(
            f"--- Initiating Analysis: {len(cleaned)} entities via {context.provider.value} ---"
        )
        self._task = asyncio.create_task(self._guarded(self._run_initial(cleaned)))
        return self._task

    def start_deep_search(self) -> asyncio.Task:
        if self.phase != Phase.DEEP_SEARCH_PENDING:
            raise PhaseError(f"Deep search is not available while phase is '{self.phase.value}'.")

        targets = self.results.deep_search_candidates()
        if not targets:
            self.add_log("No targets for Deep Search.")
            raise InputError("No targets for Deep Search.")

        self._cancel_token = CancellationToken()
        self.progress = 0
        self.total_for_progress = len(targets)
        self._set_phase(Phase.RUNNING_DEEP_SEARCH)
        self.add_log(f"--- Initiating Deep Search: {len(targets)} entities ---")
        self._task = asyncio.create_task(self._guarded(self._run_deep_search(targets)))
        return self._task

    def stop(self) -> bool:
        """Request cancellation at the next window boundary."""
        if not self.phase.is_running:
            return False
        self._cancel_token.cancel()
        self.add_log("Termination signal sent. Finalizing pending request...")
        return True

    def reset(self) -> None:
        if self.phase.is_running:
            raise PhaseError("Cannot reset while an analysis is running; stop it first.")
        self.results = ResultSet()
        self.progress = 0
        self.total_for_progress = 0
        self.last_phase_metrics = None
        self._cancel_token = CancellationToken()
        self._task = None
        self.logs = []
        self._set_phase(Phase.IDLE)
        self.add_log("System reset. Ready for new analysis.")

    # --- Persistence ---

    def to_session_state(self) -> SessionState:
        return SessionState(
            entity_list=list(self.entity_list),
            entity_type=self.context.entity_type,
            background_info=self.context.background_info,
            ontology=self.context.ontology,
            enable_ontology=self.context.enable_ontology,
            api_provider=self.context.provider,
            results=list(self.results.snapshot()),
            logs=list(self.logs),
            analysis_phase=self.phase,
            file_name=self.file_name,
        )

    def restore(self, state: SessionState, *, api_key: str = "") -> None:
        """Load a saved session. Credentials are never persisted, so pass one in."""
        if self.phase.is_running:
            raise PhaseError("Cannot restore a session while an analysis is running.")

        self.entity_list = list(state.entity_list)
        self.context = ResolutionContext(
            provider=state.api_provider,
            api_key=api_key,
            entity_type=state.entity_type,
            background_info=state.background_info,
            ontology=state.ontology,
            enable_ontology=state.enable_ontology,
        )
        self.file_name = state.file_name
        self.results = ResultSet(state.results)
        self.progress = 0
        self.total_for_progress = 0
        self.logs = list(state.logs)
        phase = state.analysis_phase
        if phase.is_running:
            # The task that owned this run is gone; keep its partial results.
            phase = Phase.COMPLETE
        self._set_phase(phase)
        self.add_log("Previous session restored successfully.")

    # --- Internals ---

    def _publish(self, event: SSEEvent) -> None:
        for queue in list(self._subscribers):
            queue.put_nowait(event)

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)

    def _set_phase(self, phase: Phase) -> None:
        previous = self.phase
        self.phase = phase
        self._publish(streaming.phase_changed(phase, previous))
        self._notify()

    async def _guarded(self, run: Any) -> tuple[ResultRecord, ...]:
        try:
            return await run
        except Exception as exc:
            logger.exception("Resolution run failed unexpectedly")
            self._publish(streaming.error("Resolution run failed unexpectedly.", detail=str(exc)))
            self.add_log(f"Error: resolution run failed unexpectedly: {exc}")
            self._set_phase(Phase.COMPLETE)
            return self.results.snapshot()

    async def _run_initial(self, entities: list[str]) -> tuple[ResultRecord, ...]:
        cancelled = await self._run_phase(entities, is_deep_search=False)

        failed = self.results.deep_search_candidates()
        if failed and not cancelled:
            # Closing log goes out before the phase change that ends a stream.
            self.add_log(f"{len(failed)} entities require Deep Search.")
            self._set_phase(Phase.DEEP_SEARCH_PENDING)
        else:
            self.add_log("Analysis finalized successfully.")
            self._set_phase(Phase.COMPLETE)
        return self.results.snapshot()

    async def _run_deep_search(self, entities: list[str]) -> tuple[ResultRecord, ...]:
        await self._run_phase(entities, is_deep_search=True)
        self._set_phase(Phase.COMPLETE)
        return self.results.snapshot()

    async def _run_phase(self, entities: list[str], *, is_deep_search: bool) -> bool:
        total = len(entities)
        label = "Deep Search" if is_deep_search else "Resolving"
        phase_records: list[ResultRecord] = []

        def on_entity_started(entity: str, position: int) -> None:
            self.add_log(f"{label} ({position}/{total}): {entity}")
            self._publish(
                streaming.entity_started(
                    entity, position=position, total=total, deep_search=is_deep_search
                )
            )

        async for report in run_batch(
            entities,
            self.resolver,
            context=self.context,
            is_deep_search=is_deep_search,
            result_set=self.results,
            concurrency_limit=self.concurrency_limit,
            window_delay_seconds=self.window_delay_seconds,
            cancel_token=self._cancel_token,
            timeout=self.timeout_seconds,
            on_entity_started=on_entity_started,
        ):
            for outcome in report.outcomes:
                record = record_from_outcome(outcome)
                phase_records.append(record)
                if outcome.success:
                    self.add_log(
                        f"Success: {outcome.input_entity} resolved to {record.resolved_name or 'Unknown'}"
                    )
                    self._publish(
                        streaming.entity_resolved(
                            outcome.input_entity, record.resolved_name, outcome.elapsed_seconds
                        )
                    )
                else:
                    self.add_log(f"Failed '{outcome.input_entity}': {outcome.error_message}")
                    self._publish(
                        streaming.entity_failed(
                            outcome.input_entity, outcome.error_message, outcome.elapsed_seconds
                        )
                    )
            self.progress = report.completed
            self._publish(
                streaming.window_completed(
                    report.index, progress=self.progress, total=total, results=report.snapshot
                )
            )
            self._notify()

        cancelled = self._cancel_token.cancelled
        if cancelled and self.progress < total:
            self.add_log("Execution aborted by user.")

        metrics = compute_metrics(phase_records)
        resolved_percent = metrics.resolved / total * 100 if total else 0.0
        self.last_phase_metrics = metrics
        self.add_log("--- Analysis Cycle Complete ---")
        self.add_log(
            f"Metrics: {metrics.resolved}/{total} resolved ({resolved_percent:.1f}%)"
        )
        self.add_log(f"Performance: Avg {metrics.average_seconds:.2f}s per entity")
        self._publish(
            streaming.analysis_complete(
                Phase.RUNNING_DEEP_SEARCH if is_deep_search else Phase.RUNNING_INITIAL,
                metrics.to_dict(),
                cancelled=cancelled,
            )
        )
        return cancelled
