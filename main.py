"""BioID Resolver - batch entity resolution

Simple CLI for resolving a list of entity names and exporting a CSV.
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

from bioid.config import settings
from bioid.models.entities import (
    ApiProvider,
    EntityType,
    OntologyType,
    Phase,
    ResolutionContext,
    parse_entity_text,
)
from bioid.models.events import SSEEvent
from bioid.resolution.orchestrator import OrchestrationError, ResolutionOrchestrator
from bioid.services import exporter


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def _print_event(event: SSEEvent) -> None:
    event_type = event.event.value
    data = event.data

    if event_type == "entity_started":
        label = "deep" if data.get("deep_search") else "resolve"
        print(f"  [{label}] ({data.get('position')}/{data.get('total')}) {data.get('entity')}")

    elif event_type == "entity_resolved":
        print(f"    [+] {data.get('entity')} -> {data.get('resolved_name') or 'Unknown'}")

    elif event_type == "entity_failed":
        print(f"    [!] {data.get('entity')}: {data.get('error')}")

    elif event_type == "window_completed":
        print(f"  [~] progress {data.get('progress')}/{data.get('total')}")

    elif event_type == "phase_changed":
        print(f"\n[*] Phase: {data.get('phase')}")

    elif event_type == "analysis_complete":
        metrics = data.get("metrics", {})
        print(
            f"\n[*] {metrics.get('resolved')}/{metrics.get('total')} resolved "
            f"({metrics.get('resolved_percent')}%), avg {metrics.get('average_seconds', 0):.2f}s"
        )
        if data.get("cancelled"):
            print("    (stopped by user)")

    elif event_type == "error":
        print(f"\n[!] Error: {data.get('message', 'Unknown error')}")


async def _drain(queue: asyncio.Queue, task: asyncio.Task) -> None:
    """Print events until the phase task finishes."""
    while True:
        getter = asyncio.ensure_future(queue.get())
        done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
        if getter in done:
            _print_event(getter.result())
        else:
            getter.cancel()
        if task in done:
            break
    while not queue.empty():
        _print_event(queue.get_nowait())


async def run_analysis(
    entities: list[str],
    context: ResolutionContext,
    *,
    deep_search: bool,
    output: Path | None,
    concurrency: int | None,
    file_name: str = "",
) -> int:
    """Run the initial phase, optionally the deep search, then export."""
    print(f"Entities: {len(entities)} via {context.provider.value}")
    print("-" * 50)

    orchestrator = ResolutionOrchestrator(concurrency_limit=concurrency)
    queue = orchestrator.subscribe()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.stop)
    except NotImplementedError:
        pass

    try:
        task = orchestrator.start(entities, context, file_name=file_name)
    except OrchestrationError as exc:
        print(f"[!] {exc}")
        return 2
    await _drain(queue, task)

    if orchestrator.phase == Phase.DEEP_SEARCH_PENDING:
        if deep_search:
            await _drain(queue, orchestrator.start_deep_search())
        else:
            failed = len(orchestrator.results.deep_search_candidates())
            print(f"\n[*] {failed} entities need a deep search (rerun with --deep-search).")

    if output is not None and len(orchestrator.results):
        path = exporter.write_csv(orchestrator.results, output)
        print(f"\n[*] Results written to {path}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="BioID Resolver")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", "-i", type=Path, help="Text file with one entity per line")
    source.add_argument("--entities", "-e", nargs="+", help="Entity names")
    parser.add_argument(
        "--provider", "-p", choices=[p.value for p in ApiProvider], default=settings.default_provider
    )
    parser.add_argument("--api-key", default="", help="Provider API key (default: from config)")
    parser.add_argument(
        "--entity-type", choices=[t.value for t in EntityType], default=EntityType.AUTO.value
    )
    parser.add_argument(
        "--ontology", choices=[o.value for o in OntologyType], default=OntologyType.NONE.value
    )
    parser.add_argument("--enable-ontology", action="store_true")
    parser.add_argument("--background", default="", help="Background information for the model")
    parser.add_argument("--deep-search", action="store_true", help="Deep search failed entities")
    parser.add_argument("--concurrency", type=_positive_int, help="Entities per window (default: from config)")
    parser.add_argument("--output", "-o", type=Path, help="CSV output path")

    args = parser.parse_args()

    if args.input:
        entities = parse_entity_text(args.input.read_text(encoding="utf-8"))
        file_name = args.input.name
    else:
        entities = [e.strip() for e in args.entities if e.strip()]
        file_name = ""

    context = ResolutionContext(
        provider=ApiProvider(args.provider),
        api_key=args.api_key,
        entity_type=EntityType(args.entity_type),
        background_info=args.background,
        ontology=OntologyType(args.ontology),
        enable_ontology=args.enable_ontology,
    )
    output = args.output or Path(exporter.export_filename("bioid-export"))

    sys.exit(
        asyncio.run(
            run_analysis(
                entities,
                context,
                deep_search=args.deep_search,
                output=output,
                concurrency=args.concurrency,
                file_name=file_name,
            )
        )
    )


if __name__ == "__main__":
    main()
