from __future__ import annotations

import asyncio
import time
from typing import Protocol

from bioid.models.entities import EntityResolution, ResolutionContext, ResolutionOutcome
from bioid.services import gateway
from bioid.services import logger as log_service

DEFAULT_ERROR_MESSAGE = "Network or Provider error."


class Resolver(Protocol):
    """Anything that can turn one entity name into an EntityResolution."""

    async def resolve(
        self, entity: str, *, is_deep_search: bool, context: ResolutionContext
    ) -> EntityResolution: ...


class GatewayResolver:
    """Resolver backed by the provider gateway."""

    async def resolve(
        self, entity: str, *, is_deep_search: bool, context: ResolutionContext
    ) -> EntityResolution:
        return await gateway.resolve_entity(
            context.provider,
            context.api_key,
            entity,
            context.entity_type.value,
            context.background_info,
            context.ontology,
            is_deep_search,
            context.enable_ontology,
        )


async def resolve(
    resolver: Resolver,
    entity: str,
    *,
    is_deep_search: bool,
    context: ResolutionContext,
    timeout: float | None = None,
) -> ResolutionOutcome:
    """Run one resolution and capture its result as a ResolutionOutcome.

    Provider failures and timeouts become failed outcomes; this function
    does not raise for them. Elapsed time is measured in both cases.
    """
    t0 = time.monotonic()
    try:
        call = resolver.resolve(entity, is_deep_search=is_deep_search, context=context)
        if timeout:
            payload = await asyncio.wait_for(call, timeout=timeout)
        else:
            payload = await call
    except Exception as exc:
        elapsed = time.monotonic() - t0
        if timeout and isinstance(exc, asyncio.TimeoutError):
            message = f"Resolution timed out after {timeout:g}s"
        else:
            message = str(exc).strip() or DEFAULT_ERROR_MESSAGE
        log_service.log_resolution(entity, False, elapsed, deep_search=is_deep_search, error=message)
        return ResolutionOutcome(
            input_entity=entity, success=False, error_message=message, elapsed_seconds=elapsed
        )

    elapsed = time.monotonic() - t0
    log_service.log_resolution(entity, True, elapsed, deep_search=is_deep_search)
    return ResolutionOutcome(
        input_entity=entity, success=True, payload=payload, elapsed_seconds=elapsed
    )
