from __future__ import annotations

import pytest

from bioid.models.entities import ResolutionContext
from bioid.resolution.resolver import DEFAULT_ERROR_MESSAGE, resolve
from fakes import ScriptedResolver, resolved


@pytest.mark.asyncio
async def test_resolve_success_carries_payload():
    outcome = await resolve(
        ScriptedResolver({"TP53": resolved("TP53")}),
        "TP53",
        is_deep_search=False,
        context=ResolutionContext(),
    )

    assert outcome.success
    assert outcome.payload is not None
    assert outcome.payload.resolved_name == "TP53"
    assert outcome.error_message == ""
    assert outcome.elapsed_seconds >= 0


@pytest.mark.asyncio
async def test_resolve_failure_is_captured():
    outcome = await resolve(
        ScriptedResolver({"TP53": RuntimeError("Gemini API error: bad gateway")}),
        "TP53",
        is_deep_search=True,
        context=ResolutionContext(),
    )

    assert not outcome.success
    assert outcome.payload is None
    assert outcome.error_message == "Gemini API error: bad gateway"
    assert outcome.elapsed_seconds >= 0


@pytest.mark.asyncio
async def test_resolve_blank_error_uses_default_message():
    outcome = await resolve(
        ScriptedResolver({"TP53": RuntimeError("")}),
        "TP53",
        is_deep_search=False,
        context=ResolutionContext(),
    )
    assert outcome.error_message == DEFAULT_ERROR_MESSAGE


@pytest.mark.asyncio
async def test_resolve_timeout():
    outcome = await resolve(
        ScriptedResolver(delays={"slow": 1.0}),
        "slow",
        is_deep_search=False,
        context=ResolutionContext(),
        timeout=0.01,
    )

    assert not outcome.success
    assert outcome.error_message == "Resolution timed out after 0.01s"
    assert outcome.elapsed_seconds < 1.0


@pytest.mark.asyncio
async def test_deep_search_flag_reaches_resolver():
    resolver = ScriptedResolver()
    await resolve(resolver, "EGFR", is_deep_search=True, context=ResolutionContext())
    assert resolver.calls == [("EGFR", True)]
