"""Tests for API routes."""
import time
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from bioid.api import deps
from bioid.config import settings
from bioid.main import app
from bioid.models.entities import ApiProvider
from bioid.resolution.orchestrator import ResolutionOrchestrator
from bioid.services import gateway
from fakes import ScriptedResolver, resolved, unresolved


@pytest.fixture
def resolver():
    return ScriptedResolver(
        {
            ("BRCA1", False): unresolved("BRCA1"),
            ("BRCA1", True): resolved("BRCA1", resolved_name="BRCA1 DNA repair associated"),
        }
    )


@pytest.fixture
def client(resolver, tmp_path):
    def factory():
        return ResolutionOrchestrator(resolver, concurrency_limit=2, window_delay_seconds=0)

    with patch.object(deps, "orchestrator_factory", factory), patch.object(
        settings, "session_dir", str(tmp_path)
    ):
        with TestClient(app) as test_client:
            yield test_client
    deps.clear_analyses()


def _wait_for(client, analysis_id, *phases, timeout=5.0):
    deadline = time.monotonic() + timeout
    while True:
        data = client.get(f"/api/analyses/{analysis_id}").json()
        if data["phase"] in phases or time.monotonic() > deadline:
            return data
        time.sleep(0.01)


def _start(client, **body):
    response = client.post("/api/analyses", json={"entities": ["TP53", "BRCA1", "EGFR"], **body})
    assert response.status_code == 200
    return response.json()["analysis_id"]


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "bioid"}


def test_list_providers(client):
    response = client.get("/api/providers")
    assert response.status_code == 200
    providers = {p["id"]: p for p in response.json()["providers"]}
    assert set(providers) == {p.value for p in ApiProvider}
    assert providers["Gemini"]["requires_credential"] is False
    assert providers["OpenAI"]["requires_credential"] is True


def test_debug_never_leaks_keys(client):
    with patch.object(settings, "openai_api_key", "sk-1234567890abcdef"):
        data = client.get("/api/debug").json()
    assert data["env"]["HAS_OPENAI_KEY"] is True
    assert data["key_previews"]["OPENAI"] == "sk-1...cdef"
    assert "sk-1234567890abcdef" not in str(data)


def test_full_analysis_flow(client, resolver):
    analysis_id = _start(client, text="\nMYC\n")

    data = _wait_for(client, analysis_id, "deep_search_pending", "complete")
    assert data["phase"] == "deep_search_pending"
    assert data["progress"] == 4
    assert [r["Input Entity"] for r in data["results"]] == ["TP53", "BRCA1", "EGFR", "MYC"]
    assert data["metrics"]["failed"] == 1

    response = client.post(f"/api/analyses/{analysis_id}/deep-search")
    assert response.status_code == 200

    data = _wait_for(client, analysis_id, "complete")
    assert data["phase"] == "complete"
    assert data["results"][1]["Resolved Name"] == "BRCA1 DNA repair associated"
    assert ("BRCA1", True) in resolver.calls

    export = client.get(f"/api/analyses/{analysis_id}/export")
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    assert "bioid-manual-export-" in export.headers["content-disposition"]
    assert export.text.splitlines()[0].startswith('"Input Entity"')

    report = client.get(f"/api/analyses/{analysis_id}/debug-report").json()
    assert report["state"]["phase"] == "complete"
    assert "api_key" not in report["current_config"]
    assert any("Manual export generated" in line for line in report["client_logs"])

    response = client.post(f"/api/analyses/{analysis_id}/reset")
    assert response.status_code == 200
    assert response.json()["phase"] == "idle"

    export = client.get(f"/api/analyses/{analysis_id}/export")
    assert export.status_code == 400


def test_empty_input_rejected(client):
    response = client.post("/api/analyses", json={"entities": ["  "], "text": ""})
    assert response.status_code == 400
    assert response.json()["detail"] == "Input list is empty."


def test_missing_credentials_rejected(client):
    with patch.object(settings, "anthropic_api_key", ""):
        response = client.post(
            "/api/analyses", json={"entities": ["TP53"], "provider": "Anthropic"}
        )
    assert response.status_code == 400
    assert "API credentials missing for Anthropic" in response.json()["detail"]


def test_unknown_analysis_returns_404(client):
    assert client.get(f"/api/analyses/{uuid4()}").status_code == 404
    assert client.post(f"/api/analyses/{uuid4()}/stop").status_code == 404


def test_deep_search_not_pending_is_conflict(client):
    analysis_id = client.post("/api/analyses", json={"entities": ["TP53"]}).json()["analysis_id"]
    _wait_for(client, analysis_id, "complete")

    response = client.post(f"/api/analyses/{analysis_id}/deep-search")
    assert response.status_code == 409


def test_stop_after_completion_is_not_accepted(client):
    analysis_id = client.post("/api/analyses", json={"entities": ["TP53"]}).json()["analysis_id"]
    _wait_for(client, analysis_id, "complete")

    response = client.post(f"/api/analyses/{analysis_id}/stop")
    assert response.status_code == 200
    assert response.json()["accepted"] is False


def test_session_save_and_restore(client):
    analysis_id = _start(client)
    _wait_for(client, analysis_id, "deep_search_pending")

    saved = client.post(f"/api/sessions/{analysis_id}")
    assert saved.status_code == 200
    assert saved.json()["results"] == 3

    deps.clear_analyses()
    restored = client.post(f"/api/sessions/{analysis_id}/restore", json={"api_key": ""})
    assert restored.status_code == 200
    data = restored.json()
    assert data["phase"] == "deep_search_pending"
    assert [r["Input Entity"] for r in data["results"]] == ["TP53", "BRCA1", "EGFR"]

    assert client.delete(f"/api/sessions/{analysis_id}").status_code == 200
    assert client.post(f"/api/sessions/{analysis_id}/restore").status_code == 404


def test_resolve_single_entity(client):
    with patch.object(gateway, "resolve_entity", AsyncMock(return_value=resolved("TP53"))) as mock:
        response = client.post("/api/resolve", json={"entity": " TP53 ", "is_deep_search": True})

    assert response.status_code == 200
    assert response.json()["resolved_name"] == "TP53"
    assert mock.await_args.args[2] == "TP53"
    assert mock.await_args.args[6] is True


def test_resolve_single_entity_maps_provider_errors(client):
    error = gateway.ResolutionError("AI Quota Exceeded: slow down", status_code=429)
    with patch.object(gateway, "resolve_entity", AsyncMock(side_effect=error)):
        response = client.post("/api/resolve", json={"entity": "TP53"})

    assert response.status_code == 429
    assert response.json()["detail"] == "AI Quota Exceeded: slow down"


def test_delete_finished_analysis(client):
    analysis_id = client.post("/api/analyses", json={"entities": ["TP53"]}).json()["analysis_id"]
    _wait_for(client, analysis_id, "complete")

    response = client.delete(f"/api/analyses/{analysis_id}")
    assert response.status_code == 200
    assert client.get(f"/api/analyses/{analysis_id}").status_code == 404
    assert client.delete(f"/api/analyses/{analysis_id}").status_code == 404


def test_delete_running_analysis_is_conflict(client, resolver):
    resolver.delays["SLOW"] = 0.5
    analysis_id = client.post("/api/analyses", json={"entities": ["SLOW"]}).json()["analysis_id"]

    response = client.delete(f"/api/analyses/{analysis_id}")
    assert response.status_code == 409
    assert client.get(f"/api/analyses/{analysis_id}").status_code == 200
    _wait_for(client, analysis_id, "complete")
