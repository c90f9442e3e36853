import json

import pytest
from fastapi.testclient import TestClient

from src.narrative.api.deps import get_gateway, get_store
from src.narrative.api.main import app
from src.narrative.domain.models import GeneratedFramework, SFLField
from src.narrative.services.errors import GatewayConfigError, GatewayError
from src.narrative.services.model_router import ModelRouter
from src.narrative.services.prompt_lab import STREAM_ERROR_TEXT


@pytest.fixture
def client(fake_gateway):
    app.dependency_overrides[get_gateway] = lambda: fake_gateway
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_gateway, None)


def _draft(title="Cat tales"):
    return {
        "title": title,
        "goal": "Write about cats",
        "field": {"topic": "cats", "taskType": "story"},
        "tenor": {"aiPersona": "Teacher", "targetAudience": ["kids"]},
        "mode": {"outputFormat": "Markdown"},
        "attachments": [],
    }


def test_health_and_root(client):
    assert client.get("/health").json()["status"] == "ok"
    assert client.get("/").json()["name"] == "SFL Narrative Architect API"


def test_compile_preview(client):
    body = {
        "field": {"topic": "cats"},
        "tenor": {"targetAudience": ["kids"]},
        "attachments": [
            {"id": "1", "name": "n.txt", "type": "text", "status": "done", "analysis": "whiskers"},
            {"id": "2", "name": "v.mp4", "type": "video", "status": "processing", "analysis": "stale"},
        ],
    }
    res = client.post("/prompts/compile", json=body)
    assert res.status_code == 200
    compiled = res.json()["compiledPrompt"]
    assert "**Topic:** cats" in compiled
    assert "whiskers" in compiled and "stale" not in compiled


def test_prompt_crud_and_versions(client):
    created = client.post("/prompts", json=_draft())
    assert created.status_code == 201
    prompt = created.json()
    pid = prompt["id"]
    assert prompt["description"] == "Write about cats"
    assert prompt["sflTenor"]["targetAudience"] == ["kids"]

    assert [p["id"] for p in client.get("/prompts").json()] == [pid]
    assert client.get(f"/prompts/{pid}").json()["title"] == "Cat tales"
    assert client.get("/settings").json()["activePromptId"] == pid

    updated = client.put(f"/prompts/{pid}", json=_draft("Renamed"))
    assert updated.json()["title"] == "Renamed"

    versioned = client.post(f"/prompts/{pid}/versions")
    assert versioned.status_code == 201
    assert len(versioned.json()["versions"]) == 1

    assert client.delete(f"/prompts/{pid}").status_code == 204
    assert client.get(f"/prompts/{pid}").status_code == 404
    assert client.put(f"/prompts/{pid}", json=_draft()).status_code == 404
    assert client.delete(f"/prompts/{pid}").status_code == 404
    assert client.get("/settings").json()["activePromptId"] is None


def test_routes_are_mirrored_under_api_prefix(client):
    assert client.get("/api/prompts").status_code == 200


def test_settings_and_models(client, fake_gateway):
    res = client.put("/settings", json={"theme": "dark", "primaryModel": "gemini-2.5-pro"})
    body = res.json()
    assert body["theme"] == "dark"
    assert body["primaryModel"] == "gemini-2.5-pro"
    assert body["personaModel"] == "gemini-3-pro-preview"

    fake_gateway.models = ["gemini-2.5-flash"]
    assert client.get("/models").json() == ["gemini-2.5-flash"]
    assert client.get("/settings").json()["availableModels"] == ["gemini-2.5-flash"]


def test_ignite_returns_framework(client, fake_gateway):
    fake_gateway.framework = GeneratedFramework(title="Whiskers", field=SFLField(topic="cats"))
    res = client.post("/architect/ignite", json={"goal": "cats"})
    assert res.status_code == 200
    assert res.json()["title"] == "Whiskers"
    assert res.json()["field"]["topic"] == "cats"


def test_ignite_errors(client, fake_gateway):
    assert client.post("/architect/ignite", json={"goal": "   "}).status_code == 400
    fake_gateway.error = GatewayConfigError("no key")
    assert client.post("/architect/ignite", json={"goal": "cats"}).status_code == 503
    fake_gateway.error = GatewayError("upstream down", http_status=500)
    assert client.post("/architect/ignite", json={"goal": "cats"}).status_code == 502


def test_upload_attachments_settles_each_file(client, fake_gateway):
    fake_gateway.fail_mimes["video/mp4"] = GatewayError("quota")
    files = [
        ("files", ("notes.txt", b"plain notes", "text/plain")),
        ("files", ("clip.mp4", b"vid", "video/mp4")),
    ]
    res = client.post("/architect/attachments", files=files)
    assert res.status_code == 201
    notes, clip = res.json()
    assert notes["status"] == "done" and notes["analysis"] == "plain notes"
    assert clip["status"] == "error" and clip["errorMessage"] == "Analysis failed: quota"


def test_persona_uses_store_model_and_maps_token_limit(client, fake_gateway):
    fake_gateway.json_text = json.dumps(
        {"aiPersona": "Poet", "targetAudience": ["readers"], "desiredTone": "Lyrical", "interpersonalStance": "Intimate"}
    )
    files = [("files", ("essay.md", b"Some prose", "text/markdown"))]
    res = client.post("/architect/persona", files=files)
    assert res.status_code == 200
    assert res.json()["aiPersona"] == "Poet"
    assert fake_gateway.calls[-1]["model"] == "gemini-3-pro-preview"

    fake_gateway.error = GatewayError("too many tokens", http_status=400, provider_status="INVALID_ARGUMENT")
    res = client.post("/architect/persona", files=files)
    assert res.status_code == 413
    assert "Files too large" in res.json()["detail"]


def test_invoke_defaults_to_primary_model(client, fake_gateway):
    fake_gateway.text = "A tale."
    res = client.post("/architect/invoke", json={"compiledPrompt": "tell"})
    assert res.json() == {"text": "A tale.", "model": "gemini-3-pro-preview"}
    assert fake_gateway.calls[-1]["model"] == "gemini-3-pro-preview"


def test_invoke_stream_emits_tokens_then_done(client, fake_gateway):
    fake_gateway.chunks = ["Once ", "upon"]
    with client.stream("POST", "/architect/invoke/stream", json={"compiledPrompt": "tell"}) as res:
        body = "".join(res.iter_text())
    events = [line[len("data: "):] for line in body.split("\n") if line.startswith("data: ")]
    assert events[:2] == [json.dumps({"token": "Once "}), json.dumps({"token": "upon"})]
    assert events[-1] == "[DONE]"


def test_invoke_stream_reports_error_event(client, fake_gateway):
    fake_gateway.chunks = ["partial"]
    fake_gateway.error = GatewayError("dropped")
    with client.stream("POST", "/architect/invoke/stream", json={"compiledPrompt": "tell"}) as res:
        body = "".join(res.iter_text())
    assert json.dumps({"error": STREAM_ERROR_TEXT}) in body
    assert body.rstrip().endswith("data: [DONE]")


def test_load_draft_and_recompile_on_read(client):
    store = get_store()
    pid = client.post("/prompts", json=_draft()).json()["id"]
    store.update_prompt(pid, {"compiled_prompt": None})

    prompt = client.get(f"/prompts/{pid}").json()
    assert "**Topic:** cats" in prompt["compiledPrompt"]

    draft = client.get(f"/prompts/{pid}/draft").json()
    assert draft["title"] == "Cat tales"
    assert draft["goal"] == "Write about cats"
    assert draft["tenor"]["targetAudience"] == ["kids"]
    assert client.get("/settings").json()["activePromptId"] == pid
    assert client.get("/prompts/missing/draft").status_code == 404


def test_diag_reports_routing_without_key(client, fake_gateway, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "secret")
    fake_gateway.router = ModelRouter()
    body = client.get("/diag/llm").json()
    assert body["has_api_key"] is True
    assert body["routing"]["video"]["model"] == "gemini-3-pro-preview"
    assert body["routing"]["audio"]["api_key_env"] == "GEMINI_API_KEY"
    assert "secret" not in json.dumps(body)


def test_diag_events_lists_settled_attachments(client):
    client.post("/architect/attachments", files=[("files", ("notes.txt", b"hi", "text/plain"))])
    events = client.get("/diag/events", params={"kind": "attachment_settled"}).json()
    assert [(e["type"], e["status"]) for e in events] == [("text", "done")]
    assert client.get("/diag/events", params={"kind": "bogus"}).status_code == 422
