"""Tests for the FastAPI application endpoints."""

from __future__ import annotations

import asyncio

import pytest
from fastapi import HTTPException
from httpx import ASGITransport

from vsl_studio.api import app as app_module
from vsl_studio.suggest.client import CompletionError, HttpCompletionClient
from vsl_studio.suggest.coordinator import SuggestionCoordinator, SuggestionPolicy, SuggestionState


VSL_FORM = {
    "kind": "curta",
    "duration": "5-8",
    "approach": "problema",
    "cta": "whatsapp",
    "elements": ["urgencia", "garantia"],
}


# Auth


async def test_signup_and_login(client):
    resp = await client.post("/api/auth/signup", json={"email": "bia@example.com", "password": "segredo1"})
    assert resp.status_code == 201
    user = resp.json()["user"]
    assert user["name"] == "bia"
    assert "password_hash" not in user

    resp = await client.post("/api/auth/login", json={"email": "bia@example.com", "password": "segredo1"})
    assert resp.status_code == 200
    assert resp.json()["user"]["id"] == user["id"]


@pytest.mark.parametrize(
    "body, status",
    [
        ({"email": "", "password": "segredo1"}, 400),
        ({"email": "sem-arroba", "password": "segredo1"}, 400),
        ({"email": "bia@example.com", "password": "123"}, 400),
    ],
)
async def test_signup_validation(client, body, status):
    resp = await client.post("/api/auth/signup", json=body)
    assert resp.status_code == status


async def test_signup_duplicate(client, user):
    resp = await client.post("/api/auth/signup", json={"email": "ana@example.com", "password": "segredo1"})
    assert resp.status_code == 409


async def test_login_errors(client, user):
    assert (await client.post("/api/auth/login", json={"email": "ana@example.com"})).status_code == 400
    assert (await client.post("/api/auth/login", json={"email": "x@example.com", "password": "segredo1"})).status_code == 404
    assert (await client.post("/api/auth/login", json={"email": "ana@example.com", "password": "errada"})).status_code == 401


# Projects


async def test_create_and_get_project(client, user):
    resp = await client.post(
        "/api/projects",
        json={
            "user_id": user.user_id,
            "name": "Mentoria",
            "niche": "finanças",
            "business_model": "servicos",
            "main_promise": "Saia das dívidas em 90 dias",
            "competitive_edges": ["método próprio"],
        },
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["description"] == "Saia das dívidas em 90 dias"
    assert data["user"]["email"] == "ana@example.com"
    assert data["creative_count"] == 0

    resp = await client.get(f"/api/projects/{data['id']}")
    assert resp.status_code == 200
    assert resp.json()["competitive_edges"] == ["método próprio"]


async def test_create_project_validation(client, user):
    resp = await client.post("/api/projects", json={"user_id": user.user_id, "name": "X"})
    assert resp.status_code == 400
    resp = await client.post("/api/projects", json={"user_id": "nobody", "name": "X", "niche": "a", "business_model": "b"})
    assert resp.status_code == 404


async def test_update_project(client, project):
    resp = await client.put(f"/api/projects/{project.project_id}", json={"name": "", "price_range": "ate-100"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == project.name
    assert data["price_range"] == "ate-100"


async def test_delete_project_reports_creatives(client, store, project):
    store.create_creative(project.project_id, title="VSL", type="VSL")
    resp = await client.delete(f"/api/projects/{project.project_id}")
    assert resp.json()["deleted_creatives"] == 1
    assert (await client.get(f"/api/projects/{project.project_id}")).status_code == 404


async def test_user_projects(client, user, project):
    resp = await client.get(f"/api/users/{user.user_id}/projects")
    assert [p["id"] for p in resp.json()] == [project.project_id]
    assert (await client.get("/api/users/nobody/projects")).status_code == 404


async def test_list_projects(client, project):
    resp = await client.get("/api/projects")
    assert [p["name"] for p in resp.json()] == ["Curso de Confeitaria"]


# Creatives


async def test_creative_crud(client, project):
    resp = await client.post(
        "/api/creatives",
        json={"title": "VSL 1", "type": "VSL", "project_id": project.project_id, "vsl_parameters": VSL_FORM},
    )
    assert resp.status_code == 201
    creative = resp.json()
    assert creative["status"] == "DRAFT"
    assert creative["project"] == {"id": project.project_id, "name": project.name}

    resp = await client.put(f"/api/creatives/{creative['id']}", json={"content": "novo texto", "status": "REVIEW"})
    assert resp.json()["content"] == "novo texto"
    assert resp.json()["vsl_parameters"] == VSL_FORM

    resp = await client.get("/api/creatives", params={"project_id": project.project_id, "type": "VSL"})
    assert [c["id"] for c in resp.json()] == [creative["id"]]

    assert (await client.delete(f"/api/creatives/{creative['id']}")).status_code == 200
    assert (await client.get(f"/api/creatives/{creative['id']}")).status_code == 404


async def test_creative_validation(client, project):
    assert (await client.post("/api/creatives", json={"title": "X"})).status_code == 400
    bad_type = {"title": "X", "type": "PODCAST", "project_id": project.project_id}
    assert (await client.post("/api/creatives", json=bad_type)).status_code == 400
    missing = {"title": "X", "type": "VSL", "project_id": "nope"}
    assert (await client.post("/api/creatives", json=missing)).status_code == 404


async def test_creative_metrics(client, store, project):
    creative = store.create_creative(project.project_id, title="VSL", type="VSL", content="Clique no botão agora.")
    resp = await client.get(f"/api/creatives/{creative.creative_id}/metrics")
    assert resp.json()["ctas"] == 1
    assert resp.json()["words"] == 4


# Improvement chat


async def test_improve_with_quick_action(client, store, provider, project):
    creative = store.create_creative(project.project_id, title="VSL", type="VSL", content="Olá, meu nome é Ana.")
    provider.script = "PARE TUDO! Olá, meu nome é Ana."

    resp = await client.post(f"/api/creatives/{creative.creative_id}/improve", json={"action": "improve-hook"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["creative"]["content"] == "PARE TUDO! Olá, meu nome é Ana."
    history = data["creative"]["chat_history"]
    assert [m["role"] for m in history] == ["user", "assistant"]
    assert history[0]["text"] == "Executar ação: Melhorar Gancho"
    assert "Olá, meu nome é Ana." in provider.prompts[-1]


async def test_improve_with_free_text(client, store, provider, project):
    creative = store.create_creative(project.project_id, title="VSL", type="VSL", content="texto")
    resp = await client.post(f"/api/creatives/{creative.creative_id}/improve", json={"message": "mais curto"})
    assert resp.status_code == 200
    assert "**INSTRUÇÃO:** mais curto" in provider.prompts[-1]


async def test_improve_errors(client, store, provider, project):
    empty = store.create_creative(project.project_id, title="VSL", type="VSL")
    assert (await client.post(f"/api/creatives/{empty.creative_id}/improve", json={"action": "improve-hook"})).status_code == 400

    creative = store.create_creative(project.project_id, title="VSL", type="VSL", content="texto")
    url = f"/api/creatives/{creative.creative_id}/improve"
    assert (await client.post(url, json={})).status_code == 400
    assert (await client.post(url, json={"action": "dance"})).status_code == 400

    provider.fail = True
    resp = await client.post(url, json={"action": "add-urgency"})
    assert resp.status_code == 500
    assert store.read_creative(creative.creative_id).content == "texto"


# Generation


async def test_generate_vsl_without_project(client, provider):
    resp = await client.post("/api/generate-vsl", json=VSL_FORM)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["script"] == provider.script
    assert data["slides"][1] == "Slide 2: O Grande Problema"
    assert data["timing"]["total"] == "8 minutos"
    assert data["teleprompter"].startswith("INTRODUÇÃO")
    assert "CONTEXTO DO PROJETO" not in provider.prompts[-1]


async def test_generate_vsl_with_stored_project(client, store, provider, project):
    resp = await client.post("/api/generate-vsl", json={**VSL_FORM, "project_id": project.project_id})
    assert resp.status_code == 200
    assert 'Adapte a linguagem para o nicho "confeitaria"' in provider.prompts[-1]
    runs = store.list_run_manifests(project.project_id)
    assert runs[-1]["type"] == "vsl_generate"
    assert runs[-1]["inputs"]["approach"] == "problema"


async def test_generate_vsl_with_inline_project(client, provider):
    body = {**VSL_FORM, "project": {"niche": "pets", "business_model": "ecommerce"}}
    resp = await client.post("/api/generate-vsl", json=body)
    assert resp.status_code == 200
    assert "- Modelo de Negócio: E-commerce/Loja Virtual" in provider.prompts[-1]


async def test_generate_vsl_validation(client, provider):
    assert (await client.post("/api/generate-vsl", json={**VSL_FORM, "cta": ""})).status_code == 400
    assert (await client.post("/api/generate-vsl", json={**VSL_FORM, "kind": "gigante"})).status_code == 400
    assert (await client.post("/api/generate-vsl", json={**VSL_FORM, "project_id": "nope"})).status_code == 404
    assert provider.prompts == []


async def test_generate_vsl_provider_failure(client, provider):
    provider.fail = True
    resp = await client.post("/api/generate-vsl", json=VSL_FORM)
    assert resp.status_code == 500
    assert "error" in resp.json()


def test_missing_api_key_is_a_client_error(monkeypatch):
    monkeypatch.setattr(app_module.settings, "openai_api_key", None)
    with pytest.raises(HTTPException) as exc_info:
        app_module._get_text_provider()
    assert exc_info.value.status_code == 400


# Autocomplete


async def test_autocomplete(client, provider):
    resp = await client.post("/api/autocomplete", json={"prompt": "Ol"})
    assert resp.status_code == 200
    assert resp.json() == {"suggestion": "á, tudo bem?"}
    assert provider.fragments == ["Ol"]


async def test_autocomplete_blank_prompt_skips_provider(client, provider):
    resp = await client.post("/api/autocomplete", json={"prompt": "   "})
    assert resp.json() == {"suggestion": ""}
    assert provider.fragments == []


async def test_autocomplete_failure_is_500(client, provider):
    provider.fail = True
    resp = await client.post("/api/autocomplete", json={"prompt": "Ol"})
    assert resp.status_code == 500


async def test_http_client_against_app(client, provider):
    async with HttpCompletionClient("http://test", transport=ASGITransport(app=app_module.app)) as completion:
        assert await completion.complete("Ol") == "á, tudo bem?"

        provider.fail = True
        with pytest.raises(CompletionError):
            await completion.complete("Ol")


async def test_coordinator_end_to_end(client, provider):
    async with HttpCompletionClient("http://test", transport=ASGITransport(app=app_module.app)) as completion:
        coord = SuggestionCoordinator(completion.complete, policy=SuggestionPolicy(min_chars=2))
        coord.request_suggestion("Ol", 2)
        for _ in range(100):
            if not coord.state.is_loading:
                break
            await asyncio.sleep(0.01)
        assert coord.state == SuggestionState(text="á, tudo bem?", is_loading=False, visible=True)

        provider.fail = True
        coord.request_suggestion("Olá mu", 6)
        for _ in range(100):
            if not coord.state.is_loading:
                break
            await asyncio.sleep(0.01)
        assert coord.state == SuggestionState()


# Pages


async def test_index_page(client, store, project):
    store.create_creative(project.project_id, title="Minha VSL", type="VSL")
    resp = await client.get("/")
    assert resp.status_code == 200
    assert "Curso de Confeitaria" in resp.text
    assert "Minha VSL" in resp.text


async def test_editor_page(client, store, project):
    creative = store.create_creative(project.project_id, title="Minha VSL", type="VSL", content="Clique no botão.")
    resp = await client.get(f"/creatives/{creative.creative_id}/editor")
    assert resp.status_code == 200
    assert "Melhorar Gancho" in resp.text
    assert "/api/autocomplete" in resp.text
    assert (await client.get("/creatives/nope/editor")).status_code == 404


async def test_wildcard_creative_id_is_not_found(client, store, project):
    creative = store.create_creative(project.project_id, title="VSL", type="VSL")
    assert (await client.get("/api/creatives/*")).status_code == 404
    assert (await client.delete("/api/creatives/*")).status_code == 404
    assert store.read_creative(creative.creative_id).title == "VSL"


async def test_editor_binding_uses_field_policies(client, store, project):
    creative = store.create_creative(project.project_id, title="Minha VSL", type="VSL")
    resp = await client.get(f"/creatives/{creative.creative_id}/editor")
    html = resp.text
    # Both fields dispatch on the keystroke and share the server-side eligibility and cleanup rules.
    assert '"message": {"debounce_ms": 0, "enabled": true, "max_context": 30, "min_chars": 2}' in html
    assert '"script": {"debounce_ms": 0, "enabled": true, "max_context": 80, "min_chars": 2}' in html
    assert "const AFTER_WORD_MIN_CHARS = 5;" in html
    assert "const LONG_CONTEXT_CHARS = 10;" in html
    assert "cleanSuggestion(suggestion, before())" in html
    assert "+ suggestion +" not in html
