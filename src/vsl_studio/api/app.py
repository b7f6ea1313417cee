from __future__ import annotations

import logging
import re
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, Field

from vsl_studio import vsl
from vsl_studio.config import configure_logging, settings
from vsl_studio.providers.base import TextProvider
from vsl_studio.providers.openai_provider import OpenAITextProvider
from vsl_studio.storage import Creative, DuplicateError, NotFoundError, Project, Store, verify_password
from vsl_studio.suggest.coordinator import multi_line_policy, single_line_policy
from vsl_studio.suggest.text import AFTER_WORD_MIN_CHARS, ARTIFACT_PATTERNS, LONG_CONTEXT_CHARS


configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="vsl_studio")

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

store = Store()

CREATIVE_TYPES = {"VSL", "SALES_PAGE", "ANUNCIO", "EMAIL"}
CREATIVE_STATUSES = {"DRAFT", "REVIEW", "DONE", "ARCHIVED"}
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _get_text_provider() -> TextProvider:
    if not settings.openai_api_key:
        raise HTTPException(status_code=400, detail="OPENAI_API_KEY is not set")
    return OpenAITextProvider(api_key=settings.openai_api_key)


@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse({"detail": "not found"}, status_code=404)


# Request bodies


class SignupIn(BaseModel):
    email: str = ""
    password: str = ""
    name: str | None = None


class LoginIn(BaseModel):
    email: str = ""
    password: str = ""


class ProjectIn(BaseModel):
    user_id: str = ""
    name: str = ""
    niche: str = ""
    business_model: str = ""
    description: str | None = None
    ideal_audience: str | None = None
    price_range: str | None = None
    main_promise: str | None = None
    competitive_edges: list[str] | None = None
    digital_marketing_level: str | None = None
    copywriting_level: str | None = None
    current_revenue: str | None = None
    main_challenge: str | None = None


class ProjectUpdateIn(BaseModel):
    name: str | None = None
    niche: str | None = None
    business_model: str | None = None
    description: str | None = None
    ideal_audience: str | None = None
    price_range: str | None = None
    main_promise: str | None = None
    competitive_edges: list[str] | None = None
    digital_marketing_level: str | None = None
    copywriting_level: str | None = None
    current_revenue: str | None = None
    main_challenge: str | None = None
    status: str | None = None


class CreativeIn(BaseModel):
    title: str = ""
    type: str = ""
    project_id: str = ""
    content: str = ""
    status: str = "DRAFT"
    vsl_parameters: dict[str, Any] | None = None
    chat_history: list[dict[str, Any]] | None = None


class CreativeUpdateIn(BaseModel):
    title: str | None = None
    content: str | None = None
    status: str | None = None
    vsl_parameters: dict[str, Any] | None = None
    chat_history: list[dict[str, Any]] | None = None


class ProjectContextIn(BaseModel):
    niche: str = ""
    business_model: str = ""
    ideal_audience: str = ""
    price_range: str = ""
    main_promise: str = ""
    competitive_edges: list[str] = Field(default_factory=list)
    digital_marketing_level: str = ""
    copywriting_level: str = ""
    current_revenue: str = ""
    main_challenge: str = ""


class VSLRequestIn(BaseModel):
    kind: str = ""
    duration: str = ""
    approach: str = ""
    cta: str = ""
    elements: list[str] = Field(default_factory=list)
    project_id: str | None = None
    project: ProjectContextIn | None = None


class ImproveIn(BaseModel):
    action: str | None = None
    message: str | None = None


class AutocompleteIn(BaseModel):
    prompt: str = ""


# Serialization


def _creative_summary(c: Creative) -> dict[str, Any]:
    return {
        "id": c.creative_id,
        "title": c.title,
        "type": c.type,
        "status": c.status,
        "created_at": c.created_at,
        "updated_at": c.updated_at,
    }


def _project_json(proj: Project) -> dict[str, Any]:
    data = asdict(proj)
    data["id"] = data.pop("project_id")
    try:
        data["user"] = store.read_user(proj.user_id).public()
    except NotFoundError:
        data["user"] = None
    creatives = store.list_creatives(project_id=proj.project_id)
    data["creatives"] = [_creative_summary(c) for c in creatives]
    data["creative_count"] = len(creatives)
    return data


def _creative_json(c: Creative) -> dict[str, Any]:
    data = asdict(c)
    data["id"] = data.pop("creative_id")
    try:
        proj = store.read_project(c.project_id)
        data["project"] = {"id": proj.project_id, "name": proj.name}
    except NotFoundError:
        data["project"] = None
    return data


def _context_from_project(proj: Project) -> vsl.ProjectContext:
    return vsl.ProjectContext(
        niche=proj.niche,
        business_model=proj.business_model,
        ideal_audience=proj.ideal_audience,
        price_range=proj.price_range,
        main_promise=proj.main_promise,
        competitive_edges=list(proj.competitive_edges),
        digital_marketing_level=proj.digital_marketing_level,
        copywriting_level=proj.copywriting_level,
        current_revenue=proj.current_revenue,
        main_challenge=proj.main_challenge,
    )


def _check_creative_fields(type: str | None, status: str | None) -> None:
    if type is not None and type not in CREATIVE_TYPES:
        raise HTTPException(status_code=400, detail=f"type must be one of {sorted(CREATIVE_TYPES)}")
    if status is not None and status not in CREATIVE_STATUSES:
        raise HTTPException(status_code=400, detail=f"status must be one of {sorted(CREATIVE_STATUSES)}")


# Pages


@app.get("/", response_class=HTMLResponse)
def index(request: Request):
    projects = store.list_projects()
    grouped: dict[str, list[dict[str, Any]]] = {}
    for p in projects:
        niche = (p.niche or "").strip() or "Sem nicho"
        grouped.setdefault(niche, []).append(_project_json(p))
    return templates.TemplateResponse(
        request=request,
        name="index.html",
        context={"grouped": grouped, "n_projects": len(projects)},
    )


@app.get("/creatives/{creative_id}/editor", response_class=HTMLResponse)
def editor_page(request: Request, creative_id: str):
    creative = store.read_creative(creative_id)
    return templates.TemplateResponse(
        request=request,
        name="editor.html",
        context={
            "creative": _creative_json(creative),
            "metrics": vsl.script_metrics(creative.content),
            "actions": vsl.IMPROVE_ACTIONS,
            "policies": {
                "message": asdict(single_line_policy()),
                "script": asdict(multi_line_policy()),
            },
            "after_word_min_chars": AFTER_WORD_MIN_CHARS,
            "long_context_chars": LONG_CONTEXT_CHARS,
            "artifact_patterns": [p.pattern for p in ARTIFACT_PATTERNS],
        },
    )


# Auth


@app.post("/api/auth/signup", status_code=201)
def signup(body: SignupIn):
    if not body.email or not body.password:
        raise HTTPException(status_code=400, detail="Email e senha são obrigatórios")
    if not _EMAIL_RE.match(body.email):
        raise HTTPException(status_code=400, detail="Formato de email inválido")
    if len(body.password) < 6:
        raise HTTPException(status_code=400, detail="Senha deve ter pelo menos 6 caracteres")
    try:
        user = store.create_user(email=body.email, password=body.password, name=body.name)
    except DuplicateError:
        raise HTTPException(status_code=409, detail="Usuário já existe com este email")
    logger.info("User %s signed up", user.user_id)
    return {"user": user.public(), "message": "Usuário criado com sucesso"}


@app.post("/api/auth/login")
def login(body: LoginIn):
    if not body.email or not body.password:
        raise HTTPException(status_code=400, detail="Email e senha são obrigatórios")
    user = store.find_user_by_email(body.email)
    if user is None:
        raise HTTPException(status_code=404, detail="Usuário não encontrado")
    if not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Senha incorreta")
    return {"user": user.public(), "message": "Login realizado com sucesso"}


# Projects


@app.get("/api/projects")
def list_projects():
    return [_project_json(p) for p in store.list_projects()]


@app.post("/api/projects", status_code=201)
def create_project(body: ProjectIn):
    if not (body.name.strip() and body.user_id and body.niche and body.business_model):
        raise HTTPException(
            status_code=400,
            detail="Nome do projeto, user_id, nicho e modelo de negócio são obrigatórios",
        )
    extra = body.model_dump(exclude={"user_id", "name", "niche", "business_model"}, exclude_none=True)
    proj = store.create_project(
        user_id=body.user_id,
        name=body.name,
        niche=body.niche,
        business_model=body.business_model,
        **extra,
    )
    logger.info("Project %s created for user %s", proj.project_id, proj.user_id)
    return _project_json(proj)


@app.get("/api/projects/{project_id}")
def get_project(project_id: str):
    return _project_json(store.read_project(project_id))


@app.put("/api/projects/{project_id}")
def update_project(project_id: str, body: ProjectUpdateIn):
    updates = body.model_dump(exclude_none=True)
    # Blank strings for the identifying fields mean "leave unchanged".
    for key in ("name", "niche", "business_model", "status"):
        if key in updates and not updates[key]:
            updates.pop(key)
    return _project_json(store.update_project(project_id, updates))


@app.delete("/api/projects/{project_id}")
def delete_project(project_id: str):
    n_creatives = store.delete_project(project_id)
    logger.info("Project %s deleted with %d creatives", project_id, n_creatives)
    return {"message": "Project deleted successfully", "deleted_creatives": n_creatives}


@app.get("/api/users/{user_id}/projects")
def list_user_projects(user_id: str):
    store.read_user(user_id)
    return [_project_json(p) for p in store.list_projects(user_id=user_id)]


# Creatives


@app.get("/api/creatives")
def list_creatives(project_id: str | None = None, type: str | None = None):
    return [_creative_json(c) for c in store.list_creatives(project_id=project_id, type=type)]


@app.post("/api/creatives", status_code=201)
def create_creative(body: CreativeIn):
    if not (body.title and body.type and body.project_id):
        raise HTTPException(status_code=400, detail="title, type and project_id are required")
    _check_creative_fields(body.type, body.status)
    creative = store.create_creative(
        project_id=body.project_id,
        title=body.title,
        type=body.type,
        content=body.content,
        status=body.status,
        vsl_parameters=body.vsl_parameters,
        chat_history=body.chat_history,
    )
    return _creative_json(creative)


@app.get("/api/creatives/{creative_id}")
def get_creative(creative_id: str):
    return _creative_json(store.read_creative(creative_id))


@app.put("/api/creatives/{creative_id}")
def update_creative(creative_id: str, body: CreativeUpdateIn):
    _check_creative_fields(None, body.status)
    return _creative_json(store.update_creative(creative_id, body.model_dump(exclude_none=True)))


@app.delete("/api/creatives/{creative_id}")
def delete_creative(creative_id: str):
    store.delete_creative(creative_id)
    return {"message": "Creative deleted successfully"}


@app.get("/api/creatives/{creative_id}/metrics")
def creative_metrics(creative_id: str):
    return vsl.script_metrics(store.read_creative(creative_id).content)


@app.post("/api/creatives/{creative_id}/improve")
async def improve_creative(creative_id: str, body: ImproveIn):
    creative = store.read_creative(creative_id)
    if not creative.content.strip():
        raise HTTPException(status_code=400, detail="creative has no content to improve")

    if body.action:
        if body.action not in vsl.IMPROVE_ACTIONS:
            raise HTTPException(status_code=400, detail=f"unknown action '{body.action}'")
        label, instruction = vsl.IMPROVE_ACTIONS[body.action]
        user_text = f"Executar ação: {label}"
        reply = f"Pronto! Apliquei a melhoria \"{label}\" na sua VSL."
    elif body.message and body.message.strip():
        instruction = user_text = body.message.strip()
        reply = "Ajustei o script conforme o seu pedido."
    else:
        raise HTTPException(status_code=400, detail="action or message is required")

    provider = _get_text_provider()
    try:
        generated = await provider.generate_text(vsl.build_improvement_prompt(creative.content, instruction))
    except Exception:
        logger.exception("Improving creative %s failed", creative_id)
        return JSONResponse({"error": "Erro ao melhorar o script. Tente novamente."}, status_code=500)

    now = datetime.now(timezone.utc).isoformat()
    history = list(creative.chat_history or [])
    history.append({"role": "user", "text": user_text, "timestamp": now})
    history.append({"role": "assistant", "text": reply, "timestamp": now})
    updated = store.update_creative(creative_id, {"content": generated.text, "chat_history": history})

    store.write_run_manifest(
        creative.project_id,
        {
            "type": "vsl_improve",
            "provider": generated.provider,
            "model": generated.model,
            "inputs": {"creative_id": creative_id, "action": body.action, "message": body.message},
            "outputs": {"n_chars": len(generated.text)},
        },
    )
    return {"creative": _creative_json(updated), "reply": reply}


# Generation


@app.post("/api/generate-vsl")
async def generate_vsl(body: VSLRequestIn):
    options = vsl.VSLOptions(
        kind=body.kind,
        duration=body.duration,
        approach=body.approach,
        cta=body.cta,
        elements=list(body.elements),
    )
    try:
        options.validate()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    context: vsl.ProjectContext | None = None
    if body.project is not None:
        context = vsl.ProjectContext(**body.project.model_dump())
    elif body.project_id:
        context = _context_from_project(store.read_project(body.project_id))

    logger.info(
        "VSL generation: project=%s kind=%s duration=%s approach=%s cta=%s elements=%s",
        body.project_id,
        options.kind,
        options.duration,
        options.approach,
        options.cta,
        options.elements,
    )

    provider = _get_text_provider()
    prompt = vsl.build_vsl_prompt(options, context)
    try:
        generated = await provider.generate_text(prompt)
    except Exception:
        logger.exception("VSL generation failed")
        return JSONResponse({"error": "Erro interno do servidor. Tente novamente."}, status_code=500)

    result = vsl.assemble_result(options, generated.text)

    if body.project_id:
        store.write_run_manifest(
            body.project_id,
            {
                "type": "vsl_generate",
                "provider": generated.provider,
                "model": generated.model,
                "inputs": asdict(options),
                "outputs": {"n_chars": len(result.script), "n_slides": len(result.slides)},
            },
        )

    return {"success": True, "data": asdict(result)}


@app.post("/api/autocomplete")
async def autocomplete(body: AutocompleteIn):
    if not body.prompt.strip():
        return {"suggestion": ""}
    provider = _get_text_provider()
    try:
        suggestion = await provider.complete_fragment(body.prompt)
    except Exception as exc:
        logger.warning("Autocomplete failed: %s", exc)
        return JSONResponse({"error": "Failed to generate autocomplete"}, status_code=500)
    return {"suggestion": suggestion}
