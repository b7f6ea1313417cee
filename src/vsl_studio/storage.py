from __future__ import annotations

import hashlib
import hmac
import json
import os
import re
import shutil
import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from vsl_studio.config import settings


PROJECT_FIELDS = (
    "name",
    "description",
    "niche",
    "business_model",
    "ideal_audience",
    "price_range",
    "main_promise",
    "competitive_edges",
    "digital_marketing_level",
    "copywriting_level",
    "current_revenue",
    "main_challenge",
    "status",
)
CREATIVE_FIELDS = ("title", "content", "status", "vsl_parameters", "chat_history")


class NotFoundError(KeyError):
    """Raised when a user, project or creative does not exist."""


class DuplicateError(ValueError):
    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


_ID_RE = re.compile(r"[0-9A-Za-z_-]+")


def _safe_id(value: str) -> str:
    # Ids become path components and glob patterns; only plain word characters pass.
    if not value or not _ID_RE.fullmatch(value):
        raise NotFoundError(value)
    return value


def hash_password(password: str, salt: str | None = None) -> str:
    salt = salt or uuid.uuid4().hex
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), 100_000)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    salt, _, _ = stored.partition("$")
    return hmac.compare_digest(hash_password(password, salt), stored)


@dataclass
class User:
    user_id: str
    email: str
    name: str
    password_hash: str
    created_at: str

    def public(self) -> dict[str, Any]:
        return {"id": self.user_id, "email": self.email, "name": self.name, "created_at": self.created_at}


@dataclass
class Project:
    project_id: str
    user_id: str
    name: str
    niche: str
    business_model: str
    created_at: str
    updated_at: str
    description: str = ""
    ideal_audience: str = ""
    price_range: str = ""
    main_promise: str = ""
    competitive_edges: list[str] = field(default_factory=list)
    digital_marketing_level: str = ""
    copywriting_level: str = ""
    current_revenue: str = ""
    main_challenge: str = ""
    status: str = "ATIVO"


@dataclass
class Creative:
    creative_id: str
    project_id: str
    title: str
    type: str  # VSL|SALES_PAGE|ANUNCIO|EMAIL
    created_at: str
    updated_at: str
    content: str = ""
    status: str = "DRAFT"
    vsl_parameters: dict[str, Any] | None = None
    chat_history: list[dict[str, Any]] | None = None


def _from_dict(cls, data: dict[str, Any]):
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


class Store:
    """
    File-backed persistence: one JSON document per entity.

    data/
      users/<user_id>.json
      projects/<project_id>/project.json
      projects/<project_id>/creatives/<creative_id>.json
      projects/<project_id>/runs/run_<run_id>.json
    """

    def __init__(self, root_dir: Path | str | None = None) -> None:
        self.root_dir = Path(root_dir or settings.data_dir).resolve()
        self.users_dir = self.root_dir / "users"
        self.projects_dir = self.root_dir / "projects"
        self.users_dir.mkdir(parents=True, exist_ok=True)
        self.projects_dir.mkdir(parents=True, exist_ok=True)

    # Users

    def create_user(self, email: str, password: str, name: str | None = None) -> User:
        email = email.strip().lower()
        if self.find_user_by_email(email) is not None:
            raise DuplicateError(email)
        user = User(
            user_id=_new_id(),
            email=email,
            name=(name or "").strip() or email.split("@")[0],
            password_hash=hash_password(password),
            created_at=_now_iso(),
        )
        _write_json(self.users_dir / f"{user.user_id}.json", asdict(user))
        return user

    def read_user(self, user_id: str) -> User:
        path = self.users_dir / f"{_safe_id(user_id)}.json"
        if not path.exists():
            raise NotFoundError(user_id)
        return _from_dict(User, json.loads(path.read_text("utf-8")))

    def find_user_by_email(self, email: str) -> User | None:
        email = email.strip().lower()
        for path in sorted(self.users_dir.glob("*.json")):
            data = json.loads(path.read_text("utf-8"))
            if data.get("email") == email:
                return _from_dict(User, data)
        return None

    # Projects

    def create_project(self, user_id: str, name: str, niche: str, business_model: str, **extra: Any) -> Project:
        self.read_user(user_id)
        now = _now_iso()
        proj = Project(
            project_id=_new_id(),
            user_id=user_id,
            name=name.strip(),
            niche=niche,
            business_model=business_model,
            created_at=now,
            updated_at=now,
        )
        _apply_updates(proj, extra, PROJECT_FIELDS)
        if not proj.description:
            proj.description = proj.main_promise
        proj_dir = self.projects_dir / proj.project_id
        (proj_dir / "creatives").mkdir(parents=True, exist_ok=True)
        (proj_dir / "runs").mkdir(parents=True, exist_ok=True)
        self._write_project(proj)
        return proj

    def list_projects(self, user_id: str | None = None) -> list[Project]:
        out: list[Project] = []
        for proj_dir in self.projects_dir.glob("*"):
            if not proj_dir.is_dir():
                continue
            try:
                proj = self.read_project(proj_dir.name)
            except (NotFoundError, json.JSONDecodeError):
                continue
            if user_id is None or proj.user_id == user_id:
                out.append(proj)
        out.sort(key=lambda p: p.updated_at, reverse=True)
        return out

    def read_project(self, project_id: str) -> Project:
        path = self.projects_dir / _safe_id(project_id) / "project.json"
        if not path.exists():
            raise NotFoundError(project_id)
        return _from_dict(Project, json.loads(path.read_text("utf-8")))

    def update_project(self, project_id: str, updates: dict[str, Any]) -> Project:
        proj = self.read_project(project_id)
        _apply_updates(proj, updates, PROJECT_FIELDS)
        proj.updated_at = _now_iso()
        self._write_project(proj)
        return proj

    def delete_project(self, project_id: str) -> int:
        """Delete a project and its creatives; returns how many creatives went with it."""
        self.read_project(project_id)
        proj_dir = (self.projects_dir / project_id).resolve()
        if not str(proj_dir).startswith(str(self.projects_dir.resolve()) + os.sep):
            raise ValueError("Refusing to delete outside projects_dir")
        n_creatives = len(list((proj_dir / "creatives").glob("*.json")))
        shutil.rmtree(proj_dir)
        return n_creatives

    # Creatives

    def create_creative(self, project_id: str, title: str, type: str, **extra: Any) -> Creative:
        self.read_project(project_id)
        now = _now_iso()
        creative = Creative(
            creative_id=_new_id(),
            project_id=project_id,
            title=title,
            type=type,
            created_at=now,
            updated_at=now,
        )
        _apply_updates(creative, extra, CREATIVE_FIELDS)
        self._write_creative(creative)
        return creative

    def list_creatives(self, project_id: str | None = None, type: str | None = None) -> list[Creative]:
        if project_id is not None:
            pattern = f"{_safe_id(project_id)}/creatives/*.json"
        else:
            pattern = "*/creatives/*.json"
        out: list[Creative] = []
        for path in self.projects_dir.glob(pattern):
            try:
                creative = _from_dict(Creative, json.loads(path.read_text("utf-8")))
            except json.JSONDecodeError:
                continue
            if type is None or creative.type == type:
                out.append(creative)
        out.sort(key=lambda c: c.updated_at, reverse=True)
        return out

    def read_creative(self, creative_id: str) -> Creative:
        for path in self.projects_dir.glob(f"*/creatives/{_safe_id(creative_id)}.json"):
            return _from_dict(Creative, json.loads(path.read_text("utf-8")))
        raise NotFoundError(creative_id)

    def update_creative(self, creative_id: str, updates: dict[str, Any]) -> Creative:
        creative = self.read_creative(creative_id)
        _apply_updates(creative, updates, CREATIVE_FIELDS)
        creative.updated_at = _now_iso()
        self._write_creative(creative)
        return creative

    def delete_creative(self, creative_id: str) -> None:
        creative = self.read_creative(creative_id)
        self._creative_path(creative).unlink(missing_ok=True)

    # Runs

    def write_run_manifest(self, project_id: str, manifest: dict[str, Any]) -> Path:
        proj_dir = self.projects_dir / _safe_id(project_id)
        run_id = _new_id()
        path = proj_dir / "runs" / f"run_{run_id}.json"
        manifest = dict(manifest)
        manifest.setdefault("run_id", run_id)
        manifest.setdefault("created_at", _now_iso())
        _write_json(path, manifest)
        return path

    def list_run_manifests(self, project_id: str) -> list[dict[str, Any]]:
        runs_dir = self.projects_dir / _safe_id(project_id) / "runs"
        out = [json.loads(p.read_text("utf-8")) for p in runs_dir.glob("run_*.json")]
        out.sort(key=lambda m: m.get("created_at", ""))
        return out

    def _creative_path(self, creative: Creative) -> Path:
        return self.projects_dir / creative.project_id / "creatives" / f"{creative.creative_id}.json"

    def _write_creative(self, creative: Creative) -> None:
        _write_json(self._creative_path(creative), asdict(creative))

    def _write_project(self, proj: Project) -> None:
        _write_json(self.projects_dir / proj.project_id / "project.json", asdict(proj))


def _apply_updates(entity: Any, updates: dict[str, Any], allowed: tuple[str, ...]) -> None:
    for key, value in updates.items():
        if key in allowed and value is not None:
            setattr(entity, key, value)


def _write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
