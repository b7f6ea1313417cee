from __future__ import annotations

import asyncio
import os
import tempfile

# Keep the module-level store created at app import out of the working tree.
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="vsl_studio_"))

import pytest
from httpx import ASGITransport, AsyncClient

from vsl_studio.api import app as app_module
from vsl_studio.providers.base import GeneratedText
from vsl_studio.storage import Store


SCRIPT = (
    "# Introdução\n\n"
    "Olá, meu nome é Ana e hoje vou te mostrar um método simples.\n\n"
    "## Oferta\n\n"
    "Clique no botão abaixo e garanta sua vaga agora.\n"
)


class FakeProvider:
    name = "fake"

    def __init__(self) -> None:
        self.prompts: list[str] = []
        self.fragments: list[str] = []
        self.script = SCRIPT
        self.suggestion = "á, tudo bem?"
        self.fail = False

    async def generate_text(self, prompt: str, model: str | None = None) -> GeneratedText:
        self.prompts.append(prompt)
        if self.fail:
            raise RuntimeError("provider down")
        return GeneratedText(text=self.script, prompt_used=prompt, provider=self.name, model="fake-model", raw_metadata={})

    async def complete_fragment(self, fragment: str) -> str:
        self.fragments.append(fragment)
        if self.fail:
            raise RuntimeError("provider down")
        return self.suggestion


class FakeCompletion:
    """Completion function whose answers are released by the test, one future per call."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self._futures: dict[str, asyncio.Future] = {}

    async def __call__(self, fragment: str) -> str:
        self.calls.append(fragment)
        fut = asyncio.get_running_loop().create_future()
        self._futures[fragment] = fut
        return await fut

    def resolve(self, fragment: str, text: str) -> None:
        fut = self._futures[fragment]
        if not fut.done():
            fut.set_result(text)

    def fail(self, fragment: str, exc: Exception) -> None:
        fut = self._futures[fragment]
        if not fut.done():
            fut.set_exception(exc)

    def was_cancelled(self, fragment: str) -> bool:
        return self._futures[fragment].cancelled()


async def settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def store(tmp_path):
    return Store(tmp_path / "data")


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
async def client(store, provider, monkeypatch):
    monkeypatch.setattr(app_module, "store", store)
    monkeypatch.setattr(app_module, "_get_text_provider", lambda: provider)
    async with AsyncClient(transport=ASGITransport(app=app_module.app), base_url="http://test") as c:
        yield c


@pytest.fixture
def user(store):
    return store.create_user(email="ana@example.com", password="segredo1", name="Ana")


@pytest.fixture
def project(store, user):
    return store.create_project(
        user_id=user.user_id,
        name="Curso de Confeitaria",
        niche="confeitaria",
        business_model="infoproduto",
        ideal_audience="mulheres 25-45 que querem renda extra",
        price_range="100-500",
        main_promise="Fature R$ 3 mil por mês vendendo bolos",
        competitive_edges=["receitas testadas", "suporte no WhatsApp"],
    )
