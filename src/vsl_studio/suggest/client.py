from __future__ import annotations

import httpx


class CompletionError(RuntimeError):
    pass


class HttpCompletionClient:
    """
    Calls ``POST {base_url}/api/autocomplete`` and returns the ``suggestion`` string.

    No timeout is applied: a hung call is simply cancelled by the coordinator when a
    newer keystroke supersedes it. Pass ``transport`` to talk to an in-process ASGI app.
    """

    path = "/api/autocomplete"

    def __init__(self, base_url: str, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, timeout=None, transport=transport)

    async def __aenter__(self) -> "HttpCompletionClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def complete(self, fragment: str) -> str:
        try:
            resp = await self._client.post(self.path, json={"prompt": fragment})
        except httpx.HTTPError as exc:
            raise CompletionError(f"completion request failed: {exc}") from exc
        if not resp.is_success:
            raise CompletionError(f"completion endpoint returned {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise CompletionError("completion endpoint returned invalid JSON") from exc
        suggestion = data.get("suggestion") if isinstance(data, dict) else None
        return suggestion if isinstance(suggestion, str) else ""

    __call__ = complete
