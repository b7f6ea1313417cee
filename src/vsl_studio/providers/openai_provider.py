from __future__ import annotations

from vsl_studio.config import settings
from vsl_studio.providers.base import GeneratedText


AUTOCOMPLETE_PROMPT = """Você é um mecanismo inteligente de autocompletar para textos em português. Sua tarefa é CONTINUAR o texto de onde ele termina, não substituí-lo.

Texto parcial: "{fragment}"

Regras:
1. Forneça apenas a CONTINUAÇÃO a partir do fim do texto
2. NÃO repita nenhuma parte do texto de entrada
3. Continue de forma natural em português
4. Seja conciso (no máximo 1-5 palavras)
5. Se o texto termina no meio de uma palavra, complete apenas essa palavra
6. Se o texto termina com uma palavra completa, sugira as próximas palavras lógicas

Continue daqui:"""


class OpenAITextProvider:
    name = "openai"

    def __init__(self, api_key: str) -> None:
        from openai import AsyncOpenAI  # type: ignore

        self.client = AsyncOpenAI(api_key=api_key)

    async def generate_text(self, prompt: str, model: str | None = None) -> GeneratedText:
        model = model or settings.openai_text_model
        resp = await self.client.responses.create(model=model, input=prompt)
        return GeneratedText(
            text=_output_text(resp),
            prompt_used=prompt,
            provider=self.name,
            model=model,
            raw_metadata={"response_id": getattr(resp, "id", None)},
        )

    async def complete_fragment(self, fragment: str) -> str:
        """
        Short continuation for inline ghost text. Callers treat any exception as "no suggestion".
        """
        resp = await self.client.responses.create(
            model=settings.openai_autocomplete_model,
            input=AUTOCOMPLETE_PROMPT.format(fragment=fragment),
            max_output_tokens=settings.autocomplete_max_tokens,
        )
        return _output_text(resp)


def _output_text(resp) -> str:
    text = getattr(resp, "output_text", None)
    if text is None:
        # Fallback: best-effort
        text = str(resp)
    return text
