from __future__ import annotations

import math
import re
from dataclasses import dataclass, field


KIND_LABELS = {
    "curta": "VSL Curta (até R$ 497)",
    "media": "VSL Média (R$ 497-1.997)",
    "longa": "VSL Longa (R$ 1.997+)",
}

APPROACH_LABELS = {
    "historia": "História Pessoal (storytelling)",
    "dados": "Dados e Estatísticas (autoridade)",
    "problema": "Problema Urgente (dor)",
    "revelacao": "Revelação/Descoberta (curiosidade)",
}

ELEMENT_LABELS = {
    "prova-social": "Prova Social (depoimentos)",
    "urgencia": "Urgência (tempo limitado)",
    "escassez": "Escassez (vagas limitadas)",
    "bonus": "Bônus Exclusivos",
    "garantia": "Garantia Destacada",
}

CTA_LABELS = {
    "botao": "Botão na página",
    "link": "Link na descrição",
    "whatsapp": "WhatsApp",
    "telefone": "Telefone",
}

BUSINESS_MODEL_LABELS = {
    "infoproduto": "Infoprodutos/Cursos Online",
    "ecommerce": "E-commerce/Loja Virtual",
    "saas": "SaaS/Software",
    "servicos": "Prestação de Serviços",
    "afiliados": "Marketing de Afiliados",
    "agencia": "Agência de Marketing",
}

PRICE_RANGE_LABELS = {
    "ate-100": "até R$ 100",
    "100-500": "R$ 100 a R$ 500",
    "500-1000": "R$ 500 a R$ 1.000",
    "1000-3000": "R$ 1.000 a R$ 3.000",
    "3000-plus": "acima de R$ 3.000",
}

APPROACH_INSTRUCTIONS = {
    "historia": (
        "Comece com uma história pessoal envolvente",
        "Use storytelling para criar conexão emocional",
        "Mostre a transformação pessoal",
    ),
    "dados": (
        "Apresente estatísticas impactantes logo no início",
        "Use dados para estabelecer autoridade",
        "Baseie argumentos em evidências concretas",
    ),
    "problema": (
        "Identifique e agite o problema principal",
        "Mostre as consequências de não resolver",
        "Crie urgência através da dor",
    ),
    "revelacao": (
        "Desperte curiosidade com uma revelação",
        "Construa mistério e interesse",
        "Revele segredos da indústria",
    ),
}

ELEMENT_INSTRUCTIONS = {
    "prova-social": (
        "Incluir 2-3 depoimentos específicos e detalhados",
        "Mencionar resultados concretos e timeframes",
        "Adicionar estatísticas de sucesso dos clientes",
    ),
    "urgencia": (
        "Criar senso de urgência com prazo limitado",
        "Mencionar oferta especial com tempo determinado",
        "Usar linguagem que incentive ação imediata",
    ),
    "escassez": (
        "Limitar número de vagas ou produtos disponíveis",
        "Criar exclusividade na oferta",
        "Mencionar quantidades específicas restantes",
    ),
    "bonus": (
        "Apresentar 3-4 bônus exclusivos com valores específicos",
        "Detalhar cada bônus e seu benefício",
        "Calcular valor total dos bônus",
    ),
    "garantia": (
        "Oferecer garantia robusta (30-90 dias)",
        "Eliminar riscos da compra",
        "Detalhar processo de reembolso",
    ),
}

CTA_INSTRUCTIONS = {
    "botao": (
        "Direcionar para clicar no botão abaixo do vídeo",
        "Explicar o que acontece após o clique",
        "Criar urgência para a ação",
    ),
    "link": (
        "Mencionar link na descrição do vídeo",
        "Instruir onde encontrar o link",
        "Facilitar o acesso",
    ),
    "whatsapp": (
        "Solicitar mensagem no WhatsApp",
        "Fornecer número específico (usar placeholder)",
        "Explicar o que escrever na mensagem",
    ),
    "telefone": (
        "Solicitar ligação telefônica",
        "Mencionar número na tela (usar placeholder)",
        "Criar urgência para ligar agora",
    ),
}

APPROACH_SLIDES = {
    "historia": "Minha História",
    "dados": "Estatísticas Impactantes",
    "problema": "O Grande Problema",
    "revelacao": "A Grande Revelação",
}

# Quick actions offered next to the editor chat.
IMPROVE_ACTIONS = {
    "improve-hook": (
        "Melhorar Gancho",
        "Reescreva a abertura (primeiros 30 segundos) para torná-la muito mais impactante, "
        "prendendo a atenção logo na primeira frase.",
    ),
    "add-urgency": (
        "Adicionar Urgência",
        "Insira elementos de urgência e escassez de tempo ao longo do script, "
        "especialmente antes de cada call-to-action.",
    ),
    "enhance-cta": (
        "Fortalecer CTA",
        "Fortaleça o call-to-action final com instruções claras, benefício imediato e urgência.",
    ),
    "add-social-proof": (
        "Incluir Prova Social",
        "Adicione depoimentos e casos de sucesso realistas (use nomes e números como placeholders).",
    ),
}

CTA_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"clique\s+(?:no\s+)?botão",
        r"acesse\s+(?:o\s+)?link",
        r"compre\s+agora",
        r"adquira\s+(?:já|agora)",
        r"garanta\s+(?:sua|a)\s+vaga",
        r"aproveite\s+(?:essa|esta)\s+oferta",
        r"não\s+perca",
        r"última\s+chance",
        r"entre\s+em\s+contato",
        r"cadastre-se",
        r"inscreva-se",
    )
]


@dataclass
class ProjectContext:
    niche: str = ""
    business_model: str = ""
    ideal_audience: str = ""
    price_range: str = ""
    main_promise: str = ""
    competitive_edges: list[str] = field(default_factory=list)
    digital_marketing_level: str = ""
    copywriting_level: str = ""
    current_revenue: str = ""
    main_challenge: str = ""


@dataclass
class VSLOptions:
    kind: str
    duration: str
    approach: str
    cta: str
    elements: list[str] = field(default_factory=list)

    def validate(self) -> None:
        if not (self.kind and self.duration and self.approach and self.cta):
            raise ValueError("Todos os campos obrigatórios devem ser preenchidos")
        for value, table, label in (
            (self.kind, KIND_LABELS, "kind"),
            (self.approach, APPROACH_LABELS, "approach"),
            (self.cta, CTA_LABELS, "cta"),
        ):
            if value not in table:
                raise ValueError(f"unknown {label} '{value}'")
        unknown = [el for el in self.elements if el not in ELEMENT_LABELS]
        if unknown:
            raise ValueError(f"unknown elements: {', '.join(unknown)}")


@dataclass(frozen=True)
class VSLTiming:
    intro: str
    development: str
    cta: str
    total: str


@dataclass(frozen=True)
class VSLResult:
    script: str
    slides: list[str]
    timing: VSLTiming
    cta_positions: list[str]
    teleprompter: str


def _bullets(lines: tuple[str, ...]) -> str:
    return "".join(f"\n   - {line}" for line in lines)


def _project_context_block(ctx: ProjectContext) -> str:
    return (
        "\n**CONTEXTO DO PROJETO/NEGÓCIO:**\n"
        f"- Nicho/Segmento: {ctx.niche}\n"
        f"- Modelo de Negócio: {BUSINESS_MODEL_LABELS.get(ctx.business_model, ctx.business_model)}\n"
        f"- Público-Alvo: {ctx.ideal_audience}\n"
        f"- Faixa de Preço: {PRICE_RANGE_LABELS.get(ctx.price_range, ctx.price_range)}\n"
        f"- Promessa Principal: {ctx.main_promise}\n"
        f"- Diferenciais Competitivos: {', '.join(ctx.competitive_edges)}\n"
        f"- Nível Marketing Digital: {ctx.digital_marketing_level}\n"
        f"- Faturamento Atual: {ctx.current_revenue}\n"
        f"- Principal Desafio: {ctx.main_challenge}\n"
        "\n**IMPORTANTE:** Use essas informações para personalizar completamente a VSL, "
        "tornando-a específica para este negócio, nicho e público-alvo."
    )


def build_vsl_prompt(options: VSLOptions, project: ProjectContext | None = None) -> str:
    """
    Assemble the generation prompt from the form answers. Section numbers after the
    approach block shift by one when a project context block is included.
    """
    approach_label = APPROACH_LABELS[options.approach]
    elements = ", ".join(ELEMENT_LABELS[el] for el in options.elements)

    prompt = (
        "Você é um especialista em criação de VSLs (Video Sales Letters) de alta conversão.\n\n"
        "Crie um script completo e profissional de VSL baseado nas seguintes especificações:\n"
        f"{_project_context_block(project) if project else ''}\n\n"
        "**CONFIGURAÇÕES DA VSL:**\n"
        f"- Tipo: {KIND_LABELS[options.kind]}\n"
        f"- Duração total: {options.duration} minutos\n"
        f"- Abordagem principal: {approach_label}\n"
        f"- Call-to-action: {CTA_LABELS[options.cta]}\n"
        f"- Elementos incluídos: {elements}\n\n"
        "**INSTRUÇÕES ESPECÍFICAS:**\n\n"
        "1. **ESTRUTURA OBRIGATÓRIA:**\n"
        f"   - Introdução: 0:00 - 1:30 (gancho forte usando a abordagem {approach_label})\n"
        "   - Desenvolvimento: 1:30 até os últimos 2-3 minutos\n"
        "   - Call-to-action final: últimos 2-3 minutos\n\n"
        "2. **ABORDAGEM ESPECÍFICA:**"
    )
    prompt += _bullets(APPROACH_INSTRUCTIONS[options.approach])

    section = 3
    if project:
        prompt += (
            f"\n\n{section}. **PERSONALIZAÇÃO BASEADA NO PROJETO:**"
            + _bullets(
                (
                    f'Adapte a linguagem para o nicho "{project.niche}"',
                    f'Foque nos problemas específicos do público: "{project.ideal_audience}"',
                    f'Enfatize a promessa principal: "{project.main_promise}"',
                    f"Destaque os diferenciais: {', '.join(project.competitive_edges)}",
                    "Considere o nível de conhecimento do público "
                    f"(Marketing Digital: {project.digital_marketing_level})",
                    f'Aborde o principal desafio: "{project.main_challenge}"',
                    f"Justifique o investimento para a faixa de preço: {project.price_range}",
                )
            )
        )
        section += 1

    prompt += f"\n\n{section}. **ELEMENTOS OBRIGATÓRIOS A INCLUIR:**"
    for el in options.elements:
        prompt += _bullets(ELEMENT_INSTRUCTIONS[el])
    section += 1

    prompt += f"\n\n{section}. **CALL-TO-ACTION ESPECÍFICO:**" + _bullets(CTA_INSTRUCTIONS[options.cta])
    section += 1

    prompt += (
        f"\n\n{section}. **FORMATO DE SAÍDA:**"
        + _bullets(
            (
                "Retorne APENAS o script em markdown",
                "Use títulos e subtítulos para organizar",
                "Inclua marcações de tempo",
                "Escreva como se fosse para ser falado diretamente",
                "Use linguagem natural e persuasiva",
                "Adapte o tom para o público brasileiro",
                'Use "você" para se dirigir ao espectador',
            )
        )
        + f"\n\n{section + 1}. **DURAÇÃO E TIMING:**"
        + _bullets(
            (
                f"Respeite a duração total de {options.duration} minutos",
                "Distribua o conteúdo proporcionalmente",
                "Inclua pausas naturais e transições",
                "Mantenha ritmo adequado para conversão",
            )
        )
        + "\n\nAgora crie o script completo da VSL seguindo todas essas diretrizes."
    )
    return prompt


def duration_minutes(duration: str) -> int:
    """Upper bound of a "min-max" duration string; 8 when it can't be read."""
    parts = duration.split("-")
    try:
        minutes = int(parts[1].strip())
    except (IndexError, ValueError):
        return 8
    return minutes or 8


def build_slides(options: VSLOptions) -> list[str]:
    slides = [
        "Slide 1: Gancho Inicial",
        f"Slide 2: {APPROACH_SLIDES.get(options.approach, APPROACH_SLIDES['revelacao'])}",
        "Slide 3: Agitação do Problema",
        "Slide 4: Consequências de Não Agir",
        "Slide 5: Apresentação da Solução",
        "Slide 6: Como Funciona",
        "Slide 7: Benefícios Únicos",
    ]
    if "prova-social" in options.elements:
        slides.append("Slide 8: Depoimentos de Sucesso")
    if "bonus" in options.elements:
        slides.append("Slide 9: Bônus Exclusivos")
    slides.append("Slide Final: Call to Action")
    return slides


def build_timing(options: VSLOptions) -> VSLTiming:
    minutes = duration_minutes(options.duration)
    return VSLTiming(
        intro="0:00 - 1:30",
        development=f"1:30 - {minutes - 2}:00",
        cta=f"{minutes - 2}:00 - {minutes}:00",
        total=f"{minutes} minutos",
    )


def build_cta_positions(options: VSLOptions) -> list[str]:
    minutes = duration_minutes(options.duration)
    positions = [
        "CTA Suave aos 3:00 - 'Continue assistindo para descobrir...'",
        f"CTA Principal aos {minutes - 2}:00 - CTA final completo",
    ]
    if "urgencia" in options.elements:
        positions.append("CTA de Urgência - Enfatizar prazo limitado")
    if "escassez" in options.elements:
        positions.append("CTA de Escassez - Enfatizar vagas limitadas")
    return positions


_TELEPROMPTER_CHUNK = re.compile(r".{1,60}(?:\s|$)")


def to_teleprompter(script: str, width: int = 60) -> str:
    """Upper-case, markdown-free script with lines no longer than ``width`` characters."""
    text = script.upper().replace("\n\n", "\n")
    for marker in ("### ", "## ", "# ", "**"):
        text = text.replace(marker, "")

    out: list[str] = []
    for line in text.split("\n"):
        if not line.strip():
            continue
        if len(line) > width:
            chunks = [m.group(0) for m in _TELEPROMPTER_CHUNK.finditer(line) if m.group(0)]
            out.append("\n".join(chunks) if chunks else line)
        else:
            out.append(line)
    return "\n".join(out)


def assemble_result(options: VSLOptions, script: str) -> VSLResult:
    return VSLResult(
        script=script,
        slides=build_slides(options),
        timing=build_timing(options),
        cta_positions=build_cta_positions(options),
        teleprompter=to_teleprompter(script),
    )


def build_improvement_prompt(script: str, instruction: str) -> str:
    return (
        "Você é um copywriter especialista em VSLs de alta conversão.\n"
        "Melhore o script abaixo seguindo a instrução do usuário.\n"
        "Retorne APENAS o script completo revisado em markdown, sem comentários.\n\n"
        f"**INSTRUÇÃO:** {instruction}\n\n"
        f"**SCRIPT ATUAL:**\n{script}\n"
    )


# Editor metrics


def word_count(text: str) -> int:
    return len(text.split())


def paragraph_count(text: str) -> int:
    if not text.strip():
        return 0
    return len([p for p in re.split(r"\n\s*\n", text) if p.strip()])


def cta_count(text: str) -> int:
    return sum(len(p.findall(text)) for p in CTA_PATTERNS)


def reading_time(text: str, words_per_minute: int = 150) -> str:
    minutes = math.ceil(word_count(text) / words_per_minute)
    if minutes < 1:
        return "< 1 min"
    if minutes == 1:
        return "1 min"
    return f"{minutes} min"


def video_length(text: str, words_per_minute: int = 140) -> str:
    total = word_count(text) / words_per_minute
    if total < 1:
        return "< 1 min"
    minutes = int(total)
    seconds = round((total - minutes) * 60)
    if seconds == 60:
        minutes, seconds = minutes + 1, 0
    if seconds == 0:
        return f"{minutes} min"
    return f"{minutes}:{seconds:02d} min"


def quality_score(text: str) -> tuple[int, str]:
    words = word_count(text)
    ctas = cta_count(text)
    paragraphs = paragraph_count(text)

    score = 0
    for value, steps in (
        (words, ((800, 40), (500, 30), (300, 20), (100, 10))),
        (ctas, ((3, 30), (2, 20), (1, 10))),
        (paragraphs, ((8, 30), (5, 20), (3, 10))),
    ):
        for threshold, points in steps:
            if value >= threshold:
                score += points
                break

    if score >= 80:
        feedback = "Excelente! VSL bem estruturada"
    elif score >= 60:
        feedback = "Boa estrutura, pode melhorar"
    elif score >= 40:
        feedback = "Estrutura básica, adicione mais conteúdo"
    elif score >= 20:
        feedback = "Precisa de mais desenvolvimento"
    else:
        feedback = "Comece escrevendo seu script"
    return score, feedback


def script_metrics(text: str) -> dict[str, object]:
    score, feedback = quality_score(text)
    return {
        "words": word_count(text),
        "characters": len(text),
        "paragraphs": paragraph_count(text),
        "ctas": cta_count(text),
        "reading_time": reading_time(text),
        "video_length": video_length(text),
        "quality_score": score,
        "feedback": feedback,
    }
