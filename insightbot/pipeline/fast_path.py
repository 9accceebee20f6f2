"""
Fast Path Classifier

Recognises conversational and meta requests (greetings, thanks, "what can
you do?", status pings) with ordered regex rules and answers them from the
SystemIdentity, without touching the LLM or the data store.

Usage:
    classifier = FastPathClassifier(identity)
    match = classifier.respond("oi")
    if match:
        return match.response
"""

import random
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Callable

from insightbot.identity import SystemIdentity


class FastPathCategory(StrEnum):
    CAPABILITIES = "capabilities"
    HELP = "help"
    GREETING = "greeting"
    THANKS = "thanks"
    STATUS = "status"


@dataclass(frozen=True)
class FastPathMatch:
    category: FastPathCategory
    response: str


# Order matters: the first matching rule wins.
_RULES: list[tuple[str, FastPathCategory]] = [
    (r"o que (você|vc|voce) (pode|consegue|sabe) fazer", FastPathCategory.CAPABILITIES),
    (r"quais (são |sao )?(as )?(suas )?capacidades", FastPathCategory.CAPABILITIES),
    (r"quais (atividades|funções|funcoes|tarefas|coisas)", FastPathCategory.CAPABILITIES),
    (r"me (ajuda|ajude|explica|explique)", FastPathCategory.HELP),
    (r"como (você|vc|voce) funciona", FastPathCategory.CAPABILITIES),
    (r"o que (posso|consigo|dá pra) (te )?pedir", FastPathCategory.CAPABILITIES),
    (r"quais (comandos|opções|opcoes)", FastPathCategory.CAPABILITIES),
    (r"what can you do", FastPathCategory.CAPABILITIES),
    (
        r"^(oi|olá|ola|hey|eai|e ai|bom dia|boa tarde|boa noite|hello|hi)\s*[!?.]*$",
        FastPathCategory.GREETING,
    ),
    (r"^(obrigad[oa]|valeu|thanks|thank you|vlw|tmj)\s*[!?.]*$", FastPathCategory.THANKS),
    (r"^(teste|test|ping|status)\s*[!?.]*$", FastPathCategory.STATUS),
    (r"^(help|ajuda|socorro|\?)\s*[!?.]*$", FastPathCategory.HELP),
]


class FastPathClassifier:
    """
    Pattern-based classifier for requests that need no data.

    Args:
        identity: Assistant identity used to build the canned replies
        status_provider: Returns an in-memory status snapshot with keys
            model, cached_tables, cache_ttl_seconds, raw_query
        rng: Random source for choosing reply variants
    """

    def __init__(
        self,
        identity: SystemIdentity | None = None,
        status_provider: Callable[[], dict[str, Any]] | None = None,
        rng: random.Random | None = None,
    ):
        self.identity = identity or SystemIdentity()
        self.status_provider = status_provider or (lambda: {})
        self.rng = rng or random.Random()
        self._rules = [(re.compile(p, re.IGNORECASE), category) for p, category in _RULES]

    def classify(self, text: str) -> FastPathCategory | None:
        """Category of the first matching rule, or None."""
        normalized = (text or "").lower().strip()
        if not normalized:
            return None
        for pattern, category in self._rules:
            if pattern.search(normalized):
                return category
        return None

    def respond(self, text: str) -> FastPathMatch | None:
        category = self.classify(text)
        if category is None:
            return None
        return FastPathMatch(category=category, response=self.render(category))

    def render(self, category: FastPathCategory) -> str:
        if category == FastPathCategory.GREETING:
            return self._greeting()
        if category == FastPathCategory.THANKS:
            return self._thanks()
        if category == FastPathCategory.STATUS:
            return self._status()
        return self._capabilities()

    def _capabilities(self) -> str:
        identity = self.identity
        lines = [
            f"🤖 *{identity.name}*",
            "",
            identity.description,
            "",
            f"🏢 *{identity.business_context.company}*",
            f"📚 {identity.business_context.focus}",
            "",
            "---",
            "",
        ]
        for group in identity.capabilities:
            lines.append(f"*{group.category}*")
            lines.extend(f"• {item}" for item in group.items)
            lines.append("")

        lines.extend(["---", "", "🗄️ *TABELAS DISPONÍVEIS:*", ""])
        lines.extend(f"• *{table}*: {desc}" for table, desc in identity.known_tables.items())

        lines.extend(["", "---", "", "💡 *EXEMPLOS DO QUE VOCÊ PODE ME PEDIR:*", ""])
        lines.extend(f'{i}️⃣ "{example}"' for i, example in enumerate(identity.examples, start=1))

        lines.extend(
            [
                "",
                "---",
                "",
                "🎯 *DICA:* Faça perguntas em linguagem natural sobre alunos, leads ou engajamento!",
                "",
                "É só mandar sua pergunta que eu analiso os dados pra você! 🚀",
            ]
        )
        return "\n".join(lines)

    def _greeting(self) -> str:
        variants = [
            f"👋 Olá! Sou o *{self.identity.name}*!\n\n{self.identity.description}\n\n"
            '💡 Pergunte "o que você pode fazer?" para ver todas as minhas capacidades!',
            "🤖 Oi! Estou pronto para ajudar com análise de dados!\n\n"
            'Digite sua pergunta ou peça "ajuda" para ver o que posso fazer.',
            "👋 E aí! Sou seu assistente de dados.\n\n"
            'Me pergunte qualquer coisa sobre seus dados ou digite "ajuda" para começar!',
        ]
        return self.rng.choice(variants)

    def _thanks(self) -> str:
        variants = [
            "😊 Por nada! Estou aqui para ajudar.\n\n"
            "Se precisar de mais alguma análise, é só perguntar!",
            "🙏 Disponha! Qualquer dúvida sobre os dados, pode mandar!",
            "✨ Fico feliz em ajudar! Manda mais perguntas quando precisar!",
        ]
        return self.rng.choice(variants)

    def _status(self) -> str:
        status = self.status_provider() or {}
        ttl = status.get("cache_ttl_seconds", 0)
        raw_query = "Ativo" if status.get("raw_query") else "Inativo"
        return (
            "✅ *Sistema Operacional*\n\n"
            f"🤖 Modelo: {status.get('model', 'desconhecido')}\n"
            f"📊 Tabelas em cache: {status.get('cached_tables', 0)}\n"
            f"⏱️ Cache TTL: {ttl:g}s\n"
            f"🔧 Consultas SQL livres: {raw_query}\n\n"
            "Pronto para processar suas consultas! 🚀"
        )
