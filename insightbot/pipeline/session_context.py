"""
Session Context

Conversation state shared across requests: the last e-mail, table and
operation the user referred to, plus a short history of resolved intents.
Also extracts contextual references ("mesmo email", "essa tabela", a
mentioned address or table) from incoming messages.
"""

import re
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable

from insightbot.models.pipeline import ConversationTurn, Intent

EMAIL_PATTERN = re.compile(r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")

_SAME_EMAIL_PATTERN = re.compile(
    r"\b(mesmo email|esse email|este email|email anterior|"
    r"same email|that email|this email|previous email)\b",
    re.IGNORECASE,
)
_SAME_TABLE_PATTERN = re.compile(
    r"\b(mesma tabela|essa tabela|esta tabela|tabela anterior|"
    r"same table|that table|this table|previous table)\b",
    re.IGNORECASE,
)
_SEARCH_PATTERN = re.compile(
    r"buscar|procurar|encontrar|localizar|verificar|\bsearch\b|\bfind\b|\blook up\b",
    re.IGNORECASE,
)
_COUNT_PATTERN = re.compile(
    r"quantos|quantas|quantidade|contar|total|\bhow many\b|\bcount\b",
    re.IGNORECASE,
)
_LIST_PATTERN = re.compile(
    r"listar|mostrar|trazer|dados|informações|informacoes|\blist\b|\bshow\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ContextualReferences:
    """References to earlier context found in one message."""

    email: str | None = None
    table: str | None = None
    same_email: bool = False
    same_table: bool = False
    is_search: bool = False
    is_count: bool = False
    is_list: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "table": self.table,
            "same_email": self.same_email,
            "same_table": self.same_table,
            "is_search": self.is_search,
            "is_count": self.is_count,
            "is_list": self.is_list,
        }


def extract_email(text: str) -> str | None:
    """First e-mail address in the text, lower-cased."""
    match = EMAIL_PATTERN.search(text or "")
    return match.group(1).lower() if match else None


def extract_table_reference(text: str, known_tables: Iterable[str]) -> str | None:
    """
    Known table mentioned in the text.

    Longer names are tried first so "qualified_leads" wins over "leads".
    """
    lowered = (text or "").lower()
    for table in sorted(set(known_tables), key=len, reverse=True):
        if re.search(rf"(?<![\w]){re.escape(table.lower())}(?![\w])", lowered):
            return table
    return None


def extract_references(text: str, known_tables: Iterable[str]) -> ContextualReferences:
    """Detect e-mail/table mentions, back-references and verb flags."""
    text = text or ""
    return ContextualReferences(
        email=extract_email(text),
        table=extract_table_reference(text, known_tables),
        same_email=bool(_SAME_EMAIL_PATTERN.search(text)),
        same_table=bool(_SAME_TABLE_PATTERN.search(text)),
        is_search=bool(_SEARCH_PATTERN.search(text)),
        is_count=bool(_COUNT_PATTERN.search(text)),
        is_list=bool(_LIST_PATTERN.search(text)),
    )


@dataclass
class ConversationContext:
    """
    Conversation state for follow-up requests.

    Tracks:
    - last_email: Most recent address mentioned by the user
    - last_table: First table of the most recent intent
    - last_operation: First operation of the most recent intent
    - history: Recent turns, newest first, bounded by max_history
    """

    max_history: int = 5
    last_email: str | None = None
    last_table: str | None = None
    last_operation: str | None = None
    history: deque = field(init=False)

    def __post_init__(self) -> None:
        self.history = deque(maxlen=self.max_history)

    def update(self, message: str, intent: Intent) -> None:
        """Record a resolved request."""
        if intent.tables_needed:
            self.last_table = intent.tables_needed[0]
        if intent.operations:
            self.last_operation = intent.operations[0]

        email = extract_email(message)
        if email:
            self.last_email = email

        self.history.appendleft(ConversationTurn(message=message, intent=intent))

    def recent(self) -> list[ConversationTurn]:
        """History as a list, newest first."""
        return list(self.history)

    def build_prompt_context(self) -> str:
        """Context lines for LLM prompts (empty when nothing is known)."""
        parts = []
        if self.last_email:
            parts.append(f"- Último email consultado: {self.last_email}")
        if self.last_table:
            parts.append(f"- Última tabela consultada: {self.last_table}")
        if self.last_operation:
            parts.append(f"- Última operação: {self.last_operation}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_email": self.last_email,
            "last_table": self.last_table,
            "last_operation": self.last_operation,
            "history": [
                {
                    "message": turn.message,
                    "analysis_type": turn.intent.analysis_type if turn.intent else None,
                    "timestamp": turn.timestamp.isoformat(),
                }
                for turn in self.history
            ],
        }

    def reset(self) -> None:
        self.last_email = None
        self.last_table = None
        self.last_operation = None
        self.history.clear()
